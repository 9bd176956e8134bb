"""
RBAC (Role-Based Access Control) permission system
"""

from enum import Enum
from typing import Set
from fastapi import Depends, HTTPException, status


class Permission(str, Enum):
    """Permission definitions"""
    # Order permissions
    ORDER_CREATE = "order:create"
    ORDER_APPEND = "order:append"
    ORDER_RECORD_PAYMENT = "order:record_payment"
    ORDER_OVERRIDE_PAYMENT = "order:override_payment"

    # Table permissions
    TABLES_OPERATE = "tables:operate"
    TABLES_EDIT = "tables:edit"

    # Stock permissions
    STOCK_VIEW = "stock:view"
    STOCK_ADJUST = "stock:adjust"

    # Invoice permissions
    INVOICE_ISSUE = "invoice:issue"
    INVOICE_VIEW = "invoice:view"


# Role permission mapping
ROLE_PERMISSIONS = {
    "admin": set(Permission),
    "manager": {
        Permission.ORDER_CREATE,
        Permission.ORDER_APPEND,
        Permission.ORDER_RECORD_PAYMENT,
        Permission.ORDER_OVERRIDE_PAYMENT,
        Permission.TABLES_OPERATE,
        Permission.TABLES_EDIT,
        Permission.STOCK_VIEW,
        Permission.STOCK_ADJUST,
        Permission.INVOICE_ISSUE,
        Permission.INVOICE_VIEW,
    },
    "cashier": {
        Permission.ORDER_CREATE,
        Permission.ORDER_APPEND,
        Permission.ORDER_RECORD_PAYMENT,
        Permission.TABLES_OPERATE,
        Permission.STOCK_VIEW,
        Permission.INVOICE_ISSUE,
        Permission.INVOICE_VIEW,
    },
    "waiter": {
        # Waiters open tabs and seat guests but do not take money
        Permission.ORDER_CREATE,
        Permission.ORDER_APPEND,
        Permission.TABLES_OPERATE,
        Permission.STOCK_VIEW,
    },
}


def get_permissions_for_role(role: str) -> Set[Permission]:
    """Get permissions for a given role"""
    return ROLE_PERMISSIONS.get(role.lower(), set())


def has_permission(required_permission: Permission, user_permissions: Set[Permission]) -> bool:
    """Check if user has required permission"""
    return required_permission in user_permissions


def require_permission(required_permission: Permission):
    """Dependency factory to check permissions"""
    from pos_backoffice.core.dependencies import get_user_permissions

    async def check_permission(
        user_permissions: Set[Permission] = Depends(get_user_permissions),
    ) -> Set[Permission]:
        if not has_permission(required_permission, user_permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {required_permission.value}",
            )
        return user_permissions
    return check_permission
