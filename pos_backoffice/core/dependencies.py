"""
Request-scoped dependencies for FastAPI: caller identity, tenant scope and
the engine services wired for the current session
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session
from typing import Set
import uuid
import structlog

from pos_backoffice.core.auth import CallerClaims, decode_caller
from pos_backoffice.core.database import get_session
from pos_backoffice.core.permissions import Permission, get_permissions_for_role
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.services.catalog import SqlCatalog
from pos_backoffice.services.invoice_allocator import InvoiceAllocator
from pos_backoffice.services.order_manager import OrderManager
from pos_backoffice.services.rendering import DocumentDispatcher, get_document_dispatcher
from pos_backoffice.services.settings_provider import SettingsProvider
from pos_backoffice.services.stock_ledger import StockLedger
from pos_backoffice.services.table_state import TableStateMachine

logger = structlog.get_logger(__name__)
security = HTTPBearer()


async def get_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CallerClaims:
    """Validated claims of the bearer token"""
    claims = decode_caller(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.debug("caller_authenticated", user_id=str(claims.user_id), tenant_id=str(claims.tenant_id))
    return claims


async def get_current_user_id(caller: CallerClaims = Depends(get_caller)) -> uuid.UUID:
    return caller.user_id


async def get_tenant_id(caller: CallerClaims = Depends(get_caller)) -> uuid.UUID:
    """Tenant scope of every query and command in the request"""
    return caller.tenant_id


async def get_user_permissions(caller: CallerClaims = Depends(get_caller)) -> Set[Permission]:
    return get_permissions_for_role(caller.role)


def get_tenant_settings(
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    session: Session = Depends(get_session),
) -> TenantSettings:
    return SettingsProvider(session).get(tenant_id)


def get_stock_ledger(session: Session = Depends(get_session)) -> StockLedger:
    return StockLedger(session)


def get_table_state_machine(session: Session = Depends(get_session)) -> TableStateMachine:
    return TableStateMachine(session)


def get_order_manager(session: Session = Depends(get_session)) -> OrderManager:
    return OrderManager(
        session,
        catalog=SqlCatalog(session),
        stock=StockLedger(session),
        tables=TableStateMachine(session),
    )


def get_invoice_allocator(
    session: Session = Depends(get_session),
    dispatcher: DocumentDispatcher = Depends(get_document_dispatcher),
) -> InvoiceAllocator:
    return InvoiceAllocator(session, dispatcher=dispatcher)
