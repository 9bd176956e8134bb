"""
Engine error taxonomy

Every service operation either commits or raises one of these with the
transaction rolled back. The HTTP layer maps each kind to a status code.
"""

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base exception for all engine failures"""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": self.kind, "detail": self.message}
        data.update(self.details)
        return data


class ValidationError(EngineError):
    """Malformed input, sum mismatch or unknown entity reference"""

    kind = "validation_error"
    status_code = 422


class TotalMismatchError(ValidationError):
    """Declared total does not match the line items"""

    kind = "total_mismatch"


class PaymentSplitError(ValidationError):
    """Cash/UPI split is negative or exceeds the order total"""

    kind = "payment_split_invalid"


class ConflictError(EngineError):
    """Request conflicts with current state"""

    kind = "conflict"
    status_code = 409


class InsufficientStockError(ConflictError):
    """Stock would go negative"""

    kind = "insufficient_stock"

    def __init__(self, message: str, product_id, available: int, requested: int, product_name: Optional[str] = None):
        super().__init__(
            message,
            {
                "product_id": str(product_id),
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


class TableStateError(ConflictError):
    """Table is not in a state that allows the requested transition"""

    kind = "invalid_table_state"


class NotFoundError(EngineError):
    """Entity absent or outside the caller's tenant scope"""

    kind = "not_found"
    status_code = 404


class ForbiddenError(EngineError):
    """Feature disabled for tenant or caller not authorized"""

    kind = "forbidden"
    status_code = 403


class InternalError(EngineError):
    """Unexpected storage failure"""

    kind = "internal_error"
    status_code = 500
