"""
JWT caller identity

Tokens are issued elsewhere; the engine only needs the caller's user id,
tenant scope and role out of them.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from jose import JWTError, jwt
from typing import Optional
import uuid
from pos_backoffice.core.config import get_settings

settings = get_settings()


@dataclass(frozen=True)
class CallerClaims:
    user_id: uuid.UUID
    tenant_id: uuid.UUID
    role: str


def create_access_token(
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
    role: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT carrying user, tenant and role claims"""
    issued_at = datetime.utcnow()
    expire = issued_at + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "sub": str(user_id),
        "tenant_id": str(tenant_id),
        "role": role,
        "exp": expire,
        "iat": issued_at,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_caller(token: str) -> Optional[CallerClaims]:
    """Validate a token; None when it is expired, forged or lacks a tenant"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return CallerClaims(
            user_id=uuid.UUID(payload["sub"]),
            tenant_id=uuid.UUID(payload["tenant_id"]),
            role=payload.get("role") or "",
        )
    except (JWTError, KeyError, TypeError, ValueError):
        return None
