"""
Settings collaborator: tenant configuration parsed from Tenant.settings
"""

import json
import uuid

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session
import structlog

from pos_backoffice.core.exceptions import InternalError, NotFoundError
from pos_backoffice.models.tenant import Tenant
from pos_backoffice.schemas.settings import TenantSettings

logger = structlog.get_logger(__name__)


class SettingsProvider:
    """Read-only fetch of a tenant's TenantSettings; missing keys take defaults"""

    def __init__(self, session: Session):
        self.session = session

    def get(self, tenant_id: uuid.UUID) -> TenantSettings:
        tenant = self.session.get(Tenant, tenant_id)
        if not tenant or not tenant.is_active:
            raise NotFoundError("Tenant not found", {"tenant_id": str(tenant_id)})

        if not tenant.settings:
            return TenantSettings()

        try:
            raw = json.loads(tenant.settings)
            return TenantSettings.model_validate(raw)
        except (ValueError, PydanticValidationError) as e:
            logger.error("tenant_settings_invalid", tenant_id=str(tenant_id), error=str(e))
            raise InternalError("Tenant settings are malformed", {"tenant_id": str(tenant_id)})
