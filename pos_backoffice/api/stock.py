"""
Stock API endpoints
"""

from fastapi import APIRouter, Depends
from typing import List, Set
import uuid

from pos_backoffice.core.dependencies import get_stock_ledger, get_tenant_id, get_tenant_settings
from pos_backoffice.core.permissions import Permission, require_permission
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.schemas.stock import LowStockItem, StockAdjust, StockLevel, StockSet
from pos_backoffice.services.stock_ledger import StockLedger

router = APIRouter()


@router.get("/{location_id}/low-stock", response_model=List[LowStockItem])
def get_low_stock(
    location_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    settings: TenantSettings = Depends(get_tenant_settings),
    ledger: StockLedger = Depends(get_stock_ledger),
    _: Set[Permission] = Depends(require_permission(Permission.STOCK_VIEW))
):
    """Products below their alert threshold at a location"""
    return ledger.low_stock_items(location_id, tenant_id, settings.default_low_stock_threshold)


@router.get("/{location_id}/{product_id}", response_model=StockLevel)
def get_stock_level(
    location_id: uuid.UUID,
    product_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    ledger: StockLedger = Depends(get_stock_ledger),
    _: Set[Permission] = Depends(require_permission(Permission.STOCK_VIEW))
):
    ledger.require_product(product_id, tenant_id)
    return StockLevel(
        product_id=product_id,
        location_id=location_id,
        quantity=ledger.get_quantity(product_id, location_id)
    )


@router.post("/adjust", response_model=StockLevel)
def adjust_stock(
    data: StockAdjust,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    ledger: StockLedger = Depends(get_stock_ledger),
    _: Set[Permission] = Depends(require_permission(Permission.STOCK_ADJUST))
):
    """Relative change; rejected if stock would go negative"""
    record = ledger.adjust(data.product_id, data.location_id, data.delta, tenant_id)
    return StockLevel(product_id=record.product_id, location_id=record.location_id, quantity=record.quantity)


@router.put("/", response_model=StockLevel)
def set_stock(
    data: StockSet,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    ledger: StockLedger = Depends(get_stock_ledger),
    _: Set[Permission] = Depends(require_permission(Permission.STOCK_ADJUST))
):
    record = ledger.set(data.product_id, data.location_id, data.quantity, tenant_id)
    return StockLevel(product_id=record.product_id, location_id=record.location_id, quantity=record.quantity)


