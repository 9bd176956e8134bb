"""
Catalog collaborator: product data snapshotted onto line items at sale time
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Protocol
import uuid

from sqlmodel import Session, select

from pos_backoffice.models.product import Product


@dataclass(frozen=True)
class ProductSnapshot:
    id: uuid.UUID
    name: str
    unit_price: Decimal
    cost_price: Decimal


class Catalog(Protocol):
    def lookup_by_ids(self, ids: Iterable[uuid.UUID], tenant_id: uuid.UUID) -> List[ProductSnapshot]:
        ...


class SqlCatalog:
    """Reads active products of one tenant from the products table"""

    def __init__(self, session: Session):
        self.session = session

    def lookup_by_ids(self, ids: Iterable[uuid.UUID], tenant_id: uuid.UUID) -> List[ProductSnapshot]:
        ids = list(set(ids))
        if not ids:
            return []
        products = self.session.exec(
            select(Product).where(
                Product.id.in_(ids),
                Product.tenant_id == tenant_id,
                Product.is_active == True  # noqa: E712
            )
        ).all()
        return [
            ProductSnapshot(
                id=p.id,
                name=p.name,
                unit_price=p.unit_price,
                cost_price=p.cost_price,
            )
            for p in products
        ]
