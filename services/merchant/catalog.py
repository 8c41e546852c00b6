"""
Product catalog backed by the `products` table.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acp_checkout.models import CatalogProduct
from acp_checkout.ports import ProductCatalog
from services.merchant.database import ProductRow


def _catalog_product_from_row(row: ProductRow) -> CatalogProduct:
    return CatalogProduct(
        id=str(row.id),
        title=row.name,
        sku=row.sku or "",
        price=Decimal(row.price),
        manage_stock=bool(row.manage_stock),
        stock_quantity=row.stock_quantity,
        in_stock=row.in_stock if row.in_stock is not None else True,
    )


class SqlProductCatalog(ProductCatalog):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def lookup(self, product_id: int) -> Optional[CatalogProduct]:
        async with self.sessionmaker() as db:
            row = await db.get(ProductRow, product_id)
            return _catalog_product_from_row(row) if row else None
