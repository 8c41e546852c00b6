"""
Order backend backed by the `orders` / `order_items` tables.

Tax is a flat rate over the item subtotal. Payment capture is simulated:
it succeeds for any pending order that holds items.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acp_checkout.models import CaptureResult, OrderTotals, ValidatedLineItem
from acp_checkout.ports import OrderBackend
from services.merchant.database import OrderItemRow, OrderRow

logger = logging.getLogger(__name__)


class SqlOrderBackend(OrderBackend):
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        tax_rate: Decimal = Decimal("0.08"),
        base_url: str = "https://shop.example.com",
    ):
        self.sessionmaker = sessionmaker
        self.tax_rate = tax_rate
        self.base_url = base_url.rstrip("/")

    async def _get(self, db: AsyncSession, order_id: str) -> OrderRow:
        row = await db.get(OrderRow, int(order_id))
        if row is None:
            raise LookupError(f"Order {order_id} does not exist")
        return row

    async def _update(self, order_id: str, **values: Any) -> None:
        async with self.sessionmaker() as db:
            row = await self._get(db, order_id)
            for key, value in values.items():
                setattr(row, key, value)
            await db.commit()

    async def create(self) -> str:
        async with self.sessionmaker() as db:
            row = OrderRow(status="draft", order_meta={})
            db.add(row)
            await db.commit()
            return str(row.id)

    async def add_item(self, order_id: str, item: ValidatedLineItem) -> None:
        async with self.sessionmaker() as db:
            await self._get(db, order_id)
            db.add(
                OrderItemRow(
                    order_id=int(order_id),
                    product_id=item.product_ref,
                    sku=item.sku,
                    title=item.title,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
            )
            await db.commit()

    async def clear_items(self, order_id: str) -> None:
        async with self.sessionmaker() as db:
            await db.execute(delete(OrderItemRow).where(OrderItemRow.order_id == int(order_id)))
            await db.commit()

    async def set_currency(self, order_id: str, currency: str) -> None:
        await self._update(order_id, currency=currency)

    async def set_billing_email(self, order_id: str, email: str) -> None:
        await self._update(order_id, billing_email=email)

    async def set_metadata(self, order_id: str, key: str, value: Any) -> None:
        async with self.sessionmaker() as db:
            row = await self._get(db, order_id)
            row.order_meta = {**(row.order_meta or {}), key: value}
            await db.commit()

    async def set_status(self, order_id: str, status: str) -> None:
        await self._update(order_id, status=status)

    async def calculate_totals(self, order_id: str) -> OrderTotals:
        async with self.sessionmaker() as db:
            row = await self._get(db, order_id)
            items = (
                await db.execute(select(OrderItemRow).where(OrderItemRow.order_id == int(order_id)))
            ).scalars().all()
            subtotal = sum((Decimal(i.unit_price) * i.quantity for i in items), Decimal("0"))
            tax = (subtotal * self.tax_rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)
            row.tax = tax
            row.total = subtotal + tax
            await db.commit()
            return OrderTotals(tax=tax, total=subtotal + tax)

    async def save(self, order_id: str) -> None:
        async with self.sessionmaker() as db:
            await self._get(db, order_id)

    async def get_checkout_url(self, order_id: str) -> str:
        return f"{self.base_url}/checkout/order-pay/{order_id}/?pay_for_order=true"

    async def capture_payment(self, order_id: str) -> CaptureResult:
        async with self.sessionmaker() as db:
            row = await self._get(db, order_id)
            has_items = (
                await db.execute(
                    select(OrderItemRow.id).where(OrderItemRow.order_id == int(order_id)).limit(1)
                )
            ).first() is not None
            if row.status != "pending" or not has_items:
                logger.warning("Refusing capture for order %s in status %s", order_id, row.status)
                return CaptureResult(
                    success=False,
                    message=f"Order {order_id} is not payable (status '{row.status}')",
                )
            row.status = "processing"
            await db.commit()
            return CaptureResult(success=True)

    async def cancel(self, order_id: str) -> None:
        await self._update(order_id, status="cancelled")
