"""
In-memory collaborators for development, demos and tests.

- `InMemoryProductCatalog`: dict-backed `ProductCatalog`
- `InMemoryOrderBackend`: dict-backed `OrderBackend` with a flat tax rate

Neither touches any external service.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any, Iterable, Optional

from acp_checkout.models import (
    CaptureResult,
    CatalogProduct,
    OrderTotals,
    ValidatedLineItem,
)
from acp_checkout.ports import OrderBackend, ProductCatalog


class InMemoryProductCatalog(ProductCatalog):
    def __init__(self, products: Iterable[CatalogProduct] = ()):
        self._products: dict[str, CatalogProduct] = {p.id: p for p in products}

    def add(self, product: CatalogProduct) -> None:
        self._products[product.id] = product

    async def lookup(self, product_id: int) -> Optional[CatalogProduct]:
        return self._products.get(str(product_id))


@dataclass
class InMemoryOrder:
    id: str
    items: list[ValidatedLineItem] = field(default_factory=list)
    currency: str = "USD"
    billing_email: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    status: str = "draft"
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    saved: bool = False


class InMemoryOrderBackend(OrderBackend):
    """
    Order backend kept in a dict.

    Tax is `tax_rate × Σ(unit_price × quantity)` rounded half-to-even to
    cents. Orders listed in `decline_orders` (or all orders, when
    `decline_all` is set) have their payment capture rejected.
    """

    def __init__(
        self,
        tax_rate: Decimal = Decimal("0.08"),
        base_url: str = "https://shop.example.com",
        start_id: int = 1000,
    ):
        self.tax_rate = tax_rate
        self.base_url = base_url.rstrip("/")
        self.orders: dict[str, InMemoryOrder] = {}
        self.decline_orders: set[str] = set()
        self.decline_all = False
        self._ids = itertools.count(start_id)

    def _order(self, order_id: str) -> InMemoryOrder:
        try:
            return self.orders[order_id]
        except KeyError:
            raise LookupError(f"Order {order_id} does not exist") from None

    async def create(self) -> str:
        order_id = str(next(self._ids))
        self.orders[order_id] = InMemoryOrder(id=order_id)
        return order_id

    async def add_item(self, order_id: str, item: ValidatedLineItem) -> None:
        self._order(order_id).items.append(item)

    async def clear_items(self, order_id: str) -> None:
        self._order(order_id).items.clear()

    async def set_currency(self, order_id: str, currency: str) -> None:
        self._order(order_id).currency = currency

    async def set_billing_email(self, order_id: str, email: str) -> None:
        self._order(order_id).billing_email = email

    async def set_metadata(self, order_id: str, key: str, value: Any) -> None:
        self._order(order_id).metadata[key] = value

    async def set_status(self, order_id: str, status: str) -> None:
        self._order(order_id).status = status

    async def calculate_totals(self, order_id: str) -> OrderTotals:
        order = self._order(order_id)
        subtotal = sum((i.unit_price * i.quantity for i in order.items), Decimal("0"))
        order.tax = (subtotal * self.tax_rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)
        order.total = subtotal + order.tax
        return OrderTotals(tax=order.tax, total=order.total)

    async def save(self, order_id: str) -> None:
        self._order(order_id).saved = True

    async def get_checkout_url(self, order_id: str) -> str:
        return f"{self.base_url}/checkout/order-pay/{order_id}/?pay_for_order=true"

    async def capture_payment(self, order_id: str) -> CaptureResult:
        order = self._order(order_id)
        if self.decline_all or order_id in self.decline_orders:
            return CaptureResult(success=False, message="Payment was declined by issuer")
        order.status = "processing"
        return CaptureResult(success=True)

    async def cancel(self, order_id: str) -> None:
        self._order(order_id).status = "cancelled"
