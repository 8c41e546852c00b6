"""
Collaborator interfaces consumed by the checkout core.

Merchants plug their catalog and order system in by subclassing
`ProductCatalog` and `OrderBackend`. Only `OrderProjection` talks to an
`OrderBackend`; only the item validator talks to a `ProductCatalog`.
"""

from __future__ import annotations

import abc
from typing import Any, Optional

from acp_checkout.models import (
    CaptureResult,
    CatalogProduct,
    OrderTotals,
    ValidatedLineItem,
)


class ProductCatalog(abc.ABC):
    """Read-only product lookup."""

    @abc.abstractmethod
    async def lookup(self, product_id: int) -> Optional[CatalogProduct]:
        """Return the product, or None when it does not exist."""
        ...


class OrderBackend(abc.ABC):
    """
    Authoritative order store and payment front-end.

    Mirrors the order operations of a shop system: an order is created empty,
    filled with items and attributes, then totals are calculated and the
    order saved.
    """

    @abc.abstractmethod
    async def create(self) -> str:
        """Create an empty order and return its identifier."""
        ...

    @abc.abstractmethod
    async def add_item(self, order_id: str, item: ValidatedLineItem) -> None:
        ...

    @abc.abstractmethod
    async def clear_items(self, order_id: str) -> None:
        ...

    @abc.abstractmethod
    async def set_currency(self, order_id: str, currency: str) -> None:
        ...

    @abc.abstractmethod
    async def set_billing_email(self, order_id: str, email: str) -> None:
        ...

    @abc.abstractmethod
    async def set_metadata(self, order_id: str, key: str, value: Any) -> None:
        ...

    @abc.abstractmethod
    async def set_status(self, order_id: str, status: str) -> None:
        ...

    @abc.abstractmethod
    async def calculate_totals(self, order_id: str) -> OrderTotals:
        """Compute tax and total for the order's current contents."""
        ...

    @abc.abstractmethod
    async def save(self, order_id: str) -> None:
        ...

    @abc.abstractmethod
    async def get_checkout_url(self, order_id: str) -> str:
        ...

    @abc.abstractmethod
    async def capture_payment(self, order_id: str) -> CaptureResult:
        ...

    @abc.abstractmethod
    async def cancel(self, order_id: str) -> None:
        ...
