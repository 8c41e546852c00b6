"""
Order projection: the only place that talks to the `OrderBackend`.

Maps validated session contents onto backend calls and maps the backend's
answers (order id, authoritative tax, checkout URL) back into session fields.
Every backend call is bounded by a timeout; expiry and unexpected backend
faults surface as `BackendUnavailable`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, Sequence, TypeVar

from acp_checkout.errors import ACPCheckoutError, BackendUnavailable, PaymentCaptureFailed
from acp_checkout.models import OrderTotals, ValidatedLineItem
from acp_checkout.ports import OrderBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

PENDING_STATUS = "pending"
COMPLETED_STATUS = "completed"
CANCELED_STATUS = "cancelled"

RAW_PAYLOAD_META = "_agentic_raw_payload"
IDEMPOTENCY_KEY_META = "_agentic_idempotency_key"
REQUEST_ID_META = "_agentic_request_id"


@dataclass
class MaterializedOrder:
    order_id: str
    totals: OrderTotals
    checkout_url: str


class OrderProjection:
    def __init__(self, backend: OrderBackend, timeout: float = 5.0):
        self.backend = backend
        self.timeout = timeout

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Order backend timed out during %s after %.1fs", operation, self.timeout)
            raise BackendUnavailable(
                f"Order backend did not answer '{operation}' within {self.timeout}s"
            ) from exc
        except ACPCheckoutError:
            raise
        except Exception as exc:
            logger.error("Order backend failed during %s: %s", operation, exc)
            raise BackendUnavailable(f"Order backend failed during '{operation}'") from exc

    async def _write_contents(
        self,
        order_id: str,
        items: Sequence[ValidatedLineItem],
        currency: str,
        email: Optional[str],
        metadata: dict[str, Any],
    ) -> MaterializedOrder:
        for item in items:
            await self._call("add_item", self.backend.add_item(order_id, item))
        await self._call("set_currency", self.backend.set_currency(order_id, currency))
        if email:
            await self._call("set_billing_email", self.backend.set_billing_email(order_id, email))
        for key, value in metadata.items():
            if value is None:
                continue
            if isinstance(value, (dict, list)):
                value = json.dumps(value, sort_keys=True, default=str)
            await self._call("set_metadata", self.backend.set_metadata(order_id, key, value))
        await self._call("set_status", self.backend.set_status(order_id, PENDING_STATUS))
        totals = await self._call("calculate_totals", self.backend.calculate_totals(order_id))
        await self._call("save", self.backend.save(order_id))
        checkout_url = await self._call("get_checkout_url", self.backend.get_checkout_url(order_id))
        return MaterializedOrder(order_id=order_id, totals=totals, checkout_url=checkout_url)

    async def open_order(self) -> str:
        """Create an empty backing order and return its id."""
        order_id = await self._call("create", self.backend.create())
        logger.info("Created backing order %s", order_id)
        return order_id

    async def materialize(
        self,
        order_id: str,
        items: Sequence[ValidatedLineItem],
        currency: str,
        email: Optional[str],
        metadata: dict[str, Any],
    ) -> MaterializedOrder:
        """Fill a freshly opened order with `items` and mark it pending."""
        return await self._write_contents(order_id, items, currency, email, metadata)

    async def refresh(
        self,
        order_id: str,
        items: Sequence[ValidatedLineItem],
        currency: str,
        email: Optional[str],
        metadata: dict[str, Any],
        previous_items: Optional[Sequence[ValidatedLineItem]] = None,
    ) -> MaterializedOrder:
        """
        Replace the contents of an existing order and recompute its totals.

        If a backend call fails midway and `previous_items` is given, the
        order is rewritten with `previous_items` before the error propagates,
        so it keeps matching the stored session.
        """
        try:
            await self._call("clear_items", self.backend.clear_items(order_id))
            return await self._write_contents(order_id, items, currency, email, metadata)
        except ACPCheckoutError:
            if previous_items is not None:
                await self._restore_items(order_id, previous_items)
            raise

    async def _restore_items(self, order_id: str, items: Sequence[ValidatedLineItem]) -> None:
        try:
            await self._call("clear_items", self.backend.clear_items(order_id))
            for item in items:
                await self._call("add_item", self.backend.add_item(order_id, item))
            await self._call("calculate_totals", self.backend.calculate_totals(order_id))
            await self._call("save", self.backend.save(order_id))
        except ACPCheckoutError as exc:
            logger.error(
                "Could not restore items of order %s after a failed update: %s",
                order_id,
                exc.message,
            )
        else:
            logger.info("Restored %d item(s) on order %s after a failed update", len(items), order_id)

    async def capture(self, order_id: str) -> None:
        """Charge the order. Raises `PaymentCaptureFailed` when the backend declines."""
        result = await self._call("capture_payment", self.backend.capture_payment(order_id))
        if not result.success:
            logger.warning("Payment capture rejected for order %s: %s", order_id, result.message)
            raise PaymentCaptureFailed(
                result.message or f"Payment capture failed for order {order_id}"
            )

    async def mark_completed(self, order_id: str) -> bool:
        """
        Record a captured payment on the order.

        Payment has already been taken at this point, so a failure here is
        logged for follow-up and reported as `False` instead of raised.
        """
        try:
            await self._call("set_status", self.backend.set_status(order_id, COMPLETED_STATUS))
            await self._call("save", self.backend.save(order_id))
        except ACPCheckoutError as exc:
            logger.error(
                "Payment captured for order %s but marking it completed failed: %s",
                order_id,
                exc.message,
            )
            return False
        return True

    async def cancel(self, order_id: str) -> None:
        await self._call("cancel", self.backend.cancel(order_id))

    async def discard(self, order_id: str) -> None:
        """Cancel an order that never got a session. Failures are only logged."""
        try:
            await self.cancel(order_id)
        except ACPCheckoutError as exc:
            logger.error("Could not cancel orphaned order %s: %s", order_id, exc.message)
        else:
            logger.info("Canceled orphaned order %s", order_id)
