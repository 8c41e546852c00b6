"""
Checkout session state machine.

    create ──► not_ready_for_payment ◄──► ready_for_payment ──► processing_for_payment ──► completed
                        │                         │
                        └──────── cancel ─────────┴──► canceled

Status is always derived from session contents (address present and no
blocking messages → ready_for_payment), never set by callers. Completed and
canceled sessions are read-only.

Mutations of one session are serialized with a per-session lock, and the
"look up idempotency key, else create" step runs under a per-key lock, so a
key can never produce two backing orders.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from acp_checkout.config import Settings
from acp_checkout.diagnostics import build_messages, has_blocking_errors
from acp_checkout.errors import (
    ACPCheckoutError,
    BackendUnavailable,
    InvalidSessionState,
    PaymentCaptureFailed,
    SessionNotFound,
)
from acp_checkout.models import (
    MUTABLE_STATUSES,
    TERMINAL_STATUSES,
    Address,
    Buyer,
    CheckoutSession,
    CheckoutSessionCreateRequest,
    CheckoutSessionUpdateRequest,
    CheckoutStatus,
    CompletionResult,
    Customer,
    LineItemRequest,
    Link,
    LinkType,
    MessageInfo,
    MessageLevel,
    ValidatedLineItem,
)
from acp_checkout.ports import OrderBackend, ProductCatalog
from acp_checkout.pricing import compute_totals, price_line_items
from acp_checkout.projection import (
    IDEMPOTENCY_KEY_META,
    RAW_PAYLOAD_META,
    REQUEST_ID_META,
    MaterializedOrder,
    OrderProjection,
)
from acp_checkout.store import SessionStore
from acp_checkout.validation import (
    normalize_currency,
    validate_customer_email,
    validate_line_items,
    validate_return_url,
)

logger = logging.getLogger(__name__)

SESSION_ID_PREFIX = "checkout_session_"


def session_id_for(order_id: str) -> str:
    return f"{SESSION_ID_PREFIX}{order_id}"


def derive_status(
    fulfillment_address: Optional[Address],
    messages: Sequence[MessageInfo],
) -> CheckoutStatus:
    if fulfillment_address is not None and not has_blocking_errors(messages):
        return CheckoutStatus.READY_FOR_PAYMENT
    return CheckoutStatus.NOT_READY_FOR_PAYMENT


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CheckoutSessionService:
    """Owns the lifecycle of checkout sessions."""

    def __init__(
        self,
        catalog: ProductCatalog,
        backend: OrderBackend,
        store: SessionStore,
        settings: Settings,
    ):
        self.catalog = catalog
        self.store = store
        self.settings = settings
        self.projection = OrderProjection(backend, timeout=settings.backend_timeout)
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        # idempotency key -> order opened by a create that failed midway
        self._unfinished_orders: dict[str, str] = {}

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        return lock

    # ── Assembly ────────────────────────────────────────────────────────

    def _links(self, checkout_url: Optional[str]) -> list[Link]:
        links = []
        if self.settings.terms_url:
            links.append(Link(type=LinkType.TERMS_OF_USE, url=self.settings.terms_url))
        if self.settings.privacy_url:
            links.append(Link(type=LinkType.PRIVACY_POLICY, url=self.settings.privacy_url))
        if checkout_url:
            links.append(Link(type=LinkType.PAYMENT, url=checkout_url))
        return links

    def _assemble(
        self,
        base: dict[str, Any],
        order: MaterializedOrder,
        items: Sequence[ValidatedLineItem],
        currency: str,
        fulfillment_address: Optional[Address],
    ) -> CheckoutSession:
        messages = build_messages(items, fulfillment_address)
        totals = compute_totals(
            items,
            tax=order.totals.tax,
            has_address=fulfillment_address is not None,
            fulfillment_fee=self.settings.fulfillment_fee,
            currency=currency,
        )
        return CheckoutSession(
            **base,
            id=session_id_for(order.order_id),
            order_id=order.order_id,
            status=derive_status(fulfillment_address, messages),
            currency=currency,
            line_items=price_line_items(items, currency),
            fulfillment_address=fulfillment_address,
            totals=totals,
            messages=messages,
            links=self._links(order.checkout_url),
            checkout_url=order.checkout_url,
        )

    async def _load(self, session_id: str) -> CheckoutSession:
        session = await self.store.get(session_id)
        if session is None:
            raise SessionNotFound(f"Checkout session {session_id} not found", param="$.id")
        return session

    # ── Operations ──────────────────────────────────────────────────────

    async def create(
        self,
        request: CheckoutSessionCreateRequest,
        idempotency_key: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> tuple[CheckoutSession, bool]:
        """
        Create a session and its backing order.

        Returns `(session, replayed)`. When `idempotency_key` already belongs
        to a session, that session is returned as stored, with an
        informational `idempotent_replay` message, and nothing is created.
        """
        if not idempotency_key:
            return await self._create(request, None, request_id), False

        async with self._lock_for(f"idempotency:{idempotency_key}"):
            existing = await self.store.get_by_idempotency_key(idempotency_key)
            if existing is not None:
                logger.info(
                    "Idempotent replay of %s for key %s", existing.id, idempotency_key
                )
                existing.messages.append(
                    MessageInfo(
                        type=MessageLevel.INFO,
                        code="idempotent_replay",
                        content="Returning the session previously created for this Idempotency-Key.",
                    )
                )
                return existing, True
            return await self._create(request, idempotency_key, request_id), False

    async def _create(
        self,
        request: CheckoutSessionCreateRequest,
        idempotency_key: Optional[str],
        request_id: Optional[str],
    ) -> CheckoutSession:
        items = await validate_line_items(request.items, self.catalog)
        currency = normalize_currency(request.currency, self.settings.default_currency)
        return_url = validate_return_url(request.return_url)
        email = validate_customer_email(request.customer.email if request.customer else None)
        if email is None and request.buyer is not None:
            email = validate_customer_email(request.buyer.email)

        raw_payload = request.model_dump(mode="json", by_alias=True, exclude_unset=True)
        metadata = {
            RAW_PAYLOAD_META: raw_payload,
            IDEMPOTENCY_KEY_META: idempotency_key,
            REQUEST_ID_META: request_id,
        }
        order_id = self._unfinished_orders.pop(idempotency_key, None) if idempotency_key else None
        reused = order_id is not None
        if order_id is None:
            order_id = await self.projection.open_order()
        try:
            if reused:
                logger.info(
                    "Reusing order %s left by a failed create for key %s", order_id, idempotency_key
                )
                order = await self.projection.refresh(order_id, items, currency, email, metadata)
            else:
                order = await self.projection.materialize(order_id, items, currency, email, metadata)
        except ACPCheckoutError:
            if idempotency_key:
                self._unfinished_orders[idempotency_key] = order_id
            else:
                await self.projection.discard(order_id)
            raise

        now = _now()
        session = self._assemble(
            {
                "buyer": request.buyer,
                "customer": request.customer,
                "fulfillment_option_id": request.fulfillment_option_id,
                "return_url": return_url,
                "idempotency_key": idempotency_key,
                "raw_payload": raw_payload,
                "created_at": now,
                "updated_at": now,
            },
            order,
            items,
            currency,
            request.fulfillment_address,
        )
        stored = await self.store.add(session)
        logger.info("Created checkout session %s (%s)", stored.id, stored.status.value)
        return stored

    async def get(self, session_id: str) -> CheckoutSession:
        return await self._load(session_id)

    async def update(
        self,
        session_id: str,
        request: CheckoutSessionUpdateRequest,
    ) -> CheckoutSession:
        """Apply the fields present in `request`, then re-derive everything else."""
        async with self._lock_for(session_id):
            session = await self._load(session_id)
            if session.status not in MUTABLE_STATUSES:
                raise InvalidSessionState(
                    f"Session is '{session.status.value}' and can no longer be updated"
                )

            present = request.model_fields_set
            if "items" in present:
                items = await validate_line_items(request.items, self.catalog)
            else:
                items = await validate_line_items(
                    [
                        LineItemRequest(
                            product_ref=li.product_ref,
                            quantity=li.quantity,
                            unit_price=li.unit_price,
                        )
                        for li in session.line_items
                    ],
                    self.catalog,
                )

            address = (
                request.fulfillment_address
                if "fulfillment_address" in present
                else session.fulfillment_address
            )
            buyer: Optional[Buyer] = request.buyer if "buyer" in present else session.buyer
            customer: Optional[Customer] = (
                request.customer if "customer" in present else session.customer
            )
            fulfillment_option_id = (
                request.fulfillment_option_id
                if "fulfillment_option_id" in present
                else session.fulfillment_option_id
            )
            email = validate_customer_email(customer.email if customer else None)
            if email is None and buyer is not None:
                email = validate_customer_email(buyer.email)

            raw_payload = request.model_dump(mode="json", by_alias=True, exclude_unset=True)
            order = await self.projection.refresh(
                session.order_id,
                items,
                session.currency,
                email,
                metadata={RAW_PAYLOAD_META: raw_payload},
                previous_items=[
                    ValidatedLineItem.model_validate(
                        li.model_dump(include=set(ValidatedLineItem.model_fields))
                    )
                    for li in session.line_items
                ],
            )

            updated = self._assemble(
                {
                    "buyer": buyer,
                    "customer": customer,
                    "fulfillment_option_id": fulfillment_option_id,
                    "return_url": session.return_url,
                    "idempotency_key": session.idempotency_key,
                    "raw_payload": raw_payload,
                    "created_at": session.created_at,
                    "updated_at": _now(),
                    "version": session.version,
                },
                order,
                items,
                session.currency,
                address,
            )
            stored = await self.store.save(updated)
            logger.info(
                "Updated checkout session %s: %s -> %s",
                stored.id,
                session.status.value,
                stored.status.value,
            )
            return stored

    async def complete(self, session_id: str) -> CompletionResult:
        """
        Capture payment for a ready session.

        The session is `processing_for_payment` while the capture is in
        flight. If the capture itself fails it goes back to `ready_for_payment`
        and the error propagates; the caller decides whether to retry. Once the
        capture succeeds the session always completes.
        """
        async with self._lock_for(session_id):
            session = await self._load(session_id)
            if session.status != CheckoutStatus.READY_FOR_PAYMENT:
                raise InvalidSessionState(
                    f"Session is '{session.status.value}', must be 'ready_for_payment'"
                )

            processing = await self.store.save(
                session.model_copy(
                    update={"status": CheckoutStatus.PROCESSING_FOR_PAYMENT, "updated_at": _now()}
                )
            )
            try:
                await self.projection.capture(processing.order_id)
            except (PaymentCaptureFailed, BackendUnavailable):
                await self.store.save(
                    processing.model_copy(
                        update={"status": CheckoutStatus.READY_FOR_PAYMENT, "updated_at": _now()}
                    )
                )
                logger.warning("Capture failed for %s; session back to ready_for_payment", session_id)
                raise

            # Captured: the session completes whatever the order bookkeeping does.
            await self.projection.mark_completed(processing.order_id)
            completed = await self.store.save(
                processing.model_copy(
                    update={"status": CheckoutStatus.COMPLETED, "updated_at": _now()}
                )
            )
            logger.info("Completed checkout session %s (order %s)", completed.id, completed.order_id)
            return CompletionResult(ok=True, order_id=completed.order_id, status=completed.status)

    async def cancel(self, session_id: str) -> CompletionResult:
        async with self._lock_for(session_id):
            session = await self._load(session_id)
            if session.status in TERMINAL_STATUSES:
                raise InvalidSessionState(f"Session is already {session.status.value}")

            await self.projection.cancel(session.order_id)
            canceled = await self.store.save(
                session.model_copy(
                    update={"status": CheckoutStatus.CANCELED, "updated_at": _now()}
                )
            )
            logger.info("Canceled checkout session %s (order %s)", canceled.id, canceled.order_id)
            return CompletionResult(ok=True, order_id=canceled.order_id, status=canceled.status)
