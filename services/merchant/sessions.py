"""
Checkout session store backed by the `checkout_sessions` table.

Saves are conditional on the stored `version` (optimistic concurrency), so
service replicas sharing the database cannot interleave writes to one
session.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acp_checkout.errors import ConcurrentModification
from acp_checkout.models import CheckoutSession
from acp_checkout.store import SessionStore
from services.merchant.database import CheckoutSessionRow


class SqlSessionStore(SessionStore):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def get(self, session_id: str) -> Optional[CheckoutSession]:
        async with self.sessionmaker() as db:
            row = await db.get(CheckoutSessionRow, session_id)
            return CheckoutSession.model_validate(row.session_data) if row else None

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[CheckoutSession]:
        async with self.sessionmaker() as db:
            row = (
                await db.execute(
                    select(CheckoutSessionRow).where(
                        CheckoutSessionRow.idempotency_key == idempotency_key
                    )
                )
            ).scalar_one_or_none()
            return CheckoutSession.model_validate(row.session_data) if row else None

    async def add(self, session: CheckoutSession) -> CheckoutSession:
        stored = session.model_copy(update={"version": 1})
        async with self.sessionmaker() as db:
            db.add(
                CheckoutSessionRow(
                    id=stored.id,
                    order_id=stored.order_id,
                    idempotency_key=stored.idempotency_key,
                    status=stored.status.value,
                    version=1,
                    session_data=stored.model_dump(mode="json"),
                )
            )
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise ConcurrentModification(
                    f"Checkout session {stored.id} or its idempotency key already exists"
                ) from exc
        return stored

    async def save(self, session: CheckoutSession) -> CheckoutSession:
        stored = session.model_copy(update={"version": session.version + 1})
        async with self.sessionmaker() as db:
            result = await db.execute(
                update(CheckoutSessionRow)
                .where(
                    CheckoutSessionRow.id == session.id,
                    CheckoutSessionRow.version == session.version,
                )
                .values(
                    status=stored.status.value,
                    version=stored.version,
                    session_data=stored.model_dump(mode="json"),
                )
            )
            if result.rowcount != 1:
                await db.rollback()
                raise ConcurrentModification(
                    f"Checkout session {session.id} was modified concurrently"
                )
            await db.commit()
        return stored
