"""
Checkout session storage.

`SessionStore` is what the session service persists into. Saves carry the
version the caller read; a store rejects a save whose version is stale with
`ConcurrentModification`, which guards writers in other processes that the
in-process locks of the service cannot see.
"""

from __future__ import annotations

import abc
from typing import Optional

from acp_checkout.errors import ConcurrentModification
from acp_checkout.models import CheckoutSession


class SessionStore(abc.ABC):
    @abc.abstractmethod
    async def get(self, session_id: str) -> Optional[CheckoutSession]:
        ...

    @abc.abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[CheckoutSession]:
        ...

    @abc.abstractmethod
    async def add(self, session: CheckoutSession) -> CheckoutSession:
        """Insert a new session (version 1)."""
        ...

    @abc.abstractmethod
    async def save(self, session: CheckoutSession) -> CheckoutSession:
        """
        Persist `session`, whose `version` is the one read before mutating.

        Returns the stored copy with the version bumped.
        """
        ...


class InMemorySessionStore(SessionStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self._sessions: dict[str, CheckoutSession] = {}
        self._by_key: dict[str, str] = {}

    async def get(self, session_id: str) -> Optional[CheckoutSession]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[CheckoutSession]:
        session_id = self._by_key.get(idempotency_key)
        return await self.get(session_id) if session_id else None

    async def add(self, session: CheckoutSession) -> CheckoutSession:
        stored = session.model_copy(deep=True, update={"version": 1})
        self._sessions[stored.id] = stored
        if stored.idempotency_key:
            self._by_key[stored.idempotency_key] = stored.id
        return stored.model_copy(deep=True)

    async def save(self, session: CheckoutSession) -> CheckoutSession:
        current = self._sessions.get(session.id)
        if current is None or current.version != session.version:
            raise ConcurrentModification(
                f"Checkout session {session.id} was modified concurrently"
            )
        stored = session.model_copy(deep=True, update={"version": session.version + 1})
        self._sessions[stored.id] = stored
        return stored.model_copy(deep=True)
