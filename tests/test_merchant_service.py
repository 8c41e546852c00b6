"""Tests for the database-backed merchant service."""

from decimal import Decimal
from http import HTTPStatus

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from acp_checkout.config import Settings
from acp_checkout.errors import ConcurrentModification
from acp_checkout.models import (
    CheckoutSessionCreateRequest,
    CheckoutSessionUpdateRequest,
    CheckoutStatus,
    TotalType,
)
from acp_checkout.session import CheckoutSessionService
from services.merchant.catalog import SqlProductCatalog
from services.merchant.database import OrderRow, ProductRow, init_db, make_engine, make_sessionmaker
from services.merchant.main import create_app
from services.merchant.orders import SqlOrderBackend
from services.merchant.sessions import SqlSessionStore


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'merchant.db'}"


async def _setup(database_url, settings):
    engine = make_engine(database_url)
    await init_db(engine)
    sessionmaker = make_sessionmaker(engine)
    async with sessionmaker() as db:
        db.add(ProductRow(id=13, name="Linen Throw Pillow", sku="PIL-013", price=Decimal("85.00")))
        db.add(
            ProductRow(
                id=14,
                name="Oak Side Table",
                sku="TBL-014",
                price=Decimal("149.00"),
                manage_stock=True,
                stock_quantity=1,
            )
        )
        await db.commit()
    service = CheckoutSessionService(
        catalog=SqlProductCatalog(sessionmaker),
        backend=SqlOrderBackend(sessionmaker, tax_rate=Decimal("0.08")),
        store=SqlSessionStore(sessionmaker),
        settings=settings,
    )
    return engine, sessionmaker, service


@pytest.mark.asyncio
async def test_checkout_flow_against_database(database_url, settings):
    engine, sessionmaker, service = await _setup(database_url, settings)
    try:
        session, _ = await service.create(
            CheckoutSessionCreateRequest.model_validate(
                {"items": [{"id": "13", "quantity": 2, "price": 85}, {"id": 14, "quantity": 2}]}
            ),
            idempotency_key="db-key",
        )
        assert session.status == CheckoutStatus.NOT_READY_FOR_PAYMENT
        assert [m.code for m in session.messages] == ["missing_fulfillment_address", "out_of_stock"]

        replay, replayed = await service.create(
            CheckoutSessionCreateRequest.model_validate({"items": [{"id": 13}]}),
            idempotency_key="db-key",
        )
        assert replayed
        assert replay.id == session.id

        updated = await service.update(
            session.id,
            CheckoutSessionUpdateRequest.model_validate(
                {
                    "items": [{"id": 13, "quantity": 2, "price": 85}],
                    "fulfillment_address": {"line_one": "1 Main St", "country": "US"},
                }
            ),
        )
        assert updated.status == CheckoutStatus.READY_FOR_PAYMENT
        amounts = {t.type: t.amount for t in updated.totals}
        assert amounts[TotalType.TAX] == Decimal("13.60")
        assert amounts[TotalType.TOTAL] == Decimal("191.59")

        result = await service.complete(session.id)
        assert result.status == CheckoutStatus.COMPLETED

        async with sessionmaker() as db:
            order = await db.get(OrderRow, int(session.order_id))
            assert order.status == "completed"
            assert order.order_meta["_agentic_idempotency_key"] == "db-key"
            assert len((await db.execute(select(OrderRow))).scalars().all()) == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_stale_version_is_rejected(database_url, settings):
    engine, _, service = await _setup(database_url, settings)
    try:
        session, _ = await service.create(
            CheckoutSessionCreateRequest.model_validate({"items": [{"id": 13}]})
        )
        await service.store.save(session)
        with pytest.raises(ConcurrentModification):
            await service.store.save(session)
    finally:
        await engine.dispose()


def test_app_health_and_auth(database_url):
    app = create_app(Settings(database_url=database_url, bearer_key="svc-token"))
    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok", "service": "merchant"}

        response = client.post("/checkout_sessions", json={"items": [{"id": 13}]})
        assert response.status_code == HTTPStatus.UNAUTHORIZED

        response = client.post(
            "/checkout_sessions",
            json={"items": [{"id": 13}]},
            headers={"Authorization": "Bearer svc-token"},
        )
        assert response.status_code == HTTPStatus.NOT_FOUND
        assert response.json()["error"]["code"] == "product_not_found"
