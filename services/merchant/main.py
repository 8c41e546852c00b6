"""
Merchant Service — FastAPI app serving ACP checkout sessions.

Catalog, orders and sessions live in the service database. When
`ACP_ORDER_SERVICE_URL` is set, orders are delegated to that remote order
service instead.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from acp_checkout.config import Settings
from acp_checkout.http_backend import HttpOrderBackend
from acp_checkout.logging_config import setup_logging
from acp_checkout.ports import OrderBackend
from acp_checkout.router import create_checkout_router
from acp_checkout.session import CheckoutSessionService
from services.merchant.catalog import SqlProductCatalog
from services.merchant.database import init_db, make_engine, make_sessionmaker
from services.merchant.orders import SqlOrderBackend
from services.merchant.sessions import SqlSessionStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    engine = make_engine(settings.database_url)
    sessionmaker = make_sessionmaker(engine)

    backend: OrderBackend
    if settings.order_service_url:
        backend = HttpOrderBackend(
            settings.order_service_url,
            auth_token=settings.bearer_key,
            timeout=settings.backend_timeout,
        )
    else:
        backend = SqlOrderBackend(sessionmaker, tax_rate=settings.tax_rate)

    service = CheckoutSessionService(
        catalog=SqlProductCatalog(sessionmaker),
        backend=backend,
        store=SqlSessionStore(sessionmaker),
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(engine)
        logger.info(
            "Merchant service ready (orders via %s)",
            "remote order service" if settings.order_service_url else "database",
        )
        yield
        if isinstance(backend, HttpOrderBackend):
            await backend.aclose()
        await engine.dispose()

    app = FastAPI(
        title="ACP Merchant Service",
        description="Merchant-side Agentic Commerce Protocol checkout sessions",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sessionmaker = sessionmaker
    app.state.checkout_service = service

    app.include_router(create_checkout_router(service, settings))

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "merchant"}

    return app


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
