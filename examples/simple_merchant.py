"""
Simple example showing how to use acp-checkout to serve ACP checkout sessions.

This minimal example shows the core pattern:
1. Describe your catalog and order system (here: the in-memory versions)
2. Build a CheckoutSessionService with explicit Settings
3. Mount the checkout router in your FastAPI app

Try it:
    ACP_BEARER_KEY=demo-token python examples/simple_merchant.py

    curl -X POST http://localhost:8000/checkout_sessions \\
      -H "Authorization: Bearer demo-token" -H "Content-Type: application/json" \\
      -d '{"items": [{"id": 13, "quantity": 2, "price": 85}], "currency": "USD"}'
"""

from decimal import Decimal

from fastapi import FastAPI

from acp_checkout import (
    CatalogProduct,
    CheckoutSessionService,
    InMemoryOrderBackend,
    InMemoryProductCatalog,
    InMemorySessionStore,
    Settings,
    create_checkout_router,
)
from acp_checkout.logging_config import setup_logging

settings = Settings.from_env()
if not settings.bearer_key:
    settings = settings.model_copy(update={"bearer_key": "demo-token"})

catalog = InMemoryProductCatalog(
    [
        CatalogProduct(id="13", title="Linen Throw Pillow", sku="PIL-013", price=Decimal("85.00")),
        CatalogProduct(
            id="14",
            title="Oak Side Table",
            sku="TBL-014",
            price=Decimal("149.00"),
            manage_stock=True,
            stock_quantity=3,
        ),
    ]
)
service = CheckoutSessionService(
    catalog=catalog,
    backend=InMemoryOrderBackend(tax_rate=settings.tax_rate),
    store=InMemorySessionStore(),
    settings=settings,
)

app = FastAPI(title="Simple ACP Merchant")

# Mount ACP endpoints - this gives you 5 routes automatically:
# POST   /checkout_sessions
# GET    /checkout_sessions/{id}
# POST   /checkout_sessions/{id}
# POST   /checkout_sessions/{id}/complete
# POST   /checkout_sessions/{id}/cancel
app.include_router(create_checkout_router(service, settings))


@app.get("/")
async def root():
    return {
        "message": "Simple ACP Merchant",
        "endpoints": [
            "POST /checkout_sessions - Create checkout",
            "GET /checkout_sessions/{id} - Get checkout",
            "POST /checkout_sessions/{id} - Update checkout",
            "POST /checkout_sessions/{id}/complete - Complete order",
            "POST /checkout_sessions/{id}/cancel - Cancel checkout",
        ],
    }


if __name__ == "__main__":
    import uvicorn

    setup_logging(settings.log_level)
    print("Starting Simple ACP Merchant on http://localhost:8000")
    print("API docs at http://localhost:8000/docs")
    uvicorn.run(app, host="0.0.0.0", port=8000)
