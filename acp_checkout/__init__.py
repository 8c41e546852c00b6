"""
ACP Checkout — merchant-side Agentic Commerce Protocol checkout sessions.

Turns agent-submitted carts into priced, policy-checked checkout sessions and
drives them through update, completion and cancellation against the
merchant's own catalog and order system.

Example usage for merchants:
    from acp_checkout import (
        CheckoutSessionService,
        InMemorySessionStore,
        Settings,
        create_checkout_router,
    )

    settings = Settings.from_env()
    service = CheckoutSessionService(MyCatalog(), MyOrderBackend(), InMemorySessionStore(), settings)
    app.include_router(create_checkout_router(service, settings))
"""

__version__ = "0.1.0"

from acp_checkout.models import (
    ACPError,
    ACPErrorResponse,
    Address,
    Buyer,
    CaptureResult,
    CatalogProduct,
    CheckoutSession,
    CheckoutSessionCreateRequest,
    CheckoutSessionUpdateRequest,
    CheckoutStatus,
    CompletionResult,
    Customer,
    LineItem,
    LineItemRequest,
    MessageInfo,
    MessageLevel,
    OrderTotals,
    Total,
    TotalType,
    ValidatedLineItem,
)
from acp_checkout.config import Settings
from acp_checkout.errors import ACPCheckoutError
from acp_checkout.ports import OrderBackend, ProductCatalog
from acp_checkout.store import InMemorySessionStore, SessionStore
from acp_checkout.session import CheckoutSessionService
from acp_checkout.router import create_checkout_router
from acp_checkout.backends import InMemoryOrderBackend, InMemoryProductCatalog

__all__ = [
    "__version__",
    # Core Models
    "ACPError",
    "ACPErrorResponse",
    "Address",
    "Buyer",
    "CaptureResult",
    "CatalogProduct",
    "CheckoutSession",
    "CheckoutSessionCreateRequest",
    "CheckoutSessionUpdateRequest",
    "CheckoutStatus",
    "CompletionResult",
    "Customer",
    "LineItem",
    "LineItemRequest",
    "MessageInfo",
    "MessageLevel",
    "OrderTotals",
    "Total",
    "TotalType",
    "ValidatedLineItem",
    # Configuration & errors
    "Settings",
    "ACPCheckoutError",
    # Collaborators
    "OrderBackend",
    "ProductCatalog",
    "SessionStore",
    "InMemorySessionStore",
    "InMemoryOrderBackend",
    "InMemoryProductCatalog",
    # Checkout core
    "CheckoutSessionService",
    "create_checkout_router",
]
