"""Shared fixtures for the checkout tests."""

from decimal import Decimal

import pytest

from acp_checkout.backends import InMemoryOrderBackend, InMemoryProductCatalog
from acp_checkout.config import Settings
from acp_checkout.models import Address, CatalogProduct
from acp_checkout.session import CheckoutSessionService
from acp_checkout.store import InMemorySessionStore


@pytest.fixture
def settings():
    return Settings(
        bearer_key="test-token",
        default_currency="USD",
        fulfillment_fee=Decimal("7.99"),
        tax_rate=Decimal("0.08"),
        backend_timeout=1.0,
    )


@pytest.fixture
def catalog():
    """Catalog with an untracked product (13), a tracked one (14) and a sold-out one (15)."""
    return InMemoryProductCatalog(
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
            CatalogProduct(
                id="15",
                title="Brass Floor Lamp",
                sku="LMP-015",
                price=Decimal("20.00"),
                in_stock=False,
            ),
        ]
    )


@pytest.fixture
def backend():
    return InMemoryOrderBackend(tax_rate=Decimal("0.08"))


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def service(catalog, backend, store, settings):
    return CheckoutSessionService(catalog=catalog, backend=backend, store=store, settings=settings)


@pytest.fixture
def address():
    return Address(
        name="Ada Lovelace",
        line_one="12 Analytical Way",
        city="London",
        state="LDN",
        country="GB",
        postal_code="N1 9GU",
    )
