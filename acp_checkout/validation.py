"""
Item validation and request-field normalization.

`validate_line_items` turns raw cart entries into `ValidatedLineItem`s using
the product catalog. Quantities below 1 are clamped to 1, and stock
shortfalls are flagged on the item (`in_stock=False`) instead of failing the
request, so the session can still be shown with an explanatory message.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Optional, Sequence
from urllib.parse import urlsplit

from acp_checkout.errors import (
    InvalidCurrency,
    InvalidCustomerEmail,
    InvalidItemId,
    InvalidPrice,
    InvalidReturnUrl,
    MissingItems,
    ProductNotFound,
)
from acp_checkout.models import CatalogProduct, LineItemRequest, ValidatedLineItem
from acp_checkout.ports import ProductCatalog

logger = logging.getLogger(__name__)

CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def parse_product_ref(raw: object) -> Optional[int]:
    """Return the positive integer id behind `raw`, or None if it is not one."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    if isinstance(raw, str):
        candidate = raw.strip()
        if candidate.isdigit() and int(candidate) > 0:
            return int(candidate)
    return None


def _in_stock(product: CatalogProduct, quantity: int) -> bool:
    if product.manage_stock:
        return (product.stock_quantity or 0) >= quantity
    return product.in_stock


async def validate_line_items(
    items: Optional[Sequence[LineItemRequest]],
    catalog: ProductCatalog,
) -> list[ValidatedLineItem]:
    """
    Validate cart entries in order, failing fast on the first bad entry.

    Raises:
        MissingItems: no items, or an empty list.
        InvalidItemId: an entry has no positive numeric id.
        ProductNotFound: the catalog does not know the id.
        InvalidPrice: an explicit unit price is negative.
    """
    if not items:
        raise MissingItems("You must provide at least one item.", param="$.items")

    validated: list[ValidatedLineItem] = []
    for index, item in enumerate(items):
        product_id = parse_product_ref(item.product_ref)
        if product_id is None:
            raise InvalidItemId(
                f"Item at index {index} must have a numeric ID.",
                param=f"$.items[{index}].id",
            )

        product = await catalog.lookup(product_id)
        if product is None:
            raise ProductNotFound(
                f"Product ID {product_id} not found.",
                param=f"$.items[{index}].id",
            )

        quantity = 1 if item.quantity is None else max(1, int(item.quantity))

        if item.unit_price is not None:
            if item.unit_price < 0:
                raise InvalidPrice(
                    f"Item at index {index} has a negative price.",
                    param=f"$.items[{index}].price",
                )
            unit_price = Decimal(item.unit_price)
        else:
            unit_price = product.price

        in_stock = _in_stock(product, quantity)
        if not in_stock:
            logger.info(
                "Product %s short on stock (requested %d, available %s)",
                product_id,
                quantity,
                product.stock_quantity,
            )

        validated.append(
            ValidatedLineItem(
                product_ref=str(product_id),
                quantity=quantity,
                unit_price=unit_price,
                sku=product.sku,
                title=product.title,
                in_stock=in_stock,
                stock_quantity=product.stock_quantity if product.manage_stock else None,
            )
        )
    return validated


def normalize_currency(raw: Optional[str], default: str) -> str:
    if raw is None or not raw.strip():
        return default.upper()
    currency = raw.strip().upper()
    if not CURRENCY_RE.match(currency):
        raise InvalidCurrency(
            "Currency must be a 3-letter ISO code (e.g., USD).",
            param="$.currency",
        )
    return currency


def validate_return_url(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    url = raw.strip()
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidReturnUrl("return_url is not a valid URL.", param="$.return_url")
    return url


def validate_customer_email(raw: Optional[str]) -> Optional[str]:
    if raw is None or not raw.strip():
        return None
    email = raw.strip()
    if not EMAIL_RE.match(email):
        raise InvalidCustomerEmail(
            "customer.email must be a valid email address.",
            param="$.customer.email",
        )
    return email
