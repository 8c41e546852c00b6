"""Tests for cart item validation and request-field normalization."""

from decimal import Decimal

import pytest

from acp_checkout.errors import (
    InvalidCurrency,
    InvalidCustomerEmail,
    InvalidItemId,
    InvalidPrice,
    InvalidReturnUrl,
    MissingItems,
    ProductNotFound,
)
from acp_checkout.models import LineItemRequest
from acp_checkout.validation import (
    normalize_currency,
    parse_product_ref,
    validate_customer_email,
    validate_line_items,
    validate_return_url,
)


def _items(*raw):
    return [LineItemRequest.model_validate(r) for r in raw]


@pytest.mark.asyncio
@pytest.mark.parametrize("items", [None, []])
async def test_missing_items_rejected(catalog, items):
    with pytest.raises(MissingItems):
        await validate_line_items(items, catalog)


@pytest.mark.parametrize("raw", [None, "", "abc", 0, -3, "1.5", "-2", True])
def test_parse_product_ref_rejects_non_positive_numeric(raw):
    assert parse_product_ref(raw) is None


@pytest.mark.parametrize("raw,expected", [(13, 13), ("13", 13), (" 7 ", 7)])
def test_parse_product_ref_accepts_positive_numeric(raw, expected):
    assert parse_product_ref(raw) == expected


@pytest.mark.asyncio
async def test_invalid_item_id_reports_index(catalog):
    with pytest.raises(InvalidItemId) as exc_info:
        await validate_line_items(_items({"id": 13}, {"id": "abc"}), catalog)
    assert exc_info.value.param == "$.items[1].id"
    assert "index 1" in exc_info.value.message


@pytest.mark.asyncio
async def test_missing_id_is_invalid(catalog):
    with pytest.raises(InvalidItemId):
        await validate_line_items(_items({"quantity": 2}), catalog)


@pytest.mark.asyncio
async def test_unknown_product_not_found(catalog):
    with pytest.raises(ProductNotFound) as exc_info:
        await validate_line_items(_items({"id": 999}), catalog)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_quantity_defaults_to_one_and_clamps(catalog):
    items = await validate_line_items(
        _items({"id": 13}, {"id": 13, "quantity": 0}, {"id": 13, "quantity": -5}, {"id": 13, "quantity": "4"}),
        catalog,
    )
    assert [i.quantity for i in items] == [1, 1, 1, 4]


@pytest.mark.asyncio
async def test_unit_price_from_request_or_catalog(catalog):
    items = await validate_line_items(_items({"id": 13, "price": 70}, {"id": "13"}), catalog)
    assert items[0].unit_price == Decimal("70")
    assert items[1].unit_price == Decimal("85.00")
    assert items[1].sku == "PIL-013"
    assert items[1].title == "Linen Throw Pillow"
    assert items[1].product_ref == "13"


@pytest.mark.asyncio
async def test_negative_price_rejected(catalog):
    with pytest.raises(InvalidPrice):
        await validate_line_items(_items({"id": 13, "price": -1}), catalog)


@pytest.mark.asyncio
async def test_stock_shortfall_is_flagged_not_raised(catalog):
    items = await validate_line_items(
        _items({"id": 14, "quantity": 3}, {"id": 14, "quantity": 5}, {"id": 15}),
        catalog,
    )
    assert [i.in_stock for i in items] == [True, False, False]
    assert items[1].stock_quantity == 3
    assert items[2].stock_quantity is None


@pytest.mark.asyncio
async def test_input_order_preserved(catalog):
    items = await validate_line_items(_items({"id": 15}, {"id": 13}, {"id": 14}), catalog)
    assert [i.product_ref for i in items] == ["15", "13", "14"]


def test_normalize_currency():
    assert normalize_currency("usd", "EUR") == "USD"
    assert normalize_currency(None, "eur") == "EUR"
    assert normalize_currency("  ", "EUR") == "EUR"


@pytest.mark.parametrize("raw", ["US", "dollars", "U5D"])
def test_invalid_currency(raw):
    with pytest.raises(InvalidCurrency):
        normalize_currency(raw, "USD")


def test_return_url():
    assert validate_return_url(None) is None
    assert validate_return_url("https://example.com/thank-you") == "https://example.com/thank-you"
    for bad in ["not a url", "javascript:alert(1)", "ftp://example.com", "https://"]:
        with pytest.raises(InvalidReturnUrl):
            validate_return_url(bad)


def test_customer_email():
    assert validate_customer_email(None) is None
    assert validate_customer_email("") is None
    assert validate_customer_email("test@example.com") == "test@example.com"
    for bad in ["test", "test@", "a b@example.com"]:
        with pytest.raises(InvalidCustomerEmail):
            validate_customer_email(bad)
