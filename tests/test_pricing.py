"""Tests for session pricing."""

from decimal import Decimal

import pytest

from acp_checkout.models import TotalType, ValidatedLineItem
from acp_checkout.pricing import compute_totals, minor_units, price_line_items, round_amount


def _item(ref, quantity, price):
    return ValidatedLineItem(product_ref=ref, quantity=quantity, unit_price=Decimal(price))


def _by_type(totals):
    return {t.type: t.amount for t in totals}


def test_totals_order_and_values_without_address():
    totals = compute_totals(
        [_item("13", 2, "85")],
        tax=Decimal("13.60"),
        has_address=False,
        fulfillment_fee=Decimal("7.99"),
        currency="USD",
    )
    assert [t.type for t in totals] == [
        TotalType.ITEMS_BASE,
        TotalType.SUBTOTAL,
        TotalType.TAX,
        TotalType.FULFILLMENT,
        TotalType.TOTAL,
    ]
    amounts = _by_type(totals)
    assert amounts[TotalType.ITEMS_BASE] == Decimal("170.00")
    assert amounts[TotalType.SUBTOTAL] == Decimal("170.00")
    assert amounts[TotalType.FULFILLMENT] == Decimal("0.00")
    assert amounts[TotalType.TOTAL] == Decimal("183.60")


def test_fulfillment_fee_only_with_address():
    totals = compute_totals(
        [_item("13", 2, "85")],
        tax=Decimal("13.60"),
        has_address=True,
        fulfillment_fee=Decimal("7.99"),
        currency="USD",
    )
    amounts = _by_type(totals)
    assert amounts[TotalType.FULFILLMENT] == Decimal("7.99")
    assert amounts[TotalType.TOTAL] == Decimal("191.59")


@pytest.mark.parametrize(
    "amount,expected",
    [("0.125", "0.12"), ("0.135", "0.14"), ("2.675", "2.68"), ("10", "10.00")],
)
def test_round_half_even(amount, expected):
    assert round_amount(Decimal(amount), "USD") == Decimal(expected)


def test_minor_units_by_currency():
    assert minor_units("usd") == 2
    assert minor_units("JPY") == 0
    assert minor_units("KWD") == 3
    assert round_amount(Decimal("1250.5"), "JPY") == Decimal("1250")
    assert round_amount(Decimal("1251.5"), "JPY") == Decimal("1252")


@pytest.mark.parametrize(
    "lines,tax,has_address",
    [
        ([("1", 1, "0.01")], "0", False),
        ([("1", 3, "19.995"), ("2", 7, "0.333")], "4.805", True),
        ([("1", 1000, "9.99"), ("2", 2, "1234.567")], "1011.11", True),
        ([("1", 5, "0")], "0.00", True),
    ],
)
def test_total_equals_sum_of_components(lines, tax, has_address):
    totals = _by_type(
        compute_totals(
            [_item(*line) for line in lines],
            tax=Decimal(tax),
            has_address=has_address,
            fulfillment_fee=Decimal("7.99"),
            currency="USD",
        )
    )
    assert totals[TotalType.TOTAL] == (
        totals[TotalType.ITEMS_BASE] + totals[TotalType.TAX] + totals[TotalType.FULFILLMENT]
    )
    assert all(amount >= 0 for amount in totals.values())


def test_compute_totals_is_deterministic():
    items = [_item("13", 2, "85"), _item("14", 1, "149")]
    first = compute_totals(items, Decimal("25.52"), True, Decimal("7.99"), "USD")
    second = compute_totals(items, Decimal("25.52"), True, Decimal("7.99"), "USD")
    assert first == second


def test_price_line_items_keeps_order():
    priced = price_line_items([_item("14", 1, "149"), _item("13", 2, "85")], "USD")
    assert [li.id for li in priced] == ["li_0_14", "li_1_13"]
    assert priced[1].base_amount == Decimal("170.00")
    assert priced[1].subtotal == priced[1].base_amount
