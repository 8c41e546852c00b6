"""Tests for checkout message derivation."""

from decimal import Decimal

from acp_checkout.diagnostics import build_messages, has_blocking_errors
from acp_checkout.models import MessageInfo, MessageLevel, ValidatedLineItem


def _item(ref, in_stock=True, quantity=1, stock_quantity=None):
    return ValidatedLineItem(
        product_ref=ref,
        quantity=quantity,
        unit_price=Decimal("10"),
        in_stock=in_stock,
        stock_quantity=stock_quantity,
    )


def test_missing_address_and_out_of_stock_both_reported(address):
    messages = build_messages(
        [_item("13"), _item("14", in_stock=False, quantity=5, stock_quantity=3), _item("15", in_stock=False)],
        None,
    )
    assert [(m.code, m.path) for m in messages] == [
        ("missing_fulfillment_address", "$.fulfillment_address"),
        ("out_of_stock", "$.line_items[1]"),
        ("out_of_stock", "$.line_items[2]"),
    ]
    assert all(m.type == MessageLevel.ERROR for m in messages)
    assert "available 3" in messages[1].content


def test_no_messages_when_address_present_and_in_stock(address):
    assert build_messages([_item("13"), _item("14")], address) == []


def test_out_of_stock_only(address):
    messages = build_messages([_item("13", in_stock=False)], address)
    assert len(messages) == 1
    assert messages[0].path == "$.line_items[0]"


def test_has_blocking_errors():
    info = MessageInfo(type=MessageLevel.INFO, code="note", content="fyi")
    error = MessageInfo(type=MessageLevel.ERROR, code="out_of_stock", content="gone")
    assert not has_blocking_errors([])
    assert not has_blocking_errors([info])
    assert has_blocking_errors([info, error])
