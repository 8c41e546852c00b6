"""
Checkout messages derived from session state.

Order is fixed: the missing-address error first, then one error per
out-of-stock line item in item order. Checks never short-circuit each other.
"""

from __future__ import annotations

from typing import Optional, Sequence

from acp_checkout.models import Address, MessageInfo, MessageLevel, ValidatedLineItem


def build_messages(
    items: Sequence[ValidatedLineItem],
    fulfillment_address: Optional[Address],
) -> list[MessageInfo]:
    messages: list[MessageInfo] = []

    if fulfillment_address is None:
        messages.append(
            MessageInfo(
                type=MessageLevel.ERROR,
                code="missing_fulfillment_address",
                path="$.fulfillment_address",
                content="A fulfillment address is required before payment.",
            )
        )

    for index, item in enumerate(items):
        if not item.in_stock:
            if item.stock_quantity is not None:
                detail = (
                    f"requested {item.quantity}, available {item.stock_quantity}"
                )
            else:
                detail = "currently unavailable"
            messages.append(
                MessageInfo(
                    type=MessageLevel.ERROR,
                    code="out_of_stock",
                    path=f"$.line_items[{index}]",
                    content=f"Product {item.product_ref} is out of stock ({detail}).",
                )
            )

    return messages


def has_blocking_errors(messages: Sequence[MessageInfo]) -> bool:
    return any(m.type == MessageLevel.ERROR for m in messages)
