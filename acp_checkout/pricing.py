"""
Session pricing.

Pure functions: the same items, tax and address presence always yield the
same totals. Tax comes from the order backend and is never recomputed here.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Sequence

from acp_checkout.models import LineItem, Total, TotalType, ValidatedLineItem

# ISO 4217 currencies whose minor unit is not 2 decimals.
_MINOR_UNITS = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "VND": 0, "VUV": 0, "XAF": 0,
    "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
}


def minor_units(currency: str) -> int:
    return _MINOR_UNITS.get(currency.upper(), 2)


def round_amount(amount: Decimal, currency: str) -> Decimal:
    """Round to the currency's minor unit, half-to-even."""
    exponent = Decimal(1).scaleb(-minor_units(currency))
    return Decimal(amount).quantize(exponent, rounding=ROUND_HALF_EVEN)


def price_line_items(items: Sequence[ValidatedLineItem], currency: str) -> list[LineItem]:
    """Attach per-item amounts, keeping input order."""
    priced = []
    for index, item in enumerate(items):
        base = round_amount(item.unit_price * item.quantity, currency)
        priced.append(
            LineItem(
                **item.model_dump(),
                id=f"li_{index}_{item.product_ref}",
                base_amount=base,
                subtotal=base,
            )
        )
    return priced


def compute_totals(
    items: Sequence[ValidatedLineItem],
    tax: Decimal,
    has_address: bool,
    fulfillment_fee: Decimal,
    currency: str,
) -> list[Total]:
    """
    Build the totals block: items_base, subtotal, tax, fulfillment, total.

    `total == items_base + tax + fulfillment` holds exactly because every
    component is rounded before it is summed.
    """
    items_base = round_amount(
        sum((item.unit_price * item.quantity for item in items), Decimal("0")),
        currency,
    )
    subtotal = items_base
    tax_amount = round_amount(tax, currency)
    fulfillment = round_amount(fulfillment_fee if has_address else Decimal("0"), currency)
    total = items_base + tax_amount + fulfillment

    return [
        Total(type=TotalType.ITEMS_BASE, display_text="Item(s) total", amount=items_base),
        Total(type=TotalType.SUBTOTAL, display_text="Subtotal", amount=subtotal),
        Total(type=TotalType.TAX, display_text="Tax", amount=tax_amount),
        Total(type=TotalType.FULFILLMENT, display_text="Shipping", amount=fulfillment),
        Total(type=TotalType.TOTAL, display_text="Total", amount=total),
    ]
