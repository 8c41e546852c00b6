"""
ACP Checkout Pydantic Models.

Covers the checkout session resource exchanged with shopping agents, the
request bodies for each checkout operation, and the records exchanged with
the catalog and order collaborators.

Monetary amounts are `Decimal` values in major currency units (e.g. 85.00
USD), rounded to the currency's minor-unit precision by the pricer.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CheckoutStatus(str, Enum):
    NOT_READY_FOR_PAYMENT = "not_ready_for_payment"
    READY_FOR_PAYMENT = "ready_for_payment"
    PROCESSING_FOR_PAYMENT = "processing_for_payment"
    COMPLETED = "completed"
    CANCELED = "canceled"


TERMINAL_STATUSES = frozenset({CheckoutStatus.COMPLETED, CheckoutStatus.CANCELED})
MUTABLE_STATUSES = frozenset(
    {CheckoutStatus.NOT_READY_FOR_PAYMENT, CheckoutStatus.READY_FOR_PAYMENT}
)


class TotalType(str, Enum):
    ITEMS_BASE = "items_base"
    SUBTOTAL = "subtotal"
    TAX = "tax"
    FULFILLMENT = "fulfillment"
    DISCOUNT = "discount"
    TOTAL = "total"


class LinkType(str, Enum):
    TERMS_OF_USE = "terms_of_use"
    PRIVACY_POLICY = "privacy_policy"
    PAYMENT = "payment"


class MessageLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Shared / Common
# ---------------------------------------------------------------------------

class Address(BaseModel):
    """Fulfillment address. Only its presence matters to the checkout core."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    line_one: Optional[str] = None
    line_two: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class Customer(BaseModel):
    email: Optional[str] = None


class Buyer(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


# ---------------------------------------------------------------------------
# Line Items & Totals
# ---------------------------------------------------------------------------

class LineItemRequest(BaseModel):
    """A raw cart entry as sent by the agent (`{"id": 13, "quantity": 2, "price": 85}`)."""

    model_config = ConfigDict(populate_by_name=True)

    product_ref: Optional[Union[int, str]] = Field(default=None, alias="id")
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = Field(default=None, alias="price")

    @field_validator("quantity", mode="before")
    @classmethod
    def truncate_quantity(cls, value: Any) -> Any:
        """Accept numeric quantities such as 2.5 or "2.5" and truncate them to 2."""
        if isinstance(value, (float, Decimal)) or (isinstance(value, str) and "." in value):
            try:
                return int(Decimal(str(value).strip()))
            except (InvalidOperation, ValueError, OverflowError):
                return value
        return value


class ValidatedLineItem(BaseModel):
    product_ref: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    sku: str = ""
    title: str = ""
    in_stock: bool = True
    stock_quantity: Optional[int] = None


class LineItem(ValidatedLineItem):
    id: str
    base_amount: Decimal
    subtotal: Decimal


class Total(BaseModel):
    type: TotalType
    display_text: str
    amount: Decimal


# ---------------------------------------------------------------------------
# Messages & Links
# ---------------------------------------------------------------------------

class MessageInfo(BaseModel):
    type: MessageLevel = MessageLevel.INFO
    code: str
    path: Optional[str] = None
    content_type: str = "plain"
    content: str


class Link(BaseModel):
    type: LinkType
    url: str


# ---------------------------------------------------------------------------
# Checkout Session (the core response object)
# ---------------------------------------------------------------------------

class CheckoutSession(BaseModel):
    id: str
    order_id: str
    status: CheckoutStatus = CheckoutStatus.NOT_READY_FOR_PAYMENT
    currency: str = "USD"
    buyer: Optional[Buyer] = None
    customer: Optional[Customer] = None
    line_items: list[LineItem] = []
    fulfillment_address: Optional[Address] = None
    fulfillment_option_id: Optional[str] = None
    totals: list[Total] = []
    messages: list[MessageInfo] = []
    links: list[Link] = []
    checkout_url: Optional[str] = None
    return_url: Optional[str] = None
    idempotency_key: Optional[str] = None
    raw_payload: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    def total_amount(self) -> Decimal:
        for total in self.totals:
            if total.type == TotalType.TOTAL:
                return total.amount
        return Decimal("0")


class CompletionResult(BaseModel):
    """Returned by the complete and cancel operations."""

    ok: bool
    order_id: str
    status: CheckoutStatus


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class CheckoutSessionCreateRequest(BaseModel):
    items: Optional[list[LineItemRequest]] = None
    currency: Optional[str] = None
    customer: Optional[Customer] = None
    buyer: Optional[Buyer] = None
    return_url: Optional[str] = None
    fulfillment_address: Optional[Address] = None
    fulfillment_option_id: Optional[str] = None


class CheckoutSessionUpdateRequest(BaseModel):
    """Partial update: only fields present in the request body are applied."""

    items: Optional[list[LineItemRequest]] = None
    customer: Optional[Customer] = None
    buyer: Optional[Buyer] = None
    fulfillment_address: Optional[Address] = None
    fulfillment_option_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------

class CatalogProduct(BaseModel):
    """What a `ProductCatalog` returns for a product lookup."""

    id: str
    title: str
    sku: str = ""
    price: Decimal
    manage_stock: bool = False
    stock_quantity: Optional[int] = None
    in_stock: bool = True


class OrderTotals(BaseModel):
    """Authoritative figures computed by the `OrderBackend` for an order."""

    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class CaptureResult(BaseModel):
    success: bool
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------

class ACPError(BaseModel):
    type: str
    code: str
    message: str
    param: Optional[str] = None


class ACPErrorResponse(BaseModel):
    error: ACPError
