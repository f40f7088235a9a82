# campus_orders/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Literal

from pydantic import Base64Bytes, BaseModel, ConfigDict, Field


class AddItemIn(BaseModel):
    """Add a menu item to the customer's cart for a concession."""

    concession_id: int = Field(..., gt=0)
    item_id: int = Field(..., gt=0)
    quantity: int = Field(1, description="Number of units (at least 1)")
    variation_ids: List[int] = Field(default_factory=list, description="Chosen variations, in order")
    note: str | None = Field(None, max_length=255)


class QuantityIn(BaseModel):
    quantity: int


class PaymentMethodIn(BaseModel):
    payment_method: str


class CheckoutIn(BaseModel):
    payment_method: str | None = None
    schedule_time: datetime | None = Field(None, description="Pickup time, must be in the future")


class ReceiptIn(BaseModel):
    """Payment proof image, base64 encoded."""

    image: Base64Bytes
    content_type: str = "image/jpeg"


class ReasonIn(BaseModel):
    reason: str
    note: str | None = Field(None, max_length=500)


class ReopeningIn(BaseModel):
    reason: str
    custom_reason: str | None = Field(None, max_length=500)


class RespondIn(BaseModel):
    decision: Literal["approve", "decline"]
    decline_reason: str | None = None
    note: str | None = Field(None, max_length=500)


class VariationOut(BaseModel):
    variation_id: int
    group_id: int
    name: str
    price: Decimal


class OrderDetailOut(BaseModel):
    id: int
    item_id: int
    item_name: str
    quantity: int
    unit_price: Decimal
    variation_total: Decimal
    total_price: Decimal
    note: str | None = None
    variations: List[VariationOut] = []


class OrderOut(BaseModel):
    id: int
    customer_id: int
    concession_id: int
    concession_name: str
    status: str
    in_cart: bool
    payment_method: str
    total_price: Decimal
    schedule_time: datetime | None = None
    receipt_submitted_at: datetime | None = None
    receipt_deadline: datetime | None = None
    receipt_rejection: str | None = None
    decline_reason: str | None = None
    decline_message: str | None = None
    declined_at: datetime | None = None
    reopened_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    details: List[OrderDetailOut] = []

    model_config = ConfigDict(from_attributes=True)


class CartConcessionOut(BaseModel):
    concession_id: int
    concession_name: str
    order: OrderOut


class CartOut(BaseModel):
    customer_id: int
    concessions: List[CartConcessionOut]
    total: Decimal


class ItemQuoteOut(BaseModel):
    item_id: int
    name: str
    starting_price: Decimal
    max_price: Decimal
    variant_priced: bool


class ExpiryCheckOut(BaseModel):
    order_id: int
    outcome: str


class SweepOut(BaseModel):
    declined: int
    outcomes: dict[int, str]
    failures: dict[int, str]


class ReopeningRequestOut(BaseModel):
    id: int
    order_id: int
    customer_id: int
    concessionaire_id: int
    reason: str
    custom_reason: str | None = None
    message: str
    status: str
    decline_reason: str | None = None
    response_message: str | None = None
    created_at: datetime
    resolved_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class EligibilityOut(BaseModel):
    can_reopen: bool
    reason: str | None = None
    remaining_requests: int = 0
    hours_remaining: float = 0.0
    has_pending_request: bool = False


class ReopeningStatusOut(BaseModel):
    order_id: int
    order_status: str
    has_request: bool
    request: ReopeningRequestOut | None = None
    request_count: int
    eligibility: EligibilityOut
