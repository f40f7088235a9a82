# campus_orders/domain/events.py
from typing import Literal, Union

from pydantic import BaseModel, Field


class NewOrderEvent(BaseModel):
    """Sent to the concessionaire when an order is ready for review."""

    type: Literal["new_order"] = "new_order"
    order_id: int
    concession_name: str
    item_count: int
    payment_method: str
    message: str


class OrderUpdateEvent(BaseModel):
    type: Literal["order_update"] = "order_update"
    order_id: int
    status: str
    concession_name: str
    message: str
    reason: str | None = None


class ReopeningRequestEvent(BaseModel):
    type: Literal["reopening_request"] = "reopening_request"
    order_id: int
    request_id: int
    concession_name: str
    message: str


class ReopeningResolutionEvent(BaseModel):
    type: Literal["reopening_resolution"] = "reopening_resolution"
    order_id: int
    request_id: int
    decision: Literal["approved", "declined"]
    concession_name: str
    message: str


NotificationEvent = Union[
    NewOrderEvent,
    OrderUpdateEvent,
    ReopeningRequestEvent,
    ReopeningResolutionEvent,
]


class NotificationEnvelope(BaseModel):
    """What crosses the sink boundary: recipient plus one event variant."""

    user_id: int
    event: NotificationEvent = Field(..., discriminator="type")
