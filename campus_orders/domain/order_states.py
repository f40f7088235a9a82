# campus_orders/domain/order_states.py
from enum import Enum


class OrderStatus(str, Enum):
    CART = "cart"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    GCASH = "gcash"


class OrderEvent(str, Enum):
    CHECKOUT = "checkout"
    ACCEPT = "accept"
    DECLINE = "decline"
    RECEIPT_TIMEOUT = "receipt_timeout"
    CANCEL = "cancel"
    MARK_READY = "mark_ready"
    COMPLETE = "complete"
    REOPEN = "reopen"
    REOPEN_ACCEPTED = "reopen_accepted"


# (from, event) -> to
TRANSITIONS = {
    (OrderStatus.CART, OrderEvent.CHECKOUT): OrderStatus.SUBMITTED,
    (OrderStatus.CART, OrderEvent.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.SUBMITTED, OrderEvent.ACCEPT): OrderStatus.ACCEPTED,
    (OrderStatus.SUBMITTED, OrderEvent.DECLINE): OrderStatus.DECLINED,
    (OrderStatus.SUBMITTED, OrderEvent.RECEIPT_TIMEOUT): OrderStatus.DECLINED,
    (OrderStatus.SUBMITTED, OrderEvent.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.ACCEPTED, OrderEvent.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.ACCEPTED, OrderEvent.MARK_READY): OrderStatus.READY,
    (OrderStatus.READY, OrderEvent.COMPLETE): OrderStatus.COMPLETED,
    (OrderStatus.DECLINED, OrderEvent.REOPEN): OrderStatus.SUBMITTED,
    (OrderStatus.DECLINED, OrderEvent.REOPEN_ACCEPTED): OrderStatus.ACCEPTED,
}

# each event has exactly one destination status
EVENT_TARGETS = {event: to for (_, event), to in TRANSITIONS.items()}


def target_status(current: OrderStatus, event: OrderEvent) -> OrderStatus | None:
    return TRANSITIONS.get((OrderStatus(current), event))