# campus_orders/domain/reasons.py
"""
Reason codes shown to customers and concessionaires.

Each catalog is a closed set of codes plus ``other``, which must come with free
text. Lookups are total: an unknown code renders the catalog's ``other``
message instead of failing.
"""
from enum import Enum
from typing import Mapping, Type

from campus_orders.domain.errors import ValidationError


class ReopeningReason(str, Enum):
    MISSED_DEADLINE = "missed_deadline"
    TECHNICAL_ISSUE = "technical_issue"
    PAYMENT_DELAY = "payment_delay"
    FORGOT_UPLOAD = "forgot_upload"
    NETWORK_ISSUE = "network_issue"
    BUSY_SCHEDULE = "busy_schedule"
    EMERGENCY = "emergency"
    MISUNDERSTOOD_TIMER = "misunderstood_timer"
    OTHER = "other"


class ReopeningDeclineReason(str, Enum):
    TOO_MANY_REQUESTS = "too_many_requests"
    ORDER_TOO_OLD = "order_too_old"
    POLICY_VIOLATION = "policy_violation"
    INSUFFICIENT_REASON = "insufficient_reason"
    REPEATED_OFFENSE = "repeated_offense"
    INVENTORY_UNAVAILABLE = "inventory_unavailable"
    OTHER = "other"


class PaymentRejectionReason(str, Enum):
    INSUFFICIENT_AMOUNT = "insufficient_amount"
    WRONG_IMAGE = "wrong_image"
    UNCLEAR_RECEIPT = "unclear_receipt"
    MISMATCHED_NAME = "mismatched_name"
    OTHER = "other"


class OrderDeclineReason(str, Enum):
    RECEIPT_TIMEOUT = "receipt_timeout"
    OUT_OF_STOCK = "out_of_stock"
    CONCESSION_CLOSED = "concession_closed"
    INVALID_PAYMENT = "invalid_payment"
    SCHEDULE_UNAVAILABLE = "schedule_unavailable"
    OTHER = "other"


REOPENING_MESSAGES = {
    ReopeningReason.MISSED_DEADLINE: "I missed the deadline for uploading the receipt",
    ReopeningReason.TECHNICAL_ISSUE: "I experienced technical issues with the app",
    ReopeningReason.PAYMENT_DELAY: "My payment was delayed",
    ReopeningReason.FORGOT_UPLOAD: "I forgot to upload the receipt",
    ReopeningReason.NETWORK_ISSUE: "I had network connectivity problems",
    ReopeningReason.BUSY_SCHEDULE: "I was busy and couldn't upload in time",
    ReopeningReason.EMERGENCY: "I had an emergency situation",
    ReopeningReason.MISUNDERSTOOD_TIMER: "I misunderstood the timer requirement",
    ReopeningReason.OTHER: "Other reason",
}

REOPENING_DECLINE_MESSAGES = {
    ReopeningDeclineReason.TOO_MANY_REQUESTS: "You have exceeded the maximum number of reopening requests",
    ReopeningDeclineReason.ORDER_TOO_OLD: "This order is too old to be reopened",
    ReopeningDeclineReason.POLICY_VIOLATION: "Reopening request violates our policy",
    ReopeningDeclineReason.INSUFFICIENT_REASON: "The reason provided is not sufficient",
    ReopeningDeclineReason.REPEATED_OFFENSE: "This is a repeated offense",
    ReopeningDeclineReason.INVENTORY_UNAVAILABLE: "Items are no longer available",
    ReopeningDeclineReason.OTHER: "Your reopening request has been declined",
}

PAYMENT_REJECTION_MESSAGES = {
    PaymentRejectionReason.INSUFFICIENT_AMOUNT: "Insufficient payment amount",
    PaymentRejectionReason.WRONG_IMAGE: "Invalid or incorrect image uploaded",
    PaymentRejectionReason.UNCLEAR_RECEIPT: "Receipt image is unclear or unreadable",
    PaymentRejectionReason.MISMATCHED_NAME: "Account name does not match",
    PaymentRejectionReason.OTHER: "Other reason",
}

ORDER_DECLINE_MESSAGES = {
    OrderDeclineReason.RECEIPT_TIMEOUT: (
        "Automatically declined because the GCash receipt was not uploaded within the required time"
    ),
    OrderDeclineReason.OUT_OF_STOCK: "Some items are out of stock",
    OrderDeclineReason.CONCESSION_CLOSED: "The concession is closed",
    OrderDeclineReason.INVALID_PAYMENT: "The payment could not be verified",
    OrderDeclineReason.SCHEDULE_UNAVAILABLE: "The requested pickup time is not available",
    OrderDeclineReason.OTHER: "Your order has been declined",
}


def parse_reason(enum_cls: Type[Enum], code: str, custom_text: str | None = None):
    """Validate a reason code; ``other`` requires non-blank free text."""
    try:
        reason = enum_cls(code)
    except ValueError:
        valid = ", ".join(r.value for r in enum_cls)
        raise ValidationError(f"Invalid reason '{code}', expected one of: {valid}")

    if reason.value == "other" and not (custom_text or "").strip():
        raise ValidationError("A description is required when the reason is 'other'")

    return reason


def describe(messages: Mapping, code, custom_text: str | None = None) -> str:
    """
    Human text for a reason code.

    ``other`` with text renders the text alone; any other code with text gets
    it appended as additional details; unknown codes fall back to ``other``.
    """
    fallback = next(v for k, v in messages.items() if k.value == "other")
    key = next((k for k in messages if k.value == str(getattr(code, "value", code))), None)
    custom_text = (custom_text or "").strip()

    if key is None or key.value == "other":
        return custom_text or fallback

    base = messages[key]
    if custom_text:
        return f"{base}. Additional details: {custom_text}"
    return base


def reopening_message(code, custom_text=None) -> str:
    return describe(REOPENING_MESSAGES, code, custom_text)


def reopening_decline_message(code, custom_text=None) -> str:
    return describe(REOPENING_DECLINE_MESSAGES, code, custom_text)


def payment_rejection_message(code, custom_text=None) -> str:
    return describe(PAYMENT_REJECTION_MESSAGES, code, custom_text)


def order_decline_message(code, custom_text=None) -> str:
    return describe(ORDER_DECLINE_MESSAGES, code, custom_text)
