# campus_orders/services/order_service.py
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from campus_orders.data.models.order import OrderModel
from campus_orders.domain.errors import InvalidTransition, NotFound, ValidationError
from campus_orders.domain.order_states import OrderEvent, OrderStatus, PaymentMethod
from campus_orders.domain.reasons import (
    OrderDeclineReason,
    PaymentRejectionReason,
    order_decline_message,
    parse_reason,
    payment_rejection_message,
)
from campus_orders.repos.order_repo import OrderRepo
from campus_orders.services.notification_service import NotificationService
from campus_orders.services.order_machine import OrderStateMachine, utcnow
from campus_orders.services.order_views import order_to_dict
from campus_orders.services.receipt_expiry_service import ReceiptExpiryService
from campus_orders.utils.settings import RECEIPT_GRACE_SECONDS
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)


def parse_payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(f"Invalid payment method '{value}', expected cash or gcash")


def grace_seconds(order: OrderModel) -> int:
    return order.receipt_grace_seconds or RECEIPT_GRACE_SECONDS


class OrderService:
    """
    Order lifecycle after the cart: checkout, receipts, concessionaire decisions.

    Transitions go through OrderStateMachine; notifications are sent after the
    write has been committed.
    """

    def __init__(
        self,
        db: Session,
        notifications: NotificationService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.notifications = notifications or NotificationService()
        self.clock = clock
        self.machine = OrderStateMachine(self.repo, clock)
        self.expiry = ReceiptExpiryService(db, self.notifications, clock)

    #helpers
    def _load(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound(f"Order {order_id} not found")
        return order

    def _load_for_customer(self, order_id: int, customer_id: int) -> OrderModel:
        order = self._load(order_id)
        if order.customer_id != customer_id:
            raise PermissionError("No access to this order")
        return order

    def _load_for_concessionaire(self, order_id: int, concessionaire_id: int) -> OrderModel:
        order = self._load(order_id)
        if order.concessionaire_id != concessionaire_id:
            raise PermissionError("No access to this order")
        return order

    def _refresh_expiry(self, order: OrderModel) -> OrderModel:
        self.expiry.check_if_candidate(order)
        return order

    #query
    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        order = self._load(order_id)
        if user_id not in (order.customer_id, order.concessionaire_id):
            raise PermissionError("No access to this order")
        return order_to_dict(self._refresh_expiry(order))

    def list_customer_orders(self, customer_id: int) -> List[Dict[str, Any]]:
        orders = self.repo.list_customer_orders(customer_id)
        return [order_to_dict(self._refresh_expiry(o)) for o in orders]

    def list_concession_orders(self, concessionaire_id: int, status: str | None = None) -> List[Dict[str, Any]]:
        if status is not None:
            try:
                status = OrderStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown order status '{status}'")

        orders = [self._refresh_expiry(o) for o in self.repo.list_concessionaire_orders(concessionaire_id)]
        return [order_to_dict(o) for o in orders if status is None or o.status == status]

    #commands - checkout
    def checkout_single_order(
        self,
        order_id: int,
        customer_id: int,
        payment_method: str | None = None,
        schedule_time: datetime | None = None,
    ) -> Dict[str, Any]:
        order = self._load_for_customer(order_id, customer_id)
        schedule_time = self._validate_schedule(schedule_time)
        method = parse_payment_method(payment_method or order.payment_method)

        if order.status == OrderStatus.CART.value and not order.details:
            raise InvalidTransition("Cannot check out an empty order")

        now = self.clock()
        changes = {
            "payment_method": method.value,
            "schedule_time": schedule_time,
            "receipt_submitted_at": None,
            "receipt_deadline": None,
            "new_order_notified": method == PaymentMethod.CASH,
            "updated_at": now,
        }
        if method == PaymentMethod.GCASH:
            changes["receipt_deadline"] = now + timedelta(seconds=grace_seconds(order))

        logger.info(f"Checking out order {order.id} ({method.value}) for customer {customer_id}")
        if not self.machine.apply(order, OrderEvent.CHECKOUT, changes):
            return order_to_dict(order)

        if method == PaymentMethod.CASH:
            self.notifications.status_changed(order)
            self.notifications.new_order(order)
        else:
            # concessionaire hears about gcash orders once a receipt exists
            self.notifications.payment_instructions(order, grace_seconds(order))

        return order_to_dict(order)

    def checkout_cart(
        self,
        customer_id: int,
        payment_method: str | None = None,
        schedule_time: datetime | None = None,
    ) -> List[Dict[str, Any]]:
        self._validate_schedule(schedule_time)
        if payment_method is not None:
            parse_payment_method(payment_method)

        cart_orders = self.repo.list_cart_orders(customer_id)
        if not cart_orders:
            raise NotFound("Cart is empty")

        return [
            self.checkout_single_order(o.id, customer_id, payment_method, schedule_time)
            for o in cart_orders
        ]

    def _validate_schedule(self, schedule_time: datetime | None) -> datetime | None:
        if schedule_time is None:
            return None
        if schedule_time.tzinfo is None:
            schedule_time = schedule_time.replace(tzinfo=timezone.utc)
        if schedule_time <= self.clock():
            raise ValidationError("Schedule time must be in the future")
        return schedule_time

    #commands - receipts
    def upload_proof(
        self,
        order_id: int,
        customer_id: int,
        image: bytes,
        content_type: str = "image/jpeg",
    ) -> Dict[str, Any]:
        if not image:
            raise ValidationError("Receipt image is empty")
        if not (content_type or "").startswith("image/"):
            raise ValidationError("Receipt must be an image")

        order = self._load_for_customer(order_id, customer_id)
        self._refresh_expiry(order)

        if order.payment_method != PaymentMethod.GCASH.value:
            raise InvalidTransition("Only GCash orders need a payment receipt")
        if order.status != OrderStatus.SUBMITTED.value:
            raise InvalidTransition(f"Cannot upload a receipt for an order that is {order.status}")

        first_receipt = not order.new_order_notified
        self.machine.update(
            order,
            {
                "receipt_image": image,
                "receipt_content_type": content_type,
                "receipt_submitted_at": self.clock(),
                "receipt_rejection_reason": None,
                "receipt_rejection_note": None,
                "new_order_notified": True,
            },
        )
        logger.info(f"Receipt uploaded for order {order.id}")

        if first_receipt:
            self.notifications.new_order(order)
        else:
            self.notifications.receipt_uploaded(order)

        return order_to_dict(order)

    def get_receipt(self, order_id: int, user_id: int) -> tuple[bytes, str]:
        order = self._load(order_id)
        if user_id not in (order.customer_id, order.concessionaire_id):
            raise PermissionError("No access to this order")
        if not order.receipt_image:
            raise NotFound(f"Order {order_id} has no receipt")
        return order.receipt_image, order.receipt_content_type or "application/octet-stream"

    def reject_receipt(
        self,
        order_id: int,
        concessionaire_id: int,
        reason: str,
        note: str | None = None,
    ) -> Dict[str, Any]:
        code = parse_reason(PaymentRejectionReason, reason, note)
        order = self._load_for_concessionaire(order_id, concessionaire_id)

        if order.status != OrderStatus.SUBMITTED.value or order.receipt_submitted_at is None:
            raise InvalidTransition("There is no pending receipt to reject")

        now = self.clock()
        self.machine.update(
            order,
            {
                "receipt_image": None,
                "receipt_content_type": None,
                "receipt_submitted_at": None,
                "receipt_rejection_reason": code.value,
                "receipt_rejection_note": note,
                "receipt_deadline": now + timedelta(seconds=grace_seconds(order)),
                "updated_at": now,
            },
        )
        logger.info(f"Receipt for order {order.id} rejected: {code.value}")

        self.notifications.receipt_rejected(order, payment_rejection_message(code, note))
        return order_to_dict(order)

    #commands - concessionaire decisions
    def accept(self, order_id: int, concessionaire_id: int) -> Dict[str, Any]:
        order = self._load_for_concessionaire(order_id, concessionaire_id)
        self._refresh_expiry(order)

        if (
            order.status == OrderStatus.SUBMITTED.value
            and order.payment_method == PaymentMethod.GCASH.value
            and order.receipt_submitted_at is None
        ):
            raise InvalidTransition("Cannot accept a GCash order without a payment receipt")

        if self.machine.apply(order, OrderEvent.ACCEPT, {"receipt_deadline": None}):
            self.notifications.status_changed(order)
        return order_to_dict(order)

    def decline(
        self,
        order_id: int,
        concessionaire_id: int,
        reason: str,
        note: str | None = None,
    ) -> Dict[str, Any]:
        code = parse_reason(OrderDeclineReason, reason, note)
        if code == OrderDeclineReason.RECEIPT_TIMEOUT:
            raise ValidationError("Receipt timeout is set by the expiry sweep, not by a concessionaire")
        order = self._load_for_concessionaire(order_id, concessionaire_id)

        now = self.clock()
        changes = {
            "decline_reason": code.value,
            "decline_note": note,
            "declined_at": now,
            "receipt_deadline": None,
            "updated_at": now,
        }
        if self.machine.apply(order, OrderEvent.DECLINE, changes):
            self.notifications.status_changed(order, reason=order_decline_message(code, note))
        return order_to_dict(order)

    def mark_ready(self, order_id: int, concessionaire_id: int) -> Dict[str, Any]:
        order = self._load_for_concessionaire(order_id, concessionaire_id)
        if self.machine.apply(order, OrderEvent.MARK_READY):
            self.notifications.status_changed(order)
        return order_to_dict(order)

    def complete(self, order_id: int, concessionaire_id: int) -> Dict[str, Any]:
        order = self._load_for_concessionaire(order_id, concessionaire_id)
        if self.machine.apply(order, OrderEvent.COMPLETE):
            self.notifications.status_changed(order)
        return order_to_dict(order)

    #commands - customer
    def cancel(self, order_id: int, customer_id: int) -> Dict[str, Any]:
        order = self._load_for_customer(order_id, customer_id)
        concessionaire_knew = order.new_order_notified

        if self.machine.apply(order, OrderEvent.CANCEL, {"receipt_deadline": None}):
            self.notifications.status_changed(order)
            if concessionaire_knew:
                self.notifications.order_cancelled_for_concessionaire(order)
        return order_to_dict(order)
