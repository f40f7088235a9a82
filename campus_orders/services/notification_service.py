# campus_orders/services/notification_service.py
from typing import Callable

from campus_orders.celery_worker import celery_app
from campus_orders.data.models.order import OrderModel
from campus_orders.domain.events import (
    NewOrderEvent,
    NotificationEnvelope,
    NotificationEvent,
    OrderUpdateEvent,
    ReopeningRequestEvent,
    ReopeningResolutionEvent,
)
from campus_orders.utils.settings import NOTIFICATION_PUBLISH_TIMEOUT_SECONDS
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_MESSAGES = {
    "submitted": "Your order has been placed.",
    "accepted": "Your order has been accepted!",
    "declined": "Your order has been declined.",
    "ready": "Your order is ready for pickup!",
    "completed": "Your order has been completed.",
    "cancelled": "Your order has been cancelled.",
}


def _format_duration(seconds: int) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes = rest // 60
    parts = []
    if hours:
        parts.append(f"{hours} hour{'s' if hours > 1 else ''}")
    if minutes or not hours:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    return " ".join(parts)


def _publish(payload: dict) -> None:
    deliver_notification_task.apply_async(
        args=[payload],
        retry=True,
        retry_policy={
            "max_retries": 2,
            "interval_start": 0,
            "interval_step": NOTIFICATION_PUBLISH_TIMEOUT_SECONDS / 4,
            "interval_max": NOTIFICATION_PUBLISH_TIMEOUT_SECONDS / 2,
        },
    )


class NotificationService:
    """
    Turns order lifecycle changes into notification events.

    Delivery belongs to the sink behind ``dispatch`` (a Celery task by
    default). Emission is best effort: a failed dispatch is logged and never
    undoes the order change that caused it.
    """

    def __init__(self, dispatch: Callable[[dict], None] | None = None):
        self.dispatch = dispatch or _publish

    def emit(self, user_id: int, event: NotificationEvent) -> bool:
        envelope = NotificationEnvelope(user_id=user_id, event=event)
        try:
            self.dispatch(envelope.model_dump(mode="json"))
        except Exception as e:
            logger.warning(
                f"Notification {event.type} for user {user_id} (order {event.order_id}) not dispatched: {e}"
            )
            return False
        return True

    #order lifecycle
    def new_order(self, order: OrderModel) -> bool:
        count = sum(d.quantity for d in order.details)
        message = (
            f"New order #{order.id} ({count} item{'s' if count != 1 else ''}, "
            f"{order.payment_method.upper()})"
        )
        return self.emit(
            order.concessionaire_id,
            NewOrderEvent(
                order_id=order.id,
                concession_name=order.concession_name,
                item_count=count,
                payment_method=order.payment_method,
                message=message,
            ),
        )

    def status_changed(self, order: OrderModel, reason: str | None = None, extra: str | None = None) -> bool:
        text = STATUS_MESSAGES.get(order.status, f"Order status updated to {order.status}")
        message = f"{order.concession_name}: {text} (Order #{order.id})"
        if reason:
            message += f"\nReason: {reason}"
        if extra:
            message += f"\n{extra}"
        return self.emit(
            order.customer_id,
            OrderUpdateEvent(
                order_id=order.id,
                status=order.status,
                concession_name=order.concession_name,
                message=message,
                reason=reason,
            ),
        )

    def payment_instructions(self, order: OrderModel, grace_seconds: int) -> bool:
        return self.status_changed(
            order,
            extra=f"Please pay via GCash and upload your receipt within {_format_duration(grace_seconds)}.",
        )

    def receipt_uploaded(self, order: OrderModel) -> bool:
        return self.emit(
            order.concessionaire_id,
            OrderUpdateEvent(
                order_id=order.id,
                status=order.status,
                concession_name=order.concession_name,
                message=f"GCash receipt uploaded for order #{order.id}. Please review and confirm.",
            ),
        )

    def receipt_rejected(self, order: OrderModel, reason: str) -> bool:
        message = (
            f"{order.concession_name}: Your GCash receipt for order #{order.id} was rejected.\n"
            f"Reason: {reason}\nPlease upload a correct receipt to proceed with your order."
        )
        return self.emit(
            order.customer_id,
            OrderUpdateEvent(
                order_id=order.id,
                status=order.status,
                concession_name=order.concession_name,
                message=message,
                reason=reason,
            ),
        )

    def order_cancelled_for_concessionaire(self, order: OrderModel) -> bool:
        return self.emit(
            order.concessionaire_id,
            OrderUpdateEvent(
                order_id=order.id,
                status=order.status,
                concession_name=order.concession_name,
                message=f"Order #{order.id} was cancelled by the customer",
            ),
        )

    def receipt_timeout(self, order: OrderModel, reason: str) -> None:
        self.status_changed(order, reason=reason)
        self.emit(
            order.concessionaire_id,
            OrderUpdateEvent(
                order_id=order.id,
                status=order.status,
                concession_name=order.concession_name,
                message=(
                    f"Order #{order.id} was automatically declined because the customer did not "
                    f"upload a GCash receipt in time."
                ),
                reason=reason,
            ),
        )

    #reopening
    def reopening_requested(self, order: OrderModel, request_id: int, message: str) -> bool:
        return self.emit(
            order.concessionaire_id,
            ReopeningRequestEvent(
                order_id=order.id,
                request_id=request_id,
                concession_name=order.concession_name,
                message=f"Reopening requested for order #{order.id}: {message}",
            ),
        )

    def reopening_resolved(self, order: OrderModel, request_id: int, decision: str, message: str) -> bool:
        return self.emit(
            order.customer_id,
            ReopeningResolutionEvent(
                order_id=order.id,
                request_id=request_id,
                decision=decision,
                concession_name=order.concession_name,
                message=message,
            ),
        )


@celery_app.task(name="campus_orders.services.notification_service.deliver_notification_task")
def deliver_notification_task(payload: dict):
    """
    Boundary with the notification sink (push / polling inbox).
    Here the event is validated and logged.
    """
    envelope = NotificationEnvelope.model_validate(payload)
    event = envelope.event
    logger.info(f"[NOTIFICATION] user {envelope.user_id}: {event.type} order {event.order_id}: {event.message}")

    return {"user_id": envelope.user_id, "type": event.type, "order_id": event.order_id, "status": "sent"}
