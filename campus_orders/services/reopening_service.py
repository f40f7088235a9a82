# campus_orders/services/reopening_service.py
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campus_orders.data.models.order import OrderModel
from campus_orders.data.models.reopening_request import ReopeningRequestModel
from campus_orders.domain.errors import (
    AlreadyResolved,
    Conflict,
    InvalidTransition,
    NotEligible,
    NotFound,
    ValidationError,
)
from campus_orders.domain.order_states import OrderEvent, OrderStatus, PaymentMethod
from campus_orders.domain.reasons import (
    ReopeningDeclineReason,
    ReopeningReason,
    parse_reason,
    reopening_decline_message,
    reopening_message,
)
from campus_orders.repos.order_repo import OrderRepo
from campus_orders.repos.reopening_repo import ReopeningRepo
from campus_orders.services.notification_service import NotificationService
from campus_orders.services.order_machine import OrderStateMachine, utcnow
from campus_orders.services.order_service import grace_seconds
from campus_orders.services.order_views import request_to_dict
from campus_orders.services.receipt_expiry_service import ReceiptExpiryService
from campus_orders.utils import settings
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)

APPROVED_MESSAGE = "{concession}: Your reopening request for order #{order_id} was approved."
DECLINED_MESSAGE = "{concession}: Your reopening request for order #{order_id} was declined.\nReason: {reason}"


@dataclass
class Eligibility:
    can_reopen: bool
    reason: str | None = None
    remaining_requests: int = 0
    hours_remaining: float = 0.0
    has_pending_request: bool = False


class ReopeningService:
    """
    Customer appeals against declined orders.

    A declined order may be appealed a limited number of times, within a
    window counted from the decline, with one pending appeal at a time. The
    concessionaire approves (the order goes back into the lifecycle) or
    declines with a reason.
    """

    def __init__(
        self,
        db: Session,
        notifications: NotificationService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.repo = ReopeningRepo(db)
        self.notifications = notifications or NotificationService()
        self.clock = clock
        self.machine = OrderStateMachine(self.orders, clock)
        self.expiry = ReceiptExpiryService(db, self.notifications, clock)

    #query
    def can_request_reopening(self, order_id: int, now: datetime | None = None) -> Eligibility:
        order = self._load_order(order_id)
        return self._eligibility(order, now)

    def get_status(self, order_id: int) -> Dict[str, Any]:
        order = self._load_order(order_id)
        latest = self.repo.latest_for_order(order_id)

        return {
            "order_id": order.id,
            "order_status": order.status,
            "has_request": latest is not None,
            "request": request_to_dict(latest) if latest else None,
            "request_count": self.repo.count_for_order(order_id),
            "eligibility": asdict(self._eligibility(order)),
        }

    def get_request(self, request_id: int) -> Dict[str, Any]:
        return request_to_dict(self._load_request(request_id))

    def list_for_concessionaire(self, concessionaire_id: int, status: str | None = None) -> List[Dict[str, Any]]:
        if status not in (None, "all", "pending", "approved", "declined"):
            raise ValidationError(f"Unknown request status '{status}'")
        return [request_to_dict(r) for r in self.repo.list_for_concessionaire(concessionaire_id, status)]

    #commands
    def create_request(
        self,
        order_id: int,
        customer_id: int,
        reason: str,
        custom_reason: str | None = None,
    ) -> Dict[str, Any]:
        code = parse_reason(ReopeningReason, reason, custom_reason)
        order = self._load_order(order_id)

        if order.customer_id != customer_id:
            raise PermissionError("No access to this order")

        eligibility = self._eligibility(order)
        if not eligibility.can_reopen:
            raise NotEligible(eligibility.reason)

        request = ReopeningRequestModel(
            order_id=order.id,
            customer_id=customer_id,
            concessionaire_id=order.concessionaire_id,
            reason=code.value,
            custom_reason=custom_reason,
            message=reopening_message(code, custom_reason),
            status="pending",
            created_at=self.clock(),
        )

        try:
            self.repo.add(request)
        except IntegrityError:
            self.db.rollback()
            raise NotEligible("A reopening request is already pending")

        # bump the order version in the same transaction so concurrent requests serialize
        try:
            self.machine.update(order, {}, commit=False)
        except Conflict:
            raise NotEligible("The order changed while the request was being created, please retry")

        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Reopening request {request.id} created for order {order.id} ({code.value})")

        self.notifications.reopening_requested(order, request.id, request.message)
        return request_to_dict(request)

    def respond_to_request(
        self,
        request_id: int,
        concessionaire_id: int,
        decision: str,
        decline_reason: str | None = None,
        note: str | None = None,
    ) -> Dict[str, Any]:
        if decision not in ("approve", "decline"):
            raise ValidationError("Decision must be 'approve' or 'decline'")

        request = self._load_request(request_id)
        if request.concessionaire_id != concessionaire_id:
            raise PermissionError("No access to this reopening request")
        if request.status != "pending":
            raise AlreadyResolved(f"Request has already been {request.status}")

        order = self._load_order(request.order_id)

        if decision == "approve":
            return self._approve(request, order)
        return self._decline(request, order, decline_reason, note)

    #helpers
    def _approve(self, request: ReopeningRequestModel, order: OrderModel) -> Dict[str, Any]:
        if order.status != OrderStatus.DECLINED.value:
            raise InvalidTransition("Order is no longer declined")

        now = self.clock()
        event, changes = self._reopen_plan(order, now)

        if self.repo.resolve(
            request.id,
            "approved",
            now,
            response_message=APPROVED_MESSAGE.format(concession=order.concession_name, order_id=order.id),
        ) == 0:
            self.db.rollback()
            raise AlreadyResolved("Request was resolved by another operation")

        # status and request change commit together
        if not self.machine.apply(order, event, changes, commit=False):
            self.db.rollback()
            raise Conflict(f"Order {order.id} was reopened by another operation")

        self.db.commit()
        self.db.refresh(request)
        self.db.refresh(order)
        logger.info(f"Reopening request {request.id} approved, order {order.id} -> {order.status}")

        self.notifications.reopening_resolved(order, request.id, "approved", request.response_message)
        self.notifications.status_changed(order)
        return request_to_dict(request)

    def _reopen_plan(self, order: OrderModel, now: datetime):
        changes = {
            "original_decline_reason": order.decline_reason,
            "decline_reason": None,
            "decline_note": None,
            "declined_at": None,
            "reopened_at": now,
            "receipt_deadline": None,
            "updated_at": now,
        }

        payment_settled = order.payment_method == PaymentMethod.CASH.value or order.receipt_submitted_at is not None
        if settings.REOPENING_APPROVAL_STATUS == OrderStatus.ACCEPTED.value and payment_settled:
            return OrderEvent.REOPEN_ACCEPTED, changes

        # back to submitted: a gcash order needs a fresh receipt before it can be accepted
        if order.payment_method == PaymentMethod.GCASH.value:
            changes.update(
                receipt_image=None,
                receipt_content_type=None,
                receipt_submitted_at=None,
                receipt_deadline=now + timedelta(seconds=grace_seconds(order)),
            )
        return OrderEvent.REOPEN, changes

    def _decline(
        self,
        request: ReopeningRequestModel,
        order: OrderModel,
        decline_reason: str | None,
        note: str | None,
    ) -> Dict[str, Any]:
        if not decline_reason:
            raise ValidationError("A decline reason is required")
        code = parse_reason(ReopeningDeclineReason, decline_reason, note)

        reason_text = reopening_decline_message(code, note)
        message = DECLINED_MESSAGE.format(concession=order.concession_name, order_id=order.id, reason=reason_text)

        if self.repo.resolve(
            request.id,
            "declined",
            self.clock(),
            decline_reason=code.value,
            response_message=message,
        ) == 0:
            self.db.rollback()
            raise AlreadyResolved("Request was resolved by another operation")

        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Reopening request {request.id} declined ({code.value})")

        self.notifications.reopening_resolved(order, request.id, "declined", message)
        return request_to_dict(request)

    def _eligibility(self, order: OrderModel, now: datetime | None = None) -> Eligibility:
        limit = settings.MAX_REOPENING_REQUESTS
        window = timedelta(hours=settings.MAX_REOPENING_WINDOW_HOURS)

        if order.status != OrderStatus.DECLINED.value:
            return Eligibility(False, "Order is not in declined status")

        if self.repo.has_pending(order.id):
            return Eligibility(False, "A reopening request is already pending", has_pending_request=True)

        used = self.repo.count_for_order(order.id)
        if used >= limit:
            return Eligibility(False, f"Maximum number of reopening requests ({limit}) reached")

        declined_at = order.declined_at or order.updated_at
        elapsed = (now or self.clock()) - declined_at
        if elapsed > window:
            return Eligibility(
                False,
                f"Reopening window has expired (must be within {settings.MAX_REOPENING_WINDOW_HOURS} hours)",
                remaining_requests=limit - used,
            )

        return Eligibility(
            True,
            remaining_requests=limit - used,
            hours_remaining=round((window - elapsed).total_seconds() / 3600, 2),
        )

    def _load_order(self, order_id: int) -> OrderModel:
        order = self.orders.get_order(order_id)
        if not order:
            raise NotFound(f"Order {order_id} not found")
        # an overdue receipt becomes a decline before eligibility is judged
        self.expiry.check_if_candidate(order)
        return order

    def _load_request(self, request_id: int) -> ReopeningRequestModel:
        request = self.repo.get(request_id)
        if not request:
            raise NotFound(f"Reopening request {request_id} not found")
        return request
