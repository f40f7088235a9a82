# campus_orders/services/receipt_expiry_service.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict

from sqlalchemy.orm import Session

from campus_orders.domain.errors import Conflict, NotFound
from campus_orders.domain.order_states import OrderEvent, OrderStatus, PaymentMethod
from campus_orders.domain.reasons import OrderDeclineReason, order_decline_message
from campus_orders.repos.order_repo import OrderRepo
from campus_orders.services.notification_service import NotificationService
from campus_orders.services.order_machine import OrderStateMachine, utcnow
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)


class ExpiryOutcome(str, Enum):
    DECLINED = "declined"
    NOT_EXPIRED = "not_expired"
    NOT_APPLICABLE = "not_applicable"


@dataclass
class SweepReport:
    declined: int = 0
    outcomes: Dict[int, str] = field(default_factory=dict)
    failures: Dict[int, str] = field(default_factory=dict)


class ReceiptExpiryService:
    """
    Auto-declines gcash orders whose receipt deadline passed without a live receipt.

    Every check is its own guarded write, so running the sweep twice, or
    next to a concessionaire acting on the same order, declines at most once.
    """

    def __init__(
        self,
        db: Session,
        notifications: NotificationService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = OrderRepo(db)
        self.notifications = notifications or NotificationService()
        self.clock = clock
        self.machine = OrderStateMachine(self.repo, clock)

    def check_single(self, order_id: int, now: datetime | None = None) -> ExpiryOutcome:
        now = now or self.clock()
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound(f"Order {order_id} not found")

        if (
            order.status != OrderStatus.SUBMITTED.value
            or order.payment_method != PaymentMethod.GCASH.value
            or order.receipt_submitted_at is not None
            or order.receipt_deadline is None
        ):
            return ExpiryOutcome.NOT_APPLICABLE

        if order.receipt_deadline >= now:
            return ExpiryOutcome.NOT_EXPIRED

        try:
            changed = self.machine.apply(
                order,
                OrderEvent.RECEIPT_TIMEOUT,
                {
                    "decline_reason": OrderDeclineReason.RECEIPT_TIMEOUT.value,
                    "decline_note": None,
                    "declined_at": now,
                    "receipt_deadline": None,
                    "updated_at": now,
                },
            )
        except Conflict:
            # a receipt or a concessionaire decision landed first; next sweep re-evaluates
            logger.info(f"Order {order_id} changed while expiring its receipt, skipped")
            return ExpiryOutcome.NOT_APPLICABLE

        if not changed:
            return ExpiryOutcome.NOT_APPLICABLE

        logger.info(f"Order {order_id} auto-declined, receipt deadline {order.receipt_deadline} passed")
        self.notifications.receipt_timeout(order, order_decline_message(OrderDeclineReason.RECEIPT_TIMEOUT))
        return ExpiryOutcome.DECLINED

    def check_if_candidate(self, order) -> None:
        """Read-path hook: expire the order now if it is overdue, before it is shown."""
        if (
            order.status == OrderStatus.SUBMITTED.value
            and order.payment_method == PaymentMethod.GCASH.value
            and order.receipt_submitted_at is None
            and order.receipt_deadline is not None
            and order.receipt_deadline < self.clock()
        ):
            self.check_single(order.id)

    def bulk_sweep(self, now: datetime | None = None) -> SweepReport:
        now = now or self.clock()
        report = SweepReport()

        order_ids = self.repo.list_expired_receipt_ids(now)
        logger.info(f"Receipt sweep found {len(order_ids)} overdue orders")

        for order_id in order_ids:
            try:
                outcome = self.check_single(order_id, now)
            except Exception as e:
                # one bad row must not stop the rest of the sweep
                logger.exception(f"Receipt sweep failed for order {order_id}")
                self.repo.rollback()
                report.failures[order_id] = str(e)
                continue

            report.outcomes[order_id] = outcome.value
            if outcome == ExpiryOutcome.DECLINED:
                report.declined += 1

        logger.info(f"Receipt sweep declined {report.declined} orders, {len(report.failures)} failures")
        return report
