# campus_orders/services/order_machine.py
from datetime import datetime, timezone
from typing import Callable

from campus_orders.data.models.order import OrderModel
from campus_orders.domain.errors import Conflict, InvalidTransition, NotFound
from campus_orders.domain.order_states import EVENT_TARGETS, OrderEvent, OrderStatus, target_status
from campus_orders.repos.order_repo import OrderRepo
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStateMachine:
    """
    Applies order transitions as single compare-and-swap writes.

    A write only lands if the row still has the status and version that were
    read. When it does not, the row is re-read: if it already sits in the
    requested status the call is a no-op, otherwise ``Conflict`` is raised.
    """

    def __init__(self, repo: OrderRepo, clock: Callable[[], datetime] = utcnow):
        self.repo = repo
        self.clock = clock

    def apply(
        self,
        order: OrderModel,
        event: OrderEvent,
        changes: dict | None = None,
        commit: bool = True,
    ) -> bool:
        """Returns True when this call changed the status, False for an idempotent replay."""
        target = EVENT_TARGETS[event]
        if order.status == target.value:
            logger.info(f"Order {order.id} already {target.value}, {event.value} ignored")
            return False

        allowed = target_status(order.status, event)
        if allowed is None:
            raise InvalidTransition(f"Cannot {event.value.replace('_', ' ')} an order that is {order.status}")

        data = dict(changes or {})
        data["status"] = allowed.value
        data["in_cart"] = allowed == OrderStatus.CART
        data.setdefault("updated_at", self.clock())

        rowcount = self.repo.transition(
            order_id=order.id,
            expected_status=order.status,
            expected_version=order.version,
            new_data=data,
        )

        if rowcount == 0:
            self.repo.rollback()
            current = self.repo.reload(order.id)
            if current is None:
                raise NotFound(f"Order {order.id} not found")
            if current.status == allowed.value:
                logger.info(f"Order {order.id} reached {allowed.value} through a concurrent writer")
                return False
            logger.warning(
                f"Conflict on order {order.id}: expected {order.status} v{order.version}, "
                f"found {current.status} v{current.version}"
            )
            raise Conflict(f"Order {order.id} was modified by another operation")

        if commit:
            self.repo.commit()
            self.repo.refresh(order)

        logger.info(f"Order {order.id}: {event.value} -> {allowed.value}")
        return True

    def update(self, order: OrderModel, changes: dict, commit: bool = True) -> None:
        """Guarded write that keeps the current status (receipt upload, cart edits)."""
        data = dict(changes)
        data.setdefault("updated_at", self.clock())

        rowcount = self.repo.transition(
            order_id=order.id,
            expected_status=order.status,
            expected_version=order.version,
            new_data=data,
        )

        if rowcount == 0:
            self.repo.rollback()
            raise Conflict(f"Order {order.id} was modified by another operation")

        if commit:
            self.repo.commit()
            self.repo.refresh(order)
