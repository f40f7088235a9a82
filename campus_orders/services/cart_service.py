from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campus_orders.data.models.order import OrderModel
from campus_orders.data.models.order_detail import OrderDetailModel
from campus_orders.domain.errors import Conflict, InvalidSelection, InvalidTransition, NotFound, QuantityError
from campus_orders.domain.order_states import OrderStatus
from campus_orders.repos.order_repo import OrderRepo
from campus_orders.services.catalog_client import CatalogClient, parse_receipt_timer
from campus_orders.services.order_machine import OrderStateMachine, utcnow
from campus_orders.services.order_service import parse_payment_method
from campus_orders.services.order_views import order_to_dict
from campus_orders.services.pricing import ZERO, line_total, price_range, price_selection
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Cart side of ordering: one draft order per customer and concession.

    commands (add, update quantity, remove, payment method) change the draft
    and bump the order version through a guarded write; query (get) only reads
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = OrderRepo(db)
        self.catalog = catalog
        self.clock = clock
        self.machine = OrderStateMachine(self.repo, clock)

    #query
    def get_cart(self, customer_id: int) -> Dict[str, Any]:
        orders = self.repo.list_cart_orders(customer_id)
        total = sum((o.total_price for o in orders), ZERO)

        return {
            "customer_id": customer_id,
            "concessions": [
                {
                    "concession_id": o.concession_id,
                    "concession_name": o.concession_name,
                    "order": order_to_dict(o),
                }
                for o in orders
            ],
            "total": total,
        }

    def quote_item(self, item_id: int) -> Dict[str, Any]:
        """Display prices for a menu item; variant-priced items quote a range."""
        item = self.catalog.fetch_item(item_id)
        low, high = price_range(item)

        return {
            "item_id": item_id,
            "name": item.get("name", ""),
            "starting_price": low,
            "max_price": high,
            "variant_priced": low != high,
        }

    #commands
    def add_item(
        self,
        customer_id: int,
        concession_id: int,
        item_id: int,
        quantity: int,
        variation_ids: List[int] | None = None,
        note: str | None = None,
    ) -> Dict[str, Any]:
        if quantity < 1:
            raise QuantityError("Quantity must be at least 1")

        variation_ids = list(variation_ids or [])

        logger.info(f"Fetching menu item {item_id} from catalog")
        item = self.catalog.fetch_item(item_id)

        if int(item.get("concession_id", concession_id)) != concession_id:
            raise InvalidSelection(f"Item {item_id} is not sold by concession {concession_id}")
        if not item.get("available", True):
            raise InvalidSelection(f"Item '{item.get('name', item_id)}' is not available")

        priced = price_selection(item, variation_ids)

        order = self.repo.get_cart_order(customer_id, concession_id)
        is_new = order is None
        if is_new:
            order = self._open_cart_order(customer_id, concession_id)

        existing = None if is_new else self.repo.find_matching_detail(order.id, item_id, variation_ids, note)

        if existing:
            logger.info(
                f"Item {item_id} already in cart order {order.id}, quantity "
                f"{existing.quantity} -> {existing.quantity + quantity}"
            )
            existing.quantity += quantity
            existing.unit_price = priced.unit_price
            existing.variation_total = sum((v.price for v in existing.variations), ZERO)
            existing.total_price = line_total(
                existing.quantity, existing.unit_price, [v.price for v in existing.variations]
            )
            self.repo.add(existing)
        else:
            logger.info(f"Adding item {item_id} to cart order {order.id}")
            detail = OrderDetailModel(
                order_id=order.id,
                item_id=item_id,
                item_name=item.get("name", ""),
                quantity=quantity,
                unit_price=priced.unit_price,
                variation_total=priced.variation_total,
                total_price=priced.line_total(quantity),
                note=note,
            )
            self.repo.add(detail)
            self.repo.add_variations(detail, priced.variations)

        self._save_total(order, is_new)
        return self.get_cart(customer_id)

    def update_quantity(self, order_detail_id: int, quantity: int, customer_id: int) -> Dict[str, Any]:
        if quantity < 1:
            raise QuantityError("Quantity must be at least 1")

        detail, order = self._load_cart_detail(order_detail_id, customer_id)

        detail.quantity = quantity
        detail.total_price = line_total(quantity, detail.unit_price, [v.price for v in detail.variations])
        self.repo.add(detail)

        self._save_total(order)
        logger.info(f"Cart line {order_detail_id} quantity set to {quantity}")
        return self.get_cart(customer_id)

    def remove_item(self, order_detail_id: int, customer_id: int) -> Dict[str, Any]:
        detail, order = self._load_cart_detail(order_detail_id, customer_id)

        logger.info(f"Removing line {order_detail_id} from cart order {order.id}")
        self.repo.delete_detail(detail)

        if self.repo.count_details(order.id) == 0:
            # an emptied draft disappears with its last line
            if self.repo.delete_cart_order(order.id, order.version) == 0:
                self.repo.rollback()
                raise Conflict(f"Order {order.id} was modified by another operation")
            self.repo.commit()
            self.repo.expunge(order)
            logger.info(f"Cart order {order.id} emptied and deleted")
        else:
            self._save_total(order)

        return self.get_cart(customer_id)

    def set_payment_method(self, order_id: int, customer_id: int, payment_method: str) -> Dict[str, Any]:
        method = parse_payment_method(payment_method)
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound(f"Order {order_id} not found")
        if order.customer_id != customer_id:
            raise PermissionError("No access to this order")
        if order.status != OrderStatus.CART.value:
            raise InvalidTransition("Payment method can only be changed before checkout")

        self.machine.update(order, {"payment_method": method.value})
        return order_to_dict(order)

    #helpers
    def _open_cart_order(self, customer_id: int, concession_id: int) -> OrderModel:
        concession = self.catalog.fetch_concession(concession_id)
        now = self.clock()

        order = OrderModel(
            customer_id=customer_id,
            concession_id=concession_id,
            concessionaire_id=int(concession["concessionaire_id"]),
            concession_name=concession.get("name", ""),
            receipt_grace_seconds=parse_receipt_timer(concession.get("receipt_timer")),
            status=OrderStatus.CART.value,
            in_cart=True,
            payment_method="cash",
            total_price=ZERO,
            version=1,
            created_at=now,
            updated_at=now,
        )
        try:
            self.repo.add(order)
        except IntegrityError:
            self.repo.rollback()
            raise Conflict("A cart for this concession was created by another request")

        logger.info(f"Created cart order {order.id} for customer {customer_id} at concession {concession_id}")
        return order

    def _load_cart_detail(self, order_detail_id: int, customer_id: int):
        detail = self.repo.get_detail(order_detail_id)
        if not detail:
            raise NotFound(f"Order detail {order_detail_id} not found")

        order = detail.order
        if order.customer_id != customer_id:
            raise PermissionError("No access to this cart")
        if order.status != OrderStatus.CART.value:
            raise NotFound(f"Order detail {order_detail_id} is not in an editable cart")

        return detail, order

    def _save_total(self, order: OrderModel, is_new: bool = False) -> None:
        total: Decimal = self.repo.sum_detail_totals(order.id)

        if is_new:
            order.total_price = total
            self.repo.add(order)
            self.repo.commit()
            return

        # guarded write: a concurrent checkout must not see half an edit
        self.machine.update(order, {"total_price": total})
