# campus_orders/repos/order_repo.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from campus_orders.data.models.order import OrderModel
from campus_orders.data.models.order_detail import OrderDetailModel
from campus_orders.data.models.order_item_variation import OrderItemVariationModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    #query
    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def reload(self, order_id: int) -> OrderModel | None:
        order = self.get_order(order_id)
        if order is not None:
            self.db.refresh(order)
        return order

    def get_cart_order(self, customer_id: int, concession_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(
                OrderModel.customer_id == customer_id,
                OrderModel.concession_id == concession_id,
                OrderModel.in_cart.is_(True),
            )
        ).scalar_one_or_none()

    def list_cart_orders(self, customer_id: int) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .options(selectinload(OrderModel.details).selectinload(OrderDetailModel.variations))
                .where(OrderModel.customer_id == customer_id, OrderModel.in_cart.is_(True))
                .order_by(OrderModel.concession_id, OrderModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def list_customer_orders(self, customer_id: int) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.customer_id == customer_id, OrderModel.in_cart.is_(False))
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def list_concessionaire_orders(self, concessionaire_id: int, status: str | None = None) -> List[OrderModel]:
        stmt = select(OrderModel).where(
            OrderModel.concessionaire_id == concessionaire_id,
            OrderModel.in_cart.is_(False),
        )
        if status:
            stmt = stmt.where(OrderModel.status == status)
        return list(self.db.execute(stmt.order_by(OrderModel.created_at.desc(), OrderModel.id.desc())).scalars())

    def list_expired_receipt_ids(self, now: datetime) -> List[int]:
        """gcash orders still waiting for a receipt after their deadline"""
        return list(
            self.db.execute(
                select(OrderModel.id)
                .where(
                    OrderModel.status == "submitted",
                    OrderModel.payment_method == "gcash",
                    OrderModel.receipt_submitted_at.is_(None),
                    OrderModel.receipt_deadline.is_not(None),
                    OrderModel.receipt_deadline < now,
                )
                .order_by(OrderModel.receipt_deadline)
            ).scalars()
        )

    def get_detail(self, detail_id: int) -> OrderDetailModel | None:
        return self.db.get(OrderDetailModel, detail_id)

    def find_matching_detail(
        self, order_id: int, item_id: int, variation_ids: List[int], note: str | None
    ) -> OrderDetailModel | None:
        candidates = self.db.execute(
            select(OrderDetailModel)
            .options(selectinload(OrderDetailModel.variations))
            .where(OrderDetailModel.order_id == order_id, OrderDetailModel.item_id == item_id)
        ).scalars()

        wanted = sorted(variation_ids)
        for detail in candidates:
            if (detail.note or None) != (note or None):
                continue
            if sorted(v.variation_id for v in detail.variations) == wanted:
                return detail
        return None

    def sum_detail_totals(self, order_id: int) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(OrderDetailModel.total_price), 0)).where(
                OrderDetailModel.order_id == order_id
            )
        ).scalar_one()
        return Decimal(str(total)).quantize(Decimal("0.01"))

    def count_details(self, order_id: int) -> int:
        return self.db.execute(
            select(func.count(OrderDetailModel.id)).where(OrderDetailModel.order_id == order_id)
        ).scalar_one()

    #commands
    def add(self, obj) -> None:
        self.db.add(obj)
        self.db.flush()

    def add_variations(self, detail: OrderDetailModel, variations) -> None:
        for position, v in enumerate(variations):
            self.db.add(
                OrderItemVariationModel(
                    order_detail_id=detail.id,
                    variation_id=v.variation_id,
                    group_id=v.group_id,
                    variation_name=v.name,
                    price=v.price,
                    position=position,
                )
            )
        self.db.flush()

    def delete_detail(self, detail: OrderDetailModel) -> None:
        self.db.delete(detail)
        self.db.flush()

    def transition(
        self,
        order_id: int,
        expected_status: str,
        expected_version: int,
        new_data: dict,
    ) -> int:
        """
        Compare-and-swap write on the order row.
        UPDATE orders SET ..., version = version + 1
        WHERE id = :id AND status = :expected_status AND version = :expected_version
        Returns the number of rows changed; 0 means another writer got there first.
        """
        values = {"updated_at": datetime.now(timezone.utc), **new_data}
        values["version"] = OrderModel.version + 1

        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status == expected_status,
                OrderModel.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_cart_order(self, order_id: int, expected_version: int) -> int:
        result = self.db.execute(
            delete(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status == "cart",
                OrderModel.version == expected_version,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, obj) -> None:
        self.db.refresh(obj)

    def expunge(self, obj) -> None:
        self.db.expunge(obj)
