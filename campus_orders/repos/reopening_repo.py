# campus_orders/repos/reopening_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from campus_orders.data.models.reopening_request import ReopeningRequestModel


class ReopeningRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, request_id: int) -> ReopeningRequestModel | None:
        return self.db.get(ReopeningRequestModel, request_id)

    def latest_for_order(self, order_id: int) -> ReopeningRequestModel | None:
        return self.db.execute(
            select(ReopeningRequestModel)
            .where(ReopeningRequestModel.order_id == order_id)
            .order_by(ReopeningRequestModel.created_at.desc(), ReopeningRequestModel.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def count_for_order(self, order_id: int) -> int:
        return self.db.execute(
            select(func.count(ReopeningRequestModel.id)).where(ReopeningRequestModel.order_id == order_id)
        ).scalar_one()

    def has_pending(self, order_id: int) -> bool:
        found = self.db.execute(
            select(ReopeningRequestModel.id)
            .where(ReopeningRequestModel.order_id == order_id, ReopeningRequestModel.status == "pending")
            .limit(1)
        ).first()
        return found is not None

    def list_for_concessionaire(self, concessionaire_id: int, status: str | None = None) -> List[ReopeningRequestModel]:
        stmt = select(ReopeningRequestModel).where(ReopeningRequestModel.concessionaire_id == concessionaire_id)
        if status and status != "all":
            stmt = stmt.where(ReopeningRequestModel.status == status)
        return list(
            self.db.execute(
                stmt.order_by(ReopeningRequestModel.created_at.desc(), ReopeningRequestModel.id.desc())
            ).scalars()
        )

    def add(self, request: ReopeningRequestModel) -> None:
        self.db.add(request)
        self.db.flush()

    def resolve(self, request_id: int, status: str, resolved_at: datetime, **fields) -> int:
        """Only a pending request can be resolved; returns affected rows."""
        result = self.db.execute(
            update(ReopeningRequestModel)
            .where(ReopeningRequestModel.id == request_id, ReopeningRequestModel.status == "pending")
            .values(status=status, resolved_at=resolved_at, **fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
