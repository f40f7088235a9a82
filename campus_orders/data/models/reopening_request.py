from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from campus_orders.data.database import Base
from campus_orders.data.types import UTCDateTime


class ReopeningRequestModel(Base):
    __tablename__ = "reopening_requests"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, nullable=False)
    concessionaire_id = Column(Integer, nullable=False, index=True)

    reason = Column(String(40), nullable=False)
    custom_reason = Column(String(500), nullable=True)
    message = Column(String(1000), nullable=False)

    status = Column(String(20), nullable=False, default="pending")  # pending, approved, declined
    decline_reason = Column(String(40), nullable=True)
    response_message = Column(String(1000), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc))
    resolved_at = Column(UTCDateTime(), nullable=True)

    order = relationship("OrderModel", back_populates="reopening_requests")

    __table_args__ = (
        # one pending request per order
        Index(
            "uq_reopening_pending_per_order",
            "order_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )
