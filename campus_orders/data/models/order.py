from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Index,
    Integer,
    LargeBinary,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship

from campus_orders.data.database import Base
from campus_orders.data.types import UTCDateTime


def utcnow():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, nullable=False, index=True)
    concession_id = Column(Integer, nullable=False)
    concessionaire_id = Column(Integer, nullable=False, index=True)
    concession_name = Column(String(120), nullable=False, default="")

    status = Column(String(20), nullable=False, default="cart")  # cart, submitted, accepted, declined, ready, completed, cancelled
    in_cart = Column(Boolean, nullable=False, default=True)
    payment_method = Column(String(10), nullable=False, default="cash")
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    schedule_time = Column(UTCDateTime(), nullable=True)

    receipt_grace_seconds = Column(Integer, nullable=True)
    receipt_image = Column(LargeBinary, nullable=True)
    receipt_content_type = Column(String(50), nullable=True)
    receipt_submitted_at = Column(UTCDateTime(), nullable=True)
    receipt_deadline = Column(UTCDateTime(), nullable=True)
    receipt_rejection_reason = Column(String(40), nullable=True)
    receipt_rejection_note = Column(String(500), nullable=True)

    decline_reason = Column(String(40), nullable=True)
    decline_note = Column(String(500), nullable=True)
    declined_at = Column(UTCDateTime(), nullable=True)
    original_decline_reason = Column(String(40), nullable=True)
    reopened_at = Column(UTCDateTime(), nullable=True)

    new_order_notified = Column(Boolean, nullable=False, default=False)

    # bumped on every guarded write, see OrderRepo.transition
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    details = relationship(
        "OrderDetailModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderDetailModel.id",
    )
    reopening_requests = relationship(
        "ReopeningRequestModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ReopeningRequestModel.id",
    )

    __table_args__ = (
        Index("ix_orders_status_deadline", "status", "receipt_deadline"),
        # one open cart per customer and concession
        Index(
            "uq_orders_open_cart",
            "customer_id",
            "concession_id",
            unique=True,
            postgresql_where=text("in_cart"),
            sqlite_where=text("in_cart"),
        ),
    )
