from sqlalchemy import Column, Integer, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from campus_orders.data.database import Base


class OrderDetailModel(Base):
    __tablename__ = "order_details"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, nullable=False)
    item_name = Column(String(120), nullable=False, default="")

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    variation_total = Column(Numeric(10, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False)
    note = Column(String(255), nullable=True)

    order = relationship("OrderModel", back_populates="details")
    variations = relationship(
        "OrderItemVariationModel",
        back_populates="detail",
        cascade="all, delete-orphan",
        order_by="OrderItemVariationModel.position",
    )
