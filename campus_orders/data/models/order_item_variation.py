from sqlalchemy import Column, Integer, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from campus_orders.data.database import Base


class OrderItemVariationModel(Base):
    __tablename__ = "order_item_variations"

    id = Column(Integer, primary_key=True)
    order_detail_id = Column(
        Integer, ForeignKey("order_details.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variation_id = Column(Integer, nullable=False)
    group_id = Column(Integer, nullable=False)
    variation_name = Column(String(120), nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)

    detail = relationship("OrderDetailModel", back_populates="variations")
