#import all models so SQLAlchemy registers them in Base.metadata

from campus_orders.data.models.order import OrderModel
from campus_orders.data.models.order_detail import OrderDetailModel
from campus_orders.data.models.order_item_variation import OrderItemVariationModel
from campus_orders.data.models.reopening_request import ReopeningRequestModel

__all__ = ["OrderModel", "OrderDetailModel", "OrderItemVariationModel", "ReopeningRequestModel"]
