# campus_orders/services/order_views.py
from typing import Any, Dict

from campus_orders.data.models.order import OrderModel
from campus_orders.data.models.order_detail import OrderDetailModel
from campus_orders.data.models.reopening_request import ReopeningRequestModel
from campus_orders.domain.reasons import order_decline_message, payment_rejection_message


def detail_to_dict(detail: OrderDetailModel) -> Dict[str, Any]:
    return {
        "id": detail.id,
        "item_id": detail.item_id,
        "item_name": detail.item_name,
        "quantity": detail.quantity,
        "unit_price": detail.unit_price,
        "variation_total": detail.variation_total,
        "total_price": detail.total_price,
        "note": detail.note,
        "variations": [
            {
                "variation_id": v.variation_id,
                "group_id": v.group_id,
                "name": v.variation_name,
                "price": v.price,
            }
            for v in detail.variations
        ],
    }


def order_to_dict(order: OrderModel, with_details: bool = True) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "customer_id": order.customer_id,
        "concession_id": order.concession_id,
        "concession_name": order.concession_name,
        "status": order.status,
        "in_cart": order.in_cart,
        "payment_method": order.payment_method,
        "total_price": order.total_price,
        "schedule_time": order.schedule_time,
        "receipt_submitted_at": order.receipt_submitted_at,
        "receipt_deadline": order.receipt_deadline,
        "receipt_rejection": (
            payment_rejection_message(order.receipt_rejection_reason, order.receipt_rejection_note)
            if order.receipt_rejection_reason
            else None
        ),
        "decline_reason": order.decline_reason,
        "decline_message": (
            order_decline_message(order.decline_reason, order.decline_note) if order.decline_reason else None
        ),
        "declined_at": order.declined_at,
        "reopened_at": order.reopened_at,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }
    if with_details:
        data["details"] = [detail_to_dict(d) for d in order.details]
    return data


def request_to_dict(request: ReopeningRequestModel) -> Dict[str, Any]:
    return {
        "id": request.id,
        "order_id": request.order_id,
        "customer_id": request.customer_id,
        "concessionaire_id": request.concessionaire_id,
        "reason": request.reason,
        "custom_reason": request.custom_reason,
        "message": request.message,
        "status": request.status,
        "decline_reason": request.decline_reason,
        "response_message": request.response_message,
        "created_at": request.created_at,
        "resolved_at": request.resolved_at,
    }
