# campus_orders/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from campus_orders.api.deps import get_clock, get_notifications
from campus_orders.api.errors import OrderingError, http_error
from campus_orders.data.database import get_db
from campus_orders.domain.schemas import ExpiryCheckOut, OrderOut, ReasonIn, ReceiptIn, SweepOut
from campus_orders.services.order_service import OrderService
from campus_orders.services.receipt_expiry_service import ReceiptExpiryService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    notifications=Depends(get_notifications),
    clock=Depends(get_clock),
):
    return OrderService(db, notifications, clock)


def get_expiry_service(
    db: Session = Depends(get_db),
    notifications=Depends(get_notifications),
    clock=Depends(get_clock),
):
    return ReceiptExpiryService(db, notifications, clock)


@router.get("/customer/{customer_id}", response_model=List[OrderOut])
def list_customer_orders(customer_id: int, svc: OrderService = Depends(get_service)):
    """
    Orders of a customer outside the cart, newest first.
    Overdue GCash orders are declined before they are returned.
    """
    return svc.list_customer_orders(customer_id)


@router.get("/concessionaire/{concessionaire_id}", response_model=List[OrderOut])
def list_concession_orders(
    concessionaire_id: int,
    status: str | None = Query(None),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.list_concession_orders(concessionaire_id, status)
    except OrderingError as e:
        raise http_error(e)


@router.post("/expired/sweep", response_model=SweepOut)
def sweep_expired(svc: ReceiptExpiryService = Depends(get_expiry_service)):
    """Declines every GCash order whose receipt deadline has passed."""
    report = svc.bulk_sweep()
    return {
        "declined": report.declined,
        "outcomes": report.outcomes,
        "failures": report.failures,
    }


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.get_order(order_id, user_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.put("/{order_id}/receipt", response_model=OrderOut)
def upload_receipt(
    order_id: int,
    payload: ReceiptIn,
    customer_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.upload_proof(order_id, customer_id, payload.image, payload.content_type)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.get("/{order_id}/receipt")
def get_receipt(
    order_id: int,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        image, content_type = svc.get_receipt(order_id, user_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)
    return Response(content=image, media_type=content_type)


@router.post("/{order_id}/reject-receipt", response_model=OrderOut)
def reject_receipt(
    order_id: int,
    payload: ReasonIn,
    concessionaire_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.reject_receipt(order_id, concessionaire_id, payload.reason, payload.note)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/{order_id}/accept", response_model=OrderOut)
def accept_order(
    order_id: int,
    concessionaire_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.accept(order_id, concessionaire_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/{order_id}/decline", response_model=OrderOut)
def decline_order(
    order_id: int,
    payload: ReasonIn,
    concessionaire_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.decline(order_id, concessionaire_id, payload.reason, payload.note)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/{order_id}/ready", response_model=OrderOut)
def mark_ready(
    order_id: int,
    concessionaire_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.mark_ready(order_id, concessionaire_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/{order_id}/complete", response_model=OrderOut)
def complete_order(
    order_id: int,
    concessionaire_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.complete(order_id, concessionaire_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    customer_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.cancel(order_id, customer_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/{order_id}/check-expired", response_model=ExpiryCheckOut)
def check_expired(order_id: int, svc: ReceiptExpiryService = Depends(get_expiry_service)):
    try:
        outcome = svc.check_single(order_id)
    except OrderingError as e:
        raise http_error(e)
    return {"order_id": order_id, "outcome": outcome.value}
