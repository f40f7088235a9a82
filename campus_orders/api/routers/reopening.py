# campus_orders/api/routers/reopening.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from campus_orders.api.deps import get_clock, get_notifications
from campus_orders.api.errors import OrderingError, http_error
from campus_orders.data.database import get_db
from campus_orders.domain.schemas import (
    EligibilityOut,
    ReopeningIn,
    ReopeningRequestOut,
    ReopeningStatusOut,
    RespondIn,
)
from campus_orders.services.reopening_service import ReopeningService

router = APIRouter(prefix="/reopening", tags=["reopening"])


def get_service(
    db: Session = Depends(get_db),
    notifications=Depends(get_notifications),
    clock=Depends(get_clock),
):
    return ReopeningService(db, notifications, clock)


@router.get("/orders/{order_id}/eligibility", response_model=EligibilityOut)
def check_eligibility(order_id: int, svc: ReopeningService = Depends(get_service)):
    try:
        return svc.can_request_reopening(order_id)
    except OrderingError as e:
        raise http_error(e)


@router.get("/orders/{order_id}/status", response_model=ReopeningStatusOut)
def reopening_status(order_id: int, svc: ReopeningService = Depends(get_service)):
    try:
        return svc.get_status(order_id)
    except OrderingError as e:
        raise http_error(e)


@router.post("/orders/{order_id}/requests", response_model=ReopeningRequestOut, status_code=201)
def create_request(
    order_id: int,
    payload: ReopeningIn,
    customer_id: int = Query(...),
    svc: ReopeningService = Depends(get_service),
):
    """
    Customer asks the concessionaire to reopen a declined order.
    Refused with 422 when the order is not eligible.
    """
    try:
        return svc.create_request(order_id, customer_id, payload.reason, payload.custom_reason)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.get("/concessionaires/{concessionaire_id}", response_model=List[ReopeningRequestOut])
def list_requests(
    concessionaire_id: int,
    status: str | None = Query(None),
    svc: ReopeningService = Depends(get_service),
):
    try:
        return svc.list_for_concessionaire(concessionaire_id, status)
    except OrderingError as e:
        raise http_error(e)


@router.get("/requests/{request_id}", response_model=ReopeningRequestOut)
def get_request(request_id: int, svc: ReopeningService = Depends(get_service)):
    try:
        return svc.get_request(request_id)
    except OrderingError as e:
        raise http_error(e)


@router.put("/requests/{request_id}/respond", response_model=ReopeningRequestOut)
def respond_to_request(
    request_id: int,
    payload: RespondIn,
    concessionaire_id: int = Query(...),
    svc: ReopeningService = Depends(get_service),
):
    try:
        return svc.respond_to_request(
            request_id,
            concessionaire_id,
            payload.decision,
            payload.decline_reason,
            payload.note,
        )
    except (OrderingError, PermissionError) as e:
        raise http_error(e)
