# campus_orders/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from campus_orders.api.deps import get_catalog, get_clock, get_notifications
from campus_orders.api.errors import OrderingError, http_error
from campus_orders.data.database import get_db
from campus_orders.domain.schemas import (
    AddItemIn,
    CartOut,
    CheckoutIn,
    ItemQuoteOut,
    OrderOut,
    PaymentMethodIn,
    QuantityIn,
)
from campus_orders.services.cart_service import CartService
from campus_orders.services.order_service import OrderService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(
    db: Session = Depends(get_db),
    catalog=Depends(get_catalog),
    clock=Depends(get_clock),
):
    return CartService(db=db, catalog=catalog, clock=clock)


def get_order_service(
    db: Session = Depends(get_db),
    notifications=Depends(get_notifications),
    clock=Depends(get_clock),
):
    return OrderService(db, notifications, clock)


@router.get("/", response_model=CartOut)
def get_cart(customer_id: int = Query(...), svc: CartService = Depends(get_service)):
    return svc.get_cart(customer_id)


@router.get("/items/{item_id}/price", response_model=ItemQuoteOut)
def quote_item(item_id: int, svc: CartService = Depends(get_service)):
    try:
        return svc.quote_item(item_id)
    except OrderingError as e:
        raise http_error(e)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: AddItemIn,
    customer_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.add_item(
            customer_id=customer_id,
            concession_id=payload.concession_id,
            item_id=payload.item_id,
            quantity=payload.quantity,
            variation_ids=payload.variation_ids,
            note=payload.note,
        )
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.patch("/items/{order_detail_id}", response_model=CartOut)
def update_quantity(
    order_detail_id: int,
    payload: QuantityIn,
    customer_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.update_quantity(order_detail_id, payload.quantity, customer_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.delete("/items/{order_detail_id}", response_model=CartOut)
def remove_item(
    order_detail_id: int,
    customer_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.remove_item(order_detail_id, customer_id)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.patch("/orders/{order_id}/payment-method", response_model=OrderOut)
def set_payment_method(
    order_id: int,
    payload: PaymentMethodIn,
    customer_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.set_payment_method(order_id, customer_id, payload.payment_method)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/checkout", response_model=list[OrderOut])
def checkout_cart(
    payload: CheckoutIn,
    customer_id: int = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    """Checks out every cart order of the customer, one order per concession."""
    try:
        return svc.checkout_cart(customer_id, payload.payment_method, payload.schedule_time)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)


@router.post("/orders/{order_id}/checkout", response_model=OrderOut)
def checkout_single_order(
    order_id: int,
    payload: CheckoutIn,
    customer_id: int = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.checkout_single_order(order_id, customer_id, payload.payment_method, payload.schedule_time)
    except (OrderingError, PermissionError) as e:
        raise http_error(e)
