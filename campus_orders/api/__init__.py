# campus_orders/api/__init__.py
from fastapi import APIRouter

from campus_orders.api.routers import carts, health, orders, reopening

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(carts.router)
api_router.include_router(orders.router)
api_router.include_router(reopening.router)
