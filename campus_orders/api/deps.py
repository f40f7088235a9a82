# campus_orders/api/deps.py
from campus_orders.services.catalog_client import CatalogClient
from campus_orders.services.notification_service import NotificationService
from campus_orders.services.order_machine import utcnow


def get_notifications() -> NotificationService:
    return NotificationService()


def get_catalog() -> CatalogClient:
    return CatalogClient()


def get_clock():
    return utcnow
