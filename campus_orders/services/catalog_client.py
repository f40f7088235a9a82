# campus_orders/services/catalog_client.py
import requests

from campus_orders.domain.errors import CatalogUnavailable, NotFound
from campus_orders.utils.retry import http_retry
from campus_orders.utils.settings import CATALOG_SERVICE_URL, CATALOG_TIMEOUT_SECONDS
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogClient:
    """
    Read-only view of the menu catalog.
    Items come with their variation groups, concessions with their receipt timer.
    """

    def __init__(self, base_url: str | None = None, timeout: float = CATALOG_TIMEOUT_SECONDS):
        self.base_url = (base_url or CATALOG_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    def fetch_item(self, item_id: int) -> dict:
        return self._get(f"/items/{item_id}", f"Menu item {item_id} not found")

    def fetch_concession(self, concession_id: int) -> dict:
        return self._get(f"/concessions/{concession_id}", f"Concession {concession_id} not found")

    def _get(self, path: str, not_found_message: str) -> dict:
        try:
            resp = self._request(path)
        except requests.RequestException as e:
            logger.error(f"Catalog request {path} failed: {e}")
            raise CatalogUnavailable("Catalog service is unavailable") from e

        if resp.status_code == 404:
            raise NotFound(not_found_message)

        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            logger.error(f"Catalog request {path} returned {resp.status_code}")
            raise CatalogUnavailable("Catalog service is unavailable") from e

        return resp.json()

    @http_retry()
    def _request(self, path: str) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.info(f"CatalogClient GET {url}")
        return requests.get(url, timeout=self.timeout)


def parse_receipt_timer(value) -> int | None:
    """Concession receipt timer as seconds; accepts "HH:MM:SS" or a number of seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return int(value)

    parts = str(value).split(":")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        logger.warning(f"Ignoring malformed receipt timer {value!r}")
        return None

    hours, minutes, seconds = (int(p) for p in parts)
    return hours * 3600 + minutes * 60 + seconds
