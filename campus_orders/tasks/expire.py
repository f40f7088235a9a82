# campus_orders/tasks/expire.py
import threading
import uuid

from redis.exceptions import RedisError

from campus_orders.celery_worker import celery_app
from campus_orders.data.database import SessionLocal
from campus_orders.services.lock_service import LockService
from campus_orders.services.receipt_expiry_service import ReceiptExpiryService, SweepReport
from campus_orders.utils.settings import RECEIPT_SWEEP_INTERVAL_SECONDS, SWEEP_LOCK_TTL_SECONDS
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)

SWEEP_LOCK_NAME = "receipt-sweep"


def run_receipt_sweep(session_factory=SessionLocal, notifications=None) -> SweepReport:
    db = session_factory()
    try:
        return ReceiptExpiryService(db, notifications).bulk_sweep()
    finally:
        db.close()


@celery_app.task(name="campus_orders.tasks.expire.decline_expired_receipts_task")
def decline_expired_receipts_task():
    logger.info("Expired receipts task started")

    lock_service = LockService()
    owner = uuid.uuid4().hex
    locked = True

    # the sweep is idempotent; the lock only keeps overlapping beats from doing the same work twice
    try:
        locked = lock_service.acquire(SWEEP_LOCK_NAME, owner, SWEEP_LOCK_TTL_SECONDS)
    except RedisError as e:
        logger.warning(f"Sweep lock unavailable, sweeping without it: {e}")

    if not locked:
        logger.info("Another receipt sweep is running, skipping")
        return {"declined": 0, "skipped": True}

    try:
        report = run_receipt_sweep()
    finally:
        try:
            lock_service.release(SWEEP_LOCK_NAME, owner)
        except RedisError as e:
            logger.warning(f"Failed to release sweep lock: {e}")

    return {"declined": report.declined, "failures": len(report.failures), "skipped": False}


class ReceiptSweeper:
    """
    In-process timer for deployments without celery beat.
    start() on application startup, stop() on shutdown.
    """

    def __init__(
        self,
        interval: float = RECEIPT_SWEEP_INTERVAL_SECONDS,
        session_factory=SessionLocal,
        notifications=None,
    ):
        self.interval = interval
        self.session_factory = session_factory
        self.notifications = notifications
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="receipt-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Receipt sweeper started, every {self.interval}s")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Receipt sweeper stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                run_receipt_sweep(self.session_factory, self.notifications)
            except Exception:
                logger.exception("Receipt sweep run failed")
