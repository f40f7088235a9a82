# campus_orders/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

import campus_orders.data.models  # noqa: F401  registers every table on Base.metadata
from campus_orders.api import api_router
from campus_orders.data.database import Base, engine
from campus_orders.tasks.expire import ReceiptSweeper
from campus_orders.utils.logging import get_logger
from campus_orders.utils.settings import RECEIPT_SWEEP_IN_PROCESS

logger = get_logger(__name__)


def init_db(bind=engine) -> None:
    logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=bind)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    sweeper = ReceiptSweeper() if RECEIPT_SWEEP_IN_PROCESS else None
    if sweeper:
        sweeper.start()
    try:
        yield
    finally:
        if sweeper:
            sweeper.stop()


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="Campus Orders Service",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else None,
    )

    app.include_router(api_router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
