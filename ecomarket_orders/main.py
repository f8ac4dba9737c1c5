import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from ecomarket_orders.config import settings
from ecomarket_orders.database import create_tables
from ecomarket_orders.presentation.api import router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    await create_tables()
    logger.info("Tables ready")

    yield

    logger.info("Order service shutting down")

app = FastAPI(
    title="Order Service",
    description="Checkout orchestration: identity, catalog inventory and payments",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "healthy"}
