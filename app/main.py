# app/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import get_settings
from app.core.logging_config import configure_logging
from app.routes import health
from app.routes.platforms.ebay import router as ebay_router
from app.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().LOG_LEVEL)

    # Startup: scheduled order reconciliation (no-op unless enabled)
    await start_scheduler()
    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()


app = FastAPI(
    title="Marketplace Order Reconciliation",
    lifespan=lifespan
)

app.include_router(ebay_router)
app.include_router(health.router)  # Health check should be accessible without auth
