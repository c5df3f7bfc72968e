from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mailledger.core.automation import get_automation_service
from mailledger.core.automation_router import router as automation_router
from mailledger.core.config import get_settings, validate_settings
from mailledger.core.logging import configure_logging, request_id_middleware
from mailledger.ledger.base import create_tables
from mailledger.ledger.router import router as ledger_router

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.ENV, debug=settings.DEBUG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    # Startup
    logger.info("=" * 70)
    logger.info("🚀 Starting mailledger...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Accounts: {', '.join(settings.gmail_accounts) or 'none'}")
    logger.info("=" * 70)

    for problem in validate_settings(settings):
        logger.warning(f"⚠ {problem}")

    await create_tables()
    logger.info("✓ Ledger tables ready")

    automation = get_automation_service()
    if settings.RUN_ON_STARTUP:
        await automation.start()
        logger.info("✓ Automation service started")
    else:
        logger.info("✓ Automation service initialized (not auto-started)")
        logger.info("   Use POST /automation/start or POST /automation/trigger")

    yield

    # Shutdown
    logger.info("🛑 Shutting down mailledger...")
    await automation.stop()
    logger.info("✓ mailledger shutdown complete")


app = FastAPI(title="mailledger", version="0.1.0", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(automation_router)
app.include_router(ledger_router)


@app.get("/")
def health_check():
    logger.debug("Health check endpoint called")
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    return {"status": "healthy", "env": settings.ENV}
