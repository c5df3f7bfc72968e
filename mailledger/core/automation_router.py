"""FastAPI router for automation control.

Start/stop the periodic reconciliation loop, trigger a cycle on demand and
inspect recent run summaries.
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel

from mailledger.core.automation import get_automation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/automation", tags=["automation"])


class AutomationStatusResponse(BaseModel):
    """Snapshot returned by GET /automation/status."""

    running: bool
    cycle_in_progress: bool
    interval_seconds: int
    cycles_completed: int
    successful_cycles: int
    failed_cycles: int
    skipped_cycles: int
    last_run: str | None
    last_error: str | None
    last_summaries: list[dict]
    metrics: dict


@router.get("/status", response_model=AutomationStatusResponse, status_code=status.HTTP_200_OK)
async def get_automation_status():
    """Automation state, last cycle summaries and aggregate run metrics."""
    service = get_automation_service()
    return AutomationStatusResponse(**service.get_status())


@router.post("/start", status_code=status.HTTP_200_OK)
async def start_automation():
    service = get_automation_service()

    if service.running:
        logger.info("[AUTOMATION_API] start ignored, loop already running")
        return {"status": "already_running", "message": "Polling loop is already running"}

    logger.info("[AUTOMATION_API] starting polling loop")
    await service.start()
    return {"status": "started", "message": "Polling loop started"}


@router.post("/stop", status_code=status.HTTP_200_OK)
async def stop_automation():
    """Stop the loop. An in-flight cycle finishes its current message first."""
    service = get_automation_service()

    if not service.running:
        logger.info("[AUTOMATION_API] stop ignored, loop not running")
        return {"status": "not_running", "message": "Polling loop is not running"}

    logger.info("[AUTOMATION_API] stopping polling loop")
    await service.stop()
    return {"status": "stopped", "message": "Polling loop stopped"}


@router.post("/trigger", status_code=status.HTTP_200_OK)
async def trigger_cycle():
    """Run one reconciliation cycle now.

    Returns `skipped` when a cycle is already running.
    """
    service = get_automation_service()
    logger.info("[AUTOMATION_API] manual cycle requested")
    return await service.trigger()
