"""MSYNC — Google Sheets Sync Routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_scheduler, get_sync_service
from app.core.dates import today_key
from app.core.logging import get_logger
from app.models.sync_models import DateOutcome
from app.scheduler.jobs import SyncScheduler
from app.sync.service import SyncService

logger = get_logger("api.sheets")

router = APIRouter(prefix="/sheets", tags=["Sheets"])


# ── Request / Response Models ──


class UpdatePeriodRequest(BaseModel):
    """Request body for POST /sheets/update-period."""

    start_date: str
    end_date: str
    reconcile: bool = False
    """Allow overwriting past rows on write-once sheets."""

    model_config = {
        "json_schema_extra": {
            "examples": [{"start_date": "2025-09-01", "end_date": "2025-09-15"}]
        }
    }


class SpecificDateRequest(BaseModel):
    """Request body for POST /sheets/update-specific-date."""

    date: str
    reconcile: bool = False


class ResolveDuplicatesRequest(BaseModel):
    """Request body for POST /sheets/resolve-duplicates."""

    date: str
    sheets: Optional[List[str]] = None
    """Sheet keys (dataset, dataset2, dataset4). Defaults to all of them."""


class SyncResponse(BaseModel):
    status: str
    message: str
    outcome: DateOutcome


def _date_response(outcome: DateOutcome) -> SyncResponse:
    return SyncResponse(
        status=outcome.report_status,
        message=f"{outcome.date}: {outcome.status.value}",
        outcome=outcome,
    )


# ── Headers ──


@router.post("/setup-headers")
async def setup_headers(service: SyncService = Depends(get_sync_service)):
    """Write and style the dataset sheet header row."""
    await service.setup_headers()
    return {"status": "success", "message": "Dataset headers configured"}


@router.post("/setup-dataset2-headers")
async def setup_dataset2_headers(service: SyncService = Depends(get_sync_service)):
    """Create dataset2/3/4 on the secondary spreadsheet and write their headers."""
    await service.setup_secondary_headers()
    return {"status": "success", "message": "dataset2, dataset3, dataset4 headers configured"}


# ── Sync ──


@router.post("/update-daily/{date}", response_model=SyncResponse)
async def update_daily(date: str, service: SyncService = Depends(get_sync_service)):
    """Routine sync for one date key."""
    return _date_response(await service.sync_date(date))


@router.post("/update-specific-date", response_model=SyncResponse)
async def update_specific_date(
    request: SpecificDateRequest, service: SyncService = Depends(get_sync_service)
):
    """Sync one date key, optionally reconciling write-once sheets."""
    return _date_response(await service.sync_date(request.date, reconcile=request.reconcile))


@router.post("/update-now", response_model=SyncResponse)
async def update_now(service: SyncService = Depends(get_sync_service)):
    """Sync today's date key immediately."""
    return _date_response(await service.sync_date(today_key()))


@router.post("/update-period")
async def update_period(
    request: UpdatePeriodRequest, service: SyncService = Depends(get_sync_service)
):
    """Reconciliation sweep over an inclusive date range.

    Always answers 200 with a per-date report; ``status`` is success,
    partial or failed.
    """
    report = await service.sweep(request.start_date, request.end_date, reconcile=request.reconcile)
    return report.summary()


@router.post("/resolve-duplicates")
async def resolve_duplicates(
    request: ResolveDuplicatesRequest, service: SyncService = Depends(get_sync_service)
):
    """Collapse rows sharing the date key down to the earliest one."""
    results = await service.resolve_duplicates(request.date, request.sheets)
    failed = [k for k, v in results.items() if not isinstance(v, int)]
    return {
        "status": "partial" if failed else "success",
        "date": request.date,
        "removed": results,
    }


# ── Scheduler ──


@router.post("/start-auto-update")
async def start_auto_update(scheduler: SyncScheduler = Depends(get_scheduler)):
    if not scheduler.start():
        return {"status": "noop", "message": "Auto update is already running"}
    return {"status": "success", "message": f"Auto update started. {scheduler.description}"}


@router.post("/stop-auto-update")
async def stop_auto_update(scheduler: SyncScheduler = Depends(get_scheduler)):
    if not scheduler.stop():
        return {"status": "noop", "message": "Auto update is not running"}
    return {"status": "success", "message": "Auto update stopped"}


@router.get("/auto-update-status")
async def auto_update_status(scheduler: SyncScheduler = Depends(get_scheduler)):
    return scheduler.status()
