"""MSYNC — Route Dependencies."""

from typing import Optional

from fastapi import Request

from app.config import settings
from app.connectors.postgres.source import MetricsSource
from app.connectors.sheets.auth import build_credentials
from app.connectors.sheets.client import SheetsClient, credentials_token_provider
from app.connectors.sheets.store import SpreadsheetStore
from app.core.errors import ConfigurationError
from app.database import session_factory
from app.scheduler.jobs import SyncScheduler
from app.sync.service import SyncService
from app.sync.targets import PRIMARY, SECONDARY

_service: Optional[SyncService] = None
_source: Optional[MetricsSource] = None


def build_sync_service() -> SyncService:
    """Wire source, Sheets client and stores from settings."""
    if not settings.google_spreadsheet_id:
        raise ConfigurationError("GOOGLE_SPREADSHEET_ID is not configured")
    client = SheetsClient(credentials_token_provider(build_credentials(settings)))
    stores = {PRIMARY: SpreadsheetStore(client, settings.google_spreadsheet_id)}
    if settings.google_spreadsheet_id2:
        stores[SECONDARY] = SpreadsheetStore(client, settings.google_spreadsheet_id2)
    return SyncService(source=get_metrics_source(), stores=stores)


def get_sync_service() -> SyncService:
    """Process-wide service; built on first use so missing config surfaces per request."""
    global _service
    if _service is None:
        _service = build_sync_service()
    return _service


def get_metrics_source() -> MetricsSource:
    global _source
    if _source is None:
        _source = MetricsSource(session_factory)
    return _source


def get_scheduler(request: Request) -> SyncScheduler:
    return request.app.state.scheduler


async def close_services() -> None:
    """Release the Sheets HTTP client if a service was ever built."""
    global _service
    if _service is not None:
        await _service.close()
        _service = None
