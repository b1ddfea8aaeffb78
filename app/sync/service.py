"""MSYNC — Sync Service.

Orchestrates the data flow for a date key:
  fetch snapshot (retried) → build rows → upsert into every target sheet

and the reconciliation sweep over a date range. Every public operation runs
behind per-spreadsheet locks so a manual request and a scheduled run never
write the same rows at the same time.
"""

import asyncio
import time
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Callable, Dict, List, Optional

from app.connectors.postgres.source import MetricsSource
from app.connectors.sheets.store import SpreadsheetStore
from app.core.dates import date_range, timestamp_now, today_key, validate_date_key
from app.core.errors import ConfigurationError, PermanentInputError
from app.core.logging import get_logger
from app.core.retry import RetryPolicy, fetch_policy, sheets_policy, with_retry
from app.models.metrics import DailySnapshot
from app.models.sync_models import DateOutcome, Outcome, SweepReport, WriteMode
from app.sync.duplicates import DuplicateResolver
from app.sync.targets import (
    ALL_TARGETS,
    DATASET,
    POSITIONAL_TARGETS,
    PRIMARY,
    SECONDARY,
    SECONDARY_TARGETS,
    SheetTarget,
)
from app.sync.upsert import UpsertEngine

logger = get_logger("sync.service")


class SyncService:
    """Single-date sync, range sweep, header setup and duplicate cleanup."""

    def __init__(
        self,
        source: MetricsSource,
        stores: Dict[str, SpreadsheetStore],
        targets: Optional[List[SheetTarget]] = None,
        fetch_retry: Optional[RetryPolicy] = None,
        sheets_retry: Optional[RetryPolicy] = None,
        today: Callable[[], str] = today_key,
        stamp: Callable[[], str] = timestamp_now,
    ):
        if PRIMARY not in stores:
            raise ConfigurationError("Primary spreadsheet is not configured")
        self.source = source
        self.stores = stores
        self.targets = [t for t in (targets or ALL_TARGETS) if t.spreadsheet in stores]
        self.fetch_retry = fetch_retry or fetch_policy()
        self.sheets_retry = sheets_retry or sheets_policy()
        self.engines = {
            role: UpsertEngine(store, retry=self.sheets_retry) for role, store in stores.items()
        }
        self.resolvers = {
            role: DuplicateResolver(store, retry=self.sheets_retry)
            for role, store in stores.items()
        }
        self._today = today
        self._stamp = stamp
        self._locks: Dict[str, asyncio.Lock] = {}

    # ── Locking ──

    @asynccontextmanager
    async def _exclusive(self):
        """Hold every configured spreadsheet's lock, acquired in id order."""
        ids = sorted({store.spreadsheet_id for store in self.stores.values()})
        async with AsyncExitStack() as stack:
            for sid in ids:
                await stack.enter_async_context(self._locks.setdefault(sid, asyncio.Lock()))
            yield

    # ── Single date ──

    async def sync_date(self, date_key: str, reconcile: bool = False) -> DateOutcome:
        """Fetch and write one date key into every target sheet."""
        validate_date_key(date_key)
        async with self._exclusive():
            return await self._sync_one(date_key, reconcile)

    async def _fetch(self, date_key: str) -> DailySnapshot:
        include_secondary = SECONDARY in self.stores
        return await with_retry(
            lambda: self.source.fetch_snapshot(date_key, include_secondary=include_secondary),
            self.fetch_retry,
            label=f"fetch metrics {date_key}",
        )

    async def _sync_one(self, date_key: str, reconcile: bool) -> DateOutcome:
        started = time.monotonic()
        try:
            snapshot = await self._fetch(date_key)
        except Exception as e:
            logger.error(f"Fetch failed for {date_key}: {e}", extra={"date_key": date_key})
            return DateOutcome.failed(date_key, e)

        today = self._today()
        stamp = self._stamp()
        ensured: set = set()
        outcomes: List[Outcome] = []

        for target in self.targets:
            rows = target.build_rows(snapshot, stamp)
            if not rows:
                continue
            sheet = target.sheet_for(date_key)
            try:
                if target.spreadsheet == SECONDARY and sheet not in ensured:
                    await self._ensure_sheet(target, sheet)
                    ensured.add(sheet)
                outcome = await self.engines[target.spreadsheet].upsert(
                    target, date_key, rows, today=today, reconcile=reconcile
                )
            except Exception as e:
                logger.error(
                    f"Write failed for {sheet} {date_key}: {e}",
                    extra={"sheet": sheet, "date_key": date_key},
                )
                outcome = Outcome.failed(sheet, e)
            outcomes.append(outcome)

        result = DateOutcome.from_sheets(date_key, outcomes)
        logger.info(
            f"{date_key} sync finished: {result.status.value}",
            extra={
                "date_key": date_key,
                "outcome": result.status.value,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return result

    async def _ensure_sheet(self, target: SheetTarget, sheet: str) -> None:
        store = self.stores[target.spreadsheet]
        await with_retry(
            lambda: store.ensure_sheet_exists(sheet),
            self.sheets_retry,
            label=f"ensure sheet {sheet}",
        )

    # ── Sweep ──

    async def sweep(self, start: str, end: str, reconcile: bool = False) -> SweepReport:
        """Sync every day in [start, end], ascending, one at a time.

        A failing date is recorded and the sweep moves on; it never aborts
        and never rolls back. Malformed keys or start > end raise
        PermanentInputError before anything is fetched.
        """
        dates = date_range(start, end)
        report = SweepReport(start_date=start, end_date=end, reconcile=reconcile)
        logger.info(f"Sweep {start} → {end} ({len(dates)} days, reconcile={reconcile})")

        async with self._exclusive():
            for date_key in dates:
                report.outcomes.append(await self._sync_one(date_key, reconcile))

        logger.info(
            f"Sweep {start} → {end} {report.status}: "
            f"{report.written} written, {report.skipped} skipped, {report.failed} failed"
        )
        return report

    # ── Headers ──

    async def setup_headers(self) -> None:
        """Header row for the primary dataset sheet, styled and frozen."""
        store = self.stores[PRIMARY]
        sheet = DATASET.sheet_name
        async with self._exclusive():
            await with_retry(lambda: store.ensure_sheet_exists(sheet), self.sheets_retry)
            await with_retry(
                lambda: store.update_range(
                    sheet, DATASET.header_range, [DATASET.headers], WriteMode.RAW
                ),
                self.sheets_retry,
                label=f"headers {sheet}",
            )
            await with_retry(
                lambda: store.format_header(sheet, len(DATASET.headers)),
                self.sheets_retry,
                label=f"format {sheet}",
            )
        logger.info("Primary sheet headers ready", extra={"sheet": sheet})

    async def setup_secondary_headers(self) -> None:
        """Create the secondary sheets if needed and write their header rows."""
        store = self.stores.get(SECONDARY)
        if store is None:
            raise ConfigurationError("Secondary spreadsheet (GOOGLE_SPREADSHEET_ID2) is not configured")
        async with self._exclusive():
            for target in SECONDARY_TARGETS:
                sheet = target.sheet_name
                await self._ensure_sheet(target, sheet)
                await with_retry(
                    lambda: store.update_range(
                        sheet, target.header_range, [target.headers], WriteMode.RAW
                    ),
                    self.sheets_retry,
                    label=f"headers {sheet}",
                )
        logger.info("Secondary sheet headers ready")

    # ── Duplicates ──

    async def resolve_duplicates(
        self, date_key: str, keys: Optional[List[str]] = None
    ) -> Dict[str, object]:
        """Collapse duplicate rows for ``date_key`` in the chosen positional sheets."""
        validate_date_key(date_key)
        keys = keys or [k for k, t in POSITIONAL_TARGETS.items() if t.spreadsheet in self.stores]
        unknown = [k for k in keys if k not in POSITIONAL_TARGETS]
        if unknown:
            raise PermanentInputError(f"Not a one-row-per-date sheet: {', '.join(unknown)}")

        results: Dict[str, object] = {}
        async with self._exclusive():
            for role, resolver in self.resolvers.items():
                targets = [
                    POSITIONAL_TARGETS[k] for k in keys if POSITIONAL_TARGETS[k].spreadsheet == role
                ]
                if targets:
                    results.update(await resolver.resolve_many(targets, date_key))
        for k in keys:
            if k not in results:
                results[k] = "spreadsheet not configured"
        return results

    async def close(self) -> None:
        for client in {store.client for store in self.stores.values()}:
            await client.close()
