"""MSYNC — Metrics Source.

Runs the aggregate queries against the service database and returns typed
records. Queries execute in a worker thread so the event loop stays free
while PostgreSQL works.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, ProgrammingError
from sqlmodel import Session

from app.config import settings
from app.connectors.postgres import queries
from app.core.dates import date_range, day_bounds_utc, range_bounds_utc
from app.core.errors import ConfigurationError, PermanentInputError, TransientError
from app.core.logging import get_logger
from app.models.metrics import (
    DailySnapshot,
    DuplicateCard,
    GradeStats,
    MetricRecord,
    MileageStats,
    PeriodTotals,
    RegistrationCount,
)

logger = get_logger("postgres.source")

Row = Dict[str, Any]

# SQLSTATE classes that no retry can fix: bad credentials, unknown database,
# unknown role or table
MISCONFIGURED_PGCODES = {"28000", "28P01", "3D000", "42P01", "42501"}
MISCONFIGURED_MESSAGES = (
    "password authentication failed",
    "authentication failed",
    "no password supplied",
    "does not exist",
    "no such table",
    "permission denied",
)


def _is_misconfiguration(error: DBAPIError) -> bool:
    """Auth, missing database/role/table: OperationalErrors that never heal."""
    if getattr(error.orig, "pgcode", None) in MISCONFIGURED_PGCODES:
        return True
    message = str(error.orig).lower()
    return any(fragment in message for fragment in MISCONFIGURED_MESSAGES)


class MetricsSource:
    """Read-only access to the daily aggregates."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cutoff: Optional[datetime] = None,
    ):
        self._session_factory = session_factory
        self._cutoff = cutoff or datetime.fromisoformat(settings.integration_cutoff)

    # ── Core query runner ──

    def _run(self, fn: Callable[[Session], Any]) -> Any:
        try:
            with self._session_factory() as session:
                return fn(session)
        except OperationalError as e:
            if _is_misconfiguration(e):
                raise ConfigurationError(f"Metrics database rejected MSYNC: {e.orig}") from e
            raise TransientError(f"Metrics database unavailable: {e.orig}") from e
        except ProgrammingError as e:
            raise ConfigurationError(f"Metrics database schema mismatch: {e.orig}") from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise TransientError(f"Metrics database connection lost: {e.orig}") from e
            raise

    def _params(self, sql, start: datetime, end: datetime) -> Row:
        """Bind only the parameters the statement declares."""
        available = {
            "start": start,
            "end": end,
            "cutoff": self._cutoff,
            **queries.CARD_PARAMS,
        }
        declared = sql.compile().params.keys()
        return {k: v for k, v in available.items() if k in declared}

    async def _first(self, sql, start: datetime, end: datetime) -> Optional[Row]:
        params = self._params(sql, start, end)

        def run(session: Session) -> Optional[Row]:
            row = session.execute(sql, params).mappings().first()
            return dict(row) if row else None

        return await asyncio.to_thread(self._run, run)

    async def _all(self, sql, start: datetime, end: datetime) -> List[Row]:
        params = self._params(sql, start, end)

        def run(session: Session) -> List[Row]:
            return [dict(r) for r in session.execute(sql, params).mappings().all()]

        return await asyncio.to_thread(self._run, run)

    # ── Integration metrics ──

    async def fetch_daily_metrics(self, date: str) -> MetricRecord:
        """Integration metrics for one local-calendar day."""
        row = await self._first(queries.INTEGRATION_DATA, *day_bounds_utc(date))
        if row is None:
            logger.info(f"No metrics row for {date}; using zeros", extra={"date_key": date})
        return MetricRecord.from_row(date, row)

    async def fetch_range_metrics(self, start: str, end: str) -> List[MetricRecord]:
        """One record per calendar day in [start, end], ascending."""
        records: List[MetricRecord] = []
        for day in date_range(start, end):
            records.append(await self.fetch_daily_metrics(day))
        return records

    async def fetch_period_metric(self, metric: str, start: str, end: str) -> int:
        """A single integration metric counted over [start, end]."""
        if metric not in queries.METRIC_QUERIES:
            raise PermanentInputError(f"Unknown metric: {metric}")
        sql = text(queries.METRIC_QUERIES[metric])
        params = self._params(sql, *range_bounds_utc(start, end))

        def run(session: Session) -> Any:
            return session.execute(sql, params).scalar()

        value = await asyncio.to_thread(self._run, run)
        return int(value or 0)

    async def fetch_period_totals(self, start: str, end: str) -> PeriodTotals:
        """Every integration metric counted over [start, end]."""
        row = await self._first(queries.INTEGRATION_DATA, *range_bounds_utc(start, end))
        return PeriodTotals(start_date=start, end_date=end, **(row or {}))

    # ── Mileage / registrations ──

    async def fetch_mileage_stats(self, date: str) -> MileageStats:
        row = await self._first(queries.MILEAGE_STATS, *day_bounds_utc(date))
        return MileageStats.from_row(date, row)

    async def fetch_grade_stats(self, date: str) -> List[GradeStats]:
        rows = await self._all(queries.MILEAGE_GRADE_STATS, *day_bounds_utc(date))
        return [GradeStats.from_row(date, r) for r in rows]

    async def fetch_registration_count(self, date: str) -> RegistrationCount:
        row = await self._first(queries.DAILY_USER_REGISTRATION, *day_bounds_utc(date))
        return RegistrationCount.from_row(date, row)

    async def fetch_duplicate_cards(self) -> List[DuplicateCard]:
        def run(session: Session) -> List[Row]:
            return [dict(r) for r in session.execute(queries.DUPLICATE_CARDS).mappings().all()]

        rows = await asyncio.to_thread(self._run, run)
        return [DuplicateCard(card_no=str(r["card_no"]), count=int(r["count"])) for r in rows]

    # ── Snapshot ──

    async def fetch_snapshot(self, date: str, include_secondary: bool = True) -> DailySnapshot:
        """Everything the sheets need for one date key."""
        metrics = await self.fetch_daily_metrics(date)
        if not include_secondary:
            return DailySnapshot(date=date, metrics=metrics)
        return DailySnapshot(
            date=date,
            metrics=metrics,
            mileage=await self.fetch_mileage_stats(date),
            grades=await self.fetch_grade_stats(date),
            registration=await self.fetch_registration_count(date),
        )
