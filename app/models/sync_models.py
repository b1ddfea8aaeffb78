"""MSYNC — Sync Outcome Models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class UpdatePolicy(str, Enum):
    """How an existing row for a date key is treated."""

    ALWAYS_OVERWRITE = "always_overwrite"
    WRITE_ONCE_UNLESS_TODAY = "write_once_unless_today"
    APPEND_ONLY = "append_only"


class WriteMode(str, Enum):
    """Sheets valueInputOption."""

    RAW = "RAW"
    INTERPRETED = "USER_ENTERED"


class OutcomeStatus(str, Enum):
    WRITTEN = "written"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_EXISTING = "skipped_existing"
    FAILED = "failed"


class RowPosition(BaseModel):
    """Where a date key lives in a sheet (1-based row)."""

    sheet: str
    row: int


class Outcome(BaseModel):
    """Result of one upsert against one sheet."""

    sheet: str
    status: OutcomeStatus
    row: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def failed(cls, sheet: str, error: BaseException) -> "Outcome":
        return cls(sheet=sheet, status=OutcomeStatus.FAILED, reason=_describe(error))


class DateOutcome(BaseModel):
    """Aggregate result for one date key across every target sheet."""

    date: str
    status: OutcomeStatus
    sheets: List[Outcome] = []
    error: Optional[str] = None

    @classmethod
    def from_sheets(cls, date: str, sheets: List[Outcome]) -> "DateOutcome":
        statuses = [o.status for o in sheets]
        failures = [o for o in sheets if o.status == OutcomeStatus.FAILED]
        if failures:
            status = OutcomeStatus.FAILED
        elif OutcomeStatus.WRITTEN in statuses:
            status = OutcomeStatus.WRITTEN
        elif OutcomeStatus.SKIPPED_DUPLICATE in statuses:
            status = OutcomeStatus.SKIPPED_DUPLICATE
        else:
            status = OutcomeStatus.SKIPPED_EXISTING
        error = "; ".join(f"{o.sheet}: {o.reason}" for o in failures) or None
        return cls(date=date, status=status, sheets=sheets, error=error)

    @property
    def report_status(self) -> str:
        """success | partial | failed, judged per sheet."""
        if self.status != OutcomeStatus.FAILED:
            return "success"
        if any(o.status != OutcomeStatus.FAILED for o in self.sheets):
            return "partial"
        return "failed"

    @classmethod
    def failed(cls, date: str, error: BaseException) -> "DateOutcome":
        return cls(date=date, status=OutcomeStatus.FAILED, error=_describe(error))


class SweepReport(BaseModel):
    """Ordered per-date outcomes for an inclusive date range."""

    start_date: str
    end_date: str
    reconcile: bool = False
    outcomes: List[DateOutcome] = []

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def written(self) -> int:
        return self._count(OutcomeStatus.WRITTEN)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED_EXISTING) + self._count(
            OutcomeStatus.SKIPPED_DUPLICATE
        )

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def status(self) -> str:
        """success | partial | failed"""
        if not self.failed:
            return "success"
        if self.failed == len(self.outcomes):
            return "failed"
        return "partial"

    def summary(self) -> dict:
        return {
            "status": self.status,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "reconcile": self.reconcile,
            "written": self.written,
            "skipped": self.skipped,
            "failed": self.failed,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"
