"""
Shared fixtures: in-memory spreadsheet store, scripted metrics source and
zero-delay retry policies.
"""
import asyncio
import re
from typing import Any, Dict, List, Optional

import pytest

from app.connectors.sheets.store import column_index
from app.core.retry import RetryPolicy
from app.models.metrics import (
    DailySnapshot,
    GradeStats,
    MetricRecord,
    MileageStats,
    RegistrationCount,
)

RANGE_RE = re.compile(r"^([A-Z]+)(\d*):([A-Z]+)(\d*)$")


async def _no_sleep(_: float) -> None:
    return None


def fast_policy(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, delay_seconds=0, sleep=_no_sleep)


class FakeClient:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeStore:
    """Dict-of-rows stand-in for SpreadsheetStore. Rows are 1-based."""

    def __init__(self, spreadsheet_id: str = "sheet-1", sheets: Optional[Dict[str, Dict[int, List[Any]]]] = None):
        self.spreadsheet_id = spreadsheet_id
        self.client = FakeClient()
        self.sheets: Dict[str, Dict[int, List[Any]]] = sheets or {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, List[Exception]] = {}

    # ── helpers ──

    def fail(self, method: str, *errors: Exception) -> None:
        """Queue errors raised by the next calls to ``method``."""
        self.failures.setdefault(method, []).extend(errors)

    def _maybe_fail(self, method: str) -> None:
        queue = self.failures.get(method)
        if queue:
            raise queue.pop(0)

    def rows(self, sheet: str) -> Dict[int, List[Any]]:
        return self.sheets.setdefault(sheet, {})

    def row(self, sheet: str, number: int) -> List[Any]:
        return self.rows(sheet).get(number, [])

    @staticmethod
    def _parse(cell_range: str):
        m = RANGE_RE.match(cell_range)
        assert m, cell_range
        first, start, last, end = m.groups()
        return column_index(first) - 1, int(start or 1), column_index(last) - 1, int(end or start or 1)

    # ── SpreadsheetStore API ──

    async def get_column(self, sheet: str, column: str = "A") -> List[str]:
        self.calls.append(("get_column", sheet))
        self._maybe_fail("get_column")
        await asyncio.sleep(0)
        rows = self.rows(sheet)
        if not rows:
            return []
        col = column_index(column) - 1
        out = []
        for number in range(1, max(rows) + 1):
            values = rows.get(number, [])
            out.append(str(values[col]) if len(values) > col and values[col] is not None else "")
        return out

    async def get_range(self, sheet: str, cell_range: str) -> List[List[Any]]:
        self.calls.append(("get_range", sheet, cell_range))
        self._maybe_fail("get_range")
        c0, r0, c1, r1 = self._parse(cell_range)
        return [self.row(sheet, r)[c0 : c1 + 1] for r in range(r0, r1 + 1)]

    async def update_range(self, sheet, cell_range, rows, mode=None) -> None:
        self.calls.append(("update_range", sheet, cell_range, mode))
        self._maybe_fail("update_range")
        c0, r0, _, _ = self._parse(cell_range)
        for offset, values in enumerate(rows):
            current = list(self.row(sheet, r0 + offset))
            current.extend([""] * (c0 + len(values) - len(current)))
            current[c0 : c0 + len(values)] = values
            self.rows(sheet)[r0 + offset] = current

    async def append_rows(self, sheet, cell_range, rows, mode=None) -> None:
        self.calls.append(("append_rows", sheet, cell_range, mode))
        self._maybe_fail("append_rows")
        existing = self.rows(sheet)
        next_row = max(existing) + 1 if existing else 1
        for values in rows:
            existing[next_row] = list(values)
            next_row += 1

    async def clear_range(self, sheet: str, cell_range: str) -> None:
        self.calls.append(("clear_range", sheet, cell_range))
        self._maybe_fail("clear_range")
        c0, r0, c1, r1 = self._parse(cell_range)
        for r in range(r0, r1 + 1):
            values = list(self.row(sheet, r))
            for c in range(c0, min(c1 + 1, len(values))):
                values[c] = ""
            self.rows(sheet)[r] = values

    async def ensure_sheet_exists(self, sheet: str) -> bool:
        self.calls.append(("ensure_sheet_exists", sheet))
        self._maybe_fail("ensure_sheet_exists")
        if sheet in self.sheets:
            return False
        self.sheets[sheet] = {}
        return True

    async def format_header(self, sheet: str, columns: int) -> None:
        self.calls.append(("format_header", sheet, columns))


class FakeSource:
    """Scripted MetricsSource: per-date snapshots, per-date errors."""

    def __init__(self, metrics: Optional[Dict[str, Dict[str, int]]] = None):
        self.metrics = metrics or {}
        self.errors: Dict[str, List[Exception]] = {}
        self.calls: List[str] = []

    def fail(self, date: str, *errors: Exception) -> None:
        self.errors.setdefault(date, []).extend(errors)

    async def fetch_snapshot(self, date: str, include_secondary: bool = True) -> DailySnapshot:
        self.calls.append(date)
        queue = self.errors.get(date)
        if queue:
            raise queue.pop(0)
        metrics = MetricRecord.from_row(date, self.metrics.get(date))
        if not include_secondary:
            return DailySnapshot(date=date, metrics=metrics)
        return DailySnapshot(
            date=date,
            metrics=metrics,
            mileage=MileageStats.from_row(date, {"total_pc": 1000, "charging_count": 2}),
            grades=[GradeStats.from_row(date, {"grade_nm": "GOLD", "charging_count": 2})],
            registration=RegistrationCount.from_row(date, {"registration_count": 7}),
        )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def policy() -> RetryPolicy:
    return fast_policy()


@pytest.fixture
def make_store():
    return FakeStore


@pytest.fixture
def make_source():
    return FakeSource


@pytest.fixture
def make_policy():
    return fast_policy
