"""MSYNC — Target Sheet Catalogue.

One SheetTarget per logical table. Positional sheets hold one row per date
key in column A; the monthly sheet has a fixed layout where the row is
derived from the day of month; append sheets are event logs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List

from app.config import settings
from app.core.dates import parse_date_key
from app.models.metrics import DailySnapshot
from app.models.sync_models import UpdatePolicy, WriteMode

PRIMARY = "primary"
SECONDARY = "secondary"

# Monthly sheets: row 5 is day 1
MONTHLY_ROW_OFFSET = 4


class Layout(str, Enum):
    POSITIONAL = "positional"
    MONTHLY = "monthly"
    APPEND = "append"


RowBuilder = Callable[[DailySnapshot, str], List[List[Any]]]


@dataclass(frozen=True)
class SheetTarget:
    """Where and how one logical table is written."""

    key: str
    spreadsheet: str
    layout: Layout
    policy: UpdatePolicy
    mode: WriteMode
    first_column: str
    last_column: str
    headers: List[str]
    build_rows: RowBuilder = field(compare=False, repr=False)
    sheet_name: str = ""
    sheet_name_format: str = ""

    def sheet_for(self, date_key: str) -> str:
        """Concrete sheet name for a date (monthly sheets rotate)."""
        if self.sheet_name_format:
            return parse_date_key(date_key).strftime(self.sheet_name_format)
        return self.sheet_name

    @property
    def data_first_column(self) -> str:
        """First column holding metric values (column A is the date key)."""
        if self.layout == Layout.MONTHLY:
            return self.first_column
        return "B"

    def row_range(self, row: int) -> str:
        return f"{self.first_column}{row}:{self.last_column}{row}"

    def data_range(self, row: int) -> str:
        return f"{self.data_first_column}{row}:{self.last_column}{row}"

    @property
    def append_range(self) -> str:
        return f"{self.first_column}:{self.last_column}"

    @property
    def header_range(self) -> str:
        return f"{self.first_column}1:{self.last_column}1"


# ── Row builders ──


def _integration_row(snap: DailySnapshot, stamp: str) -> List[List[Any]]:
    return [[snap.date, *snap.metrics.values(), stamp]]


def _monthly_row(snap: DailySnapshot, stamp: str) -> List[List[Any]]:
    return [snap.metrics.values()]


def _mileage_row(snap: DailySnapshot, stamp: str) -> List[List[Any]]:
    if snap.mileage is None:
        return []
    return [[snap.date, *snap.mileage.values(), stamp]]


def _grade_rows(snap: DailySnapshot, stamp: str) -> List[List[Any]]:
    return [
        [snap.date, g.grade_nm, g.charging_count, g.avg_pc, g.avg_paid_price, g.avg_mileage]
        for g in snap.grades
    ]


def _registration_row(snap: DailySnapshot, stamp: str) -> List[List[Any]]:
    if snap.registration is None:
        return []
    return [[snap.date, snap.registration.registration_count, stamp]]


# ── Catalogue ──

DATASET = SheetTarget(
    key="dataset",
    spreadsheet=PRIMARY,
    layout=Layout.POSITIONAL,
    policy=UpdatePolicy.ALWAYS_OVERWRITE,
    mode=WriteMode.RAW,
    first_column="A",
    last_column="F",
    headers=[
        "Date",
        "New integrated",
        "Converted integrated",
        "Physical card requests",
        "Online auto-issued cards",
        "Updated at",
    ],
    build_rows=_integration_row,
    sheet_name="dataset",
)

MONTHLY = SheetTarget(
    key="monthly",
    spreadsheet=PRIMARY,
    layout=Layout.MONTHLY,
    policy=UpdatePolicy.WRITE_ONCE_UNLESS_TODAY,
    mode=WriteMode.INTERPRETED,
    first_column="C",
    last_column="F",
    headers=[],
    build_rows=_monthly_row,
    sheet_name_format=settings.monthly_sheet_format,
)

MILEAGE = SheetTarget(
    key="dataset2",
    spreadsheet=SECONDARY,
    layout=Layout.POSITIONAL,
    policy=UpdatePolicy.ALWAYS_OVERWRITE,
    mode=WriteMode.INTERPRETED,
    first_column="A",
    last_column="P",
    headers=[
        "Date",
        "Total charged amount",
        "Points used",
        "Card amount",
        "Paid amount",
        "Mileage served",
        "Charging count",
        "Mileage / charged (%)",
        "Mileage / paid (%)",
        "Point success count",
        "Point other-status count",
        "Avg charged amount",
        "Avg paid amount",
        "Avg mileage",
        "Charged quantity",
        "Updated at",
    ],
    build_rows=_mileage_row,
    sheet_name="dataset2",
)

GRADES = SheetTarget(
    key="dataset3",
    spreadsheet=SECONDARY,
    layout=Layout.APPEND,
    policy=UpdatePolicy.APPEND_ONLY,
    mode=WriteMode.INTERPRETED,
    first_column="A",
    last_column="F",
    headers=[
        "Date",
        "Grade",
        "Charging count",
        "Avg charged amount",
        "Avg paid amount",
        "Avg mileage",
    ],
    build_rows=_grade_rows,
    sheet_name="dataset3",
)

REGISTRATIONS = SheetTarget(
    key="dataset4",
    spreadsheet=SECONDARY,
    layout=Layout.POSITIONAL,
    policy=UpdatePolicy.ALWAYS_OVERWRITE,
    mode=WriteMode.INTERPRETED,
    first_column="A",
    last_column="C",
    headers=["Date", "Registrations", "Updated at"],
    build_rows=_registration_row,
    sheet_name="dataset4",
)

PRIMARY_TARGETS = [DATASET, MONTHLY]
SECONDARY_TARGETS = [MILEAGE, GRADES, REGISTRATIONS]
ALL_TARGETS = PRIMARY_TARGETS + SECONDARY_TARGETS

# Sheets the duplicate resolver may scan (one row per date key)
POSITIONAL_TARGETS = {t.key: t for t in ALL_TARGETS if t.layout == Layout.POSITIONAL}
