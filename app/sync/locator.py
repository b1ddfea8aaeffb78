"""MSYNC — Row Locator.

Finds the row holding a date key. Positional sheets are scanned in column A
from row 2 (row 1 is the header) with exact string equality; monthly sheets
use ``day_of_month + 4`` and never need a lookup.
"""

from typing import List, Optional

from app.connectors.sheets.store import SpreadsheetStore
from app.core.dates import parse_date_key
from app.models.sync_models import RowPosition
from app.sync.targets import MONTHLY_ROW_OFFSET

FIRST_DATA_ROW = 2


def monthly_row(date_key: str, offset: int = MONTHLY_ROW_OFFSET) -> int:
    """Fixed-layout row for a date: day 1 -> row 5."""
    return parse_date_key(date_key).day + offset


class RowLocator:
    """Looks up date-key rows. Always reads the store fresh."""

    def __init__(self, store: SpreadsheetStore, column: str = "A"):
        self.store = store
        self.column = column

    async def locate_all(self, sheet: str, date_key: str) -> List[int]:
        """Every 1-based row whose date cell equals ``date_key``, ascending."""
        cells = await self.store.get_column(sheet, self.column)
        return [
            index + 1
            for index, value in enumerate(cells)
            if index + 1 >= FIRST_DATA_ROW and value == date_key
        ]

    async def locate(self, sheet: str, date_key: str) -> Optional[RowPosition]:
        """First matching row, or None when absent or the sheet is empty."""
        rows = await self.locate_all(sheet, date_key)
        if not rows:
            return None
        return RowPosition(sheet=sheet, row=rows[0])

    def locate_monthly(self, sheet: str, date_key: str) -> RowPosition:
        return RowPosition(sheet=sheet, row=monthly_row(date_key))
