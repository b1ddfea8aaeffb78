"""MSYNC — Spreadsheet Store.

Binds a SheetsClient to one spreadsheet and exposes the row-level
operations the sync engine works with. Nothing is cached: every read goes
to the API so external edits are always seen.
"""

from typing import Any, Dict, List, Optional

from app.connectors.sheets.client import SheetsClient
from app.core.errors import PermanentInputError
from app.core.logging import get_logger
from app.models.sync_models import WriteMode

logger = get_logger("sheets.store")


def a1(sheet: str, cell_range: str) -> str:
    """Sheet-qualified A1 range; the sheet name is always quoted."""
    escaped = sheet.replace("'", "''")
    return f"'{escaped}'!{cell_range}"


def column_letter(index: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    if index < 1:
        raise PermanentInputError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def column_index(letter: str) -> int:
    """A -> 1, Z -> 26, AA -> 27."""
    if not letter or not letter.isalpha():
        raise PermanentInputError(f"Invalid column letter: {letter!r}")
    index = 0
    for ch in letter.upper():
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index


class SpreadsheetStore:
    """Row-level operations against one spreadsheet."""

    def __init__(self, client: SheetsClient, spreadsheet_id: str):
        self.client = client
        self.spreadsheet_id = spreadsheet_id

    async def get_column(self, sheet: str, column: str = "A") -> List[str]:
        """Every cell of a column, top to bottom, as strings ("" for blanks)."""
        rows = await self.client.get_values(self.spreadsheet_id, a1(sheet, f"{column}:{column}"))
        return [str(r[0]) if r else "" for r in rows]

    async def get_range(self, sheet: str, cell_range: str) -> List[List[Any]]:
        return await self.client.get_values(self.spreadsheet_id, a1(sheet, cell_range))

    async def update_range(
        self,
        sheet: str,
        cell_range: str,
        rows: List[List[Any]],
        mode: WriteMode = WriteMode.RAW,
    ) -> None:
        await self.client.update_values(self.spreadsheet_id, a1(sheet, cell_range), rows, mode)

    async def append_rows(
        self,
        sheet: str,
        cell_range: str,
        rows: List[List[Any]],
        mode: WriteMode = WriteMode.RAW,
    ) -> None:
        await self.client.append_values(self.spreadsheet_id, a1(sheet, cell_range), rows, mode)

    async def clear_range(self, sheet: str, cell_range: str) -> None:
        await self.client.clear_values(self.spreadsheet_id, a1(sheet, cell_range))

    async def list_sheets(self) -> List[Dict[str, Any]]:
        """Sheet properties (title, sheetId, index, ...) in tab order."""
        meta = await self.client.get_spreadsheet(self.spreadsheet_id)
        return [s.get("properties", {}) for s in meta.get("sheets", [])]

    async def sheet_id(self, sheet: str) -> Optional[int]:
        for props in await self.list_sheets():
            if props.get("title") == sheet:
                return props.get("sheetId")
        return None

    async def ensure_sheet_exists(self, sheet: str) -> bool:
        """Create the sheet if missing. Returns True when it was created."""
        if await self.sheet_id(sheet) is not None:
            return False
        await self.client.batch_update(
            self.spreadsheet_id, [{"addSheet": {"properties": {"title": sheet}}}]
        )
        logger.info(
            f"Created sheet {sheet}",
            extra={"sheet": sheet, "spreadsheet_id": self.spreadsheet_id},
        )
        return True

    async def format_header(self, sheet: str, columns: int) -> None:
        """Bold white-on-dark header row, frozen."""
        sid = await self.sheet_id(sheet)
        if sid is None:
            raise PermanentInputError(f"Sheet {sheet!r} does not exist")
        await self.client.batch_update(
            self.spreadsheet_id,
            [
                {
                    "repeatCell": {
                        "range": {
                            "sheetId": sid,
                            "startRowIndex": 0,
                            "endRowIndex": 1,
                            "startColumnIndex": 0,
                            "endColumnIndex": columns,
                        },
                        "cell": {
                            "userEnteredFormat": {
                                "backgroundColor": {"red": 0.2, "green": 0.2, "blue": 0.2},
                                "textFormat": {
                                    "foregroundColor": {"red": 1, "green": 1, "blue": 1},
                                    "bold": True,
                                },
                            }
                        },
                        "fields": "userEnteredFormat(backgroundColor,textFormat)",
                    }
                },
                {
                    "updateSheetProperties": {
                        "properties": {"sheetId": sid, "gridProperties": {"frozenRowCount": 1}},
                        "fields": "gridProperties.frozenRowCount",
                    }
                },
            ],
        )
