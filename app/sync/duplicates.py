"""MSYNC — Duplicate Resolver.

Collapses rows sharing a date key to one. The earliest row survives; the
rest are cleared, not deleted, so row numbers stay aligned with any sheet
that mirrors this one row-for-row.
"""

from typing import Dict, List, Optional

from app.connectors.sheets.store import SpreadsheetStore
from app.core.logging import get_logger
from app.core.retry import RetryPolicy, sheets_policy, with_retry
from app.sync.locator import RowLocator
from app.sync.targets import SheetTarget

logger = get_logger("sync.duplicates")


class DuplicateResolver:
    """Keeps the first row for a date key and clears the others."""

    def __init__(
        self,
        store: SpreadsheetStore,
        locator: Optional[RowLocator] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        self.store = store
        self.locator = locator or RowLocator(store)
        self.retry = retry or sheets_policy()

    async def resolve(self, target: SheetTarget, date_key: str) -> int:
        """Clear every duplicate row for ``date_key``; return how many were cleared."""
        sheet = target.sheet_for(date_key)
        rows = await with_retry(
            lambda: self.locator.locate_all(sheet, date_key),
            self.retry,
            label=f"scan {sheet} {date_key}",
        )
        duplicates = rows[1:]
        # Highest first so a later compaction step cannot shift pending rows
        for row in sorted(duplicates, reverse=True):
            cell_range = target.row_range(row)
            await with_retry(
                lambda: self.store.clear_range(sheet, cell_range),
                self.retry,
                label=f"clear {sheet}!{cell_range}",
            )
        if duplicates:
            logger.info(
                f"Cleared {len(duplicates)} duplicate rows for {date_key} in {sheet} "
                f"(kept row {rows[0]})",
                extra={"sheet": sheet, "date_key": date_key},
            )
        return len(duplicates)

    async def resolve_many(self, targets: List[SheetTarget], date_key: str) -> Dict[str, object]:
        """Resolve across several sheets; one sheet's failure does not stop the rest."""
        results: Dict[str, object] = {}
        for target in targets:
            try:
                results[target.key] = await self.resolve(target, date_key)
            except Exception as e:
                logger.error(
                    f"Duplicate resolution failed for {target.key} {date_key}: {e}",
                    extra={"sheet": target.key, "date_key": date_key},
                )
                results[target.key] = f"{type(e).__name__}: {e}"
        return results
