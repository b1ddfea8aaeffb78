"""MSYNC — Upsert Engine.

Decides, per sheet and date key, whether to append, overwrite in place, or
leave the sheet alone:

  APPEND_ONLY                          -> append
  no row for the key                   -> append
  key is today                         -> overwrite
  ALWAYS_OVERWRITE                     -> overwrite
  WRITE_ONCE_UNLESS_TODAY + reconcile  -> overwrite
  WRITE_ONCE_UNLESS_TODAY, >1 rows     -> SKIPPED_DUPLICATE
  WRITE_ONCE_UNLESS_TODAY, has data   -> SKIPPED_EXISTING
  otherwise (blank placeholder row)    -> overwrite

Overwrites always land on the earliest matching row. Reads and overwrites
are retried; appends get a single attempt because a retried append can
leave two rows behind.
"""

from typing import Any, List, Optional

from app.connectors.sheets.store import SpreadsheetStore
from app.core.errors import PermanentInputError
from app.core.logging import get_logger
from app.core.retry import RetryPolicy, sheets_policy, with_retry
from app.models.sync_models import Outcome, OutcomeStatus, UpdatePolicy
from app.sync.locator import RowLocator
from app.sync.targets import Layout, SheetTarget

logger = get_logger("sync.upsert")


def has_data(cells: List[List[Any]]) -> bool:
    """True when any cell in the range holds a non-blank value."""
    return any(str(cell).strip() != "" for row in cells for cell in row if cell is not None)


class UpsertEngine:
    """Insert / overwrite / skip for one spreadsheet."""

    def __init__(
        self,
        store: SpreadsheetStore,
        locator: Optional[RowLocator] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        self.store = store
        self.locator = locator or RowLocator(store)
        self.retry = retry or sheets_policy()

    async def upsert(
        self,
        target: SheetTarget,
        date_key: str,
        rows: List[List[Any]],
        today: str,
        reconcile: bool = False,
    ) -> Outcome:
        """Write ``rows`` for ``date_key`` into ``target`` according to its policy."""
        if not rows:
            raise PermanentInputError(f"No rows to write for {target.key} {date_key}")
        sheet = target.sheet_for(date_key)

        if target.policy == UpdatePolicy.APPEND_ONLY:
            await self._append(target, sheet, rows)
            return self._outcome(sheet, date_key, OutcomeStatus.WRITTEN, reason="appended")

        if len(rows) != 1:
            raise PermanentInputError(
                f"{target.key} takes exactly one row per date key, got {len(rows)}"
            )

        if target.layout == Layout.MONTHLY:
            matches = [self.locator.locate_monthly(sheet, date_key).row]
        else:
            matches = await with_retry(
                lambda: self.locator.locate_all(sheet, date_key),
                self.retry,
                label=f"locate {sheet} {date_key}",
            )

        if not matches:
            await self._append(target, sheet, rows)
            return self._outcome(sheet, date_key, OutcomeStatus.WRITTEN, reason="appended")

        row = matches[0]
        if date_key == today:
            return await self._overwrite(target, sheet, date_key, row, rows, "today")
        if target.policy == UpdatePolicy.ALWAYS_OVERWRITE:
            return await self._overwrite(target, sheet, date_key, row, rows, "overwrite")
        if reconcile:
            return await self._overwrite(target, sheet, date_key, row, rows, "reconcile")

        # WRITE_ONCE_UNLESS_TODAY for a past date
        if len(matches) > 1:
            return self._outcome(
                sheet,
                date_key,
                OutcomeStatus.SKIPPED_DUPLICATE,
                row=row,
                reason=f"{len(matches)} rows share this date key",
            )

        existing = await with_retry(
            lambda: self.store.get_range(sheet, target.data_range(row)),
            self.retry,
            label=f"read {sheet}!{target.data_range(row)}",
        )
        if has_data(existing):
            return self._outcome(
                sheet, date_key, OutcomeStatus.SKIPPED_EXISTING, row=row, reason="row has data"
            )
        return await self._overwrite(target, sheet, date_key, row, rows, "fill blank row")

    # ── Writes ──

    async def _append(self, target: SheetTarget, sheet: str, rows: List[List[Any]]) -> None:
        await with_retry(
            lambda: self.store.append_rows(sheet, target.append_range, rows, target.mode),
            self.retry.single_attempt(),
            label=f"append {sheet}",
        )

    async def _overwrite(
        self,
        target: SheetTarget,
        sheet: str,
        date_key: str,
        row: int,
        rows: List[List[Any]],
        reason: str,
    ) -> Outcome:
        cell_range = target.row_range(row)
        await with_retry(
            lambda: self.store.update_range(sheet, cell_range, rows, target.mode),
            self.retry,
            label=f"update {sheet}!{cell_range}",
        )
        return self._outcome(sheet, date_key, OutcomeStatus.WRITTEN, row=row, reason=reason)

    def _outcome(
        self,
        sheet: str,
        date_key: str,
        status: OutcomeStatus,
        row: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Outcome:
        logger.info(
            f"{sheet} {date_key}: {status.value} ({reason})",
            extra={"sheet": sheet, "date_key": date_key, "outcome": status.value},
        )
        return Outcome(sheet=sheet, status=status, row=row, reason=reason)
