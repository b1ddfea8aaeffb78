"""
Upsert policy decisions against an in-memory store.
"""
from dataclasses import replace

import pytest

from app.core.errors import FatalAfterRetryError, PermanentInputError, TransientError
from app.models.sync_models import OutcomeStatus, UpdatePolicy, WriteMode
from app.sync.targets import DATASET, GRADES, MONTHLY
from app.sync.upsert import UpsertEngine, has_data

WRITE_ONCE = replace(DATASET, policy=UpdatePolicy.WRITE_ONCE_UNLESS_TODAY)
DATE = "2025-09-15"
NOT_TODAY = "2025-09-20"


def _row(new=3, converted=1, physical=0, online=2, stamp="2025-09-15 10:00:00"):
    return [[DATE, new, converted, physical, online, stamp]]


@pytest.fixture
def header_store(make_store):
    return make_store(sheets={"dataset": {1: list(DATASET.headers)}})


@pytest.fixture
def engine(header_store, policy):
    return UpsertEngine(header_store, retry=policy)


@pytest.mark.asyncio
async def test_first_write_appends_row(engine, header_store):
    outcome = await engine.upsert(WRITE_ONCE, DATE, _row(), today=NOT_TODAY)

    assert outcome.status == OutcomeStatus.WRITTEN
    assert header_store.row("dataset", 2) == [DATE, 3, 1, 0, 2, "2025-09-15 10:00:00"]


@pytest.mark.asyncio
async def test_past_date_with_data_is_left_alone(engine, header_store):
    await engine.upsert(WRITE_ONCE, DATE, _row(), today=NOT_TODAY)

    outcome = await engine.upsert(WRITE_ONCE, DATE, _row(new=5), today=NOT_TODAY)

    assert outcome.status == OutcomeStatus.SKIPPED_EXISTING
    assert outcome.row == 2
    assert header_store.row("dataset", 2)[1] == 3
    assert len(header_store.rows("dataset")) == 2


@pytest.mark.asyncio
async def test_today_is_always_overwritten(engine, header_store):
    await engine.upsert(WRITE_ONCE, DATE, _row(), today=DATE)

    outcome = await engine.upsert(WRITE_ONCE, DATE, _row(new=5), today=DATE)

    assert outcome.status == OutcomeStatus.WRITTEN
    assert outcome.row == 2
    assert header_store.row("dataset", 2)[1] == 5


@pytest.mark.asyncio
async def test_always_overwrite_is_idempotent(engine, header_store):
    for _ in range(3):
        outcome = await engine.upsert(DATASET, DATE, _row(new=7), today=NOT_TODAY)
        assert outcome.status == OutcomeStatus.WRITTEN

    data_rows = [r for n, r in header_store.rows("dataset").items() if n >= 2]
    assert data_rows == [[DATE, 7, 1, 0, 2, "2025-09-15 10:00:00"]]


@pytest.mark.asyncio
async def test_blank_placeholder_row_is_filled(engine, header_store):
    header_store.rows("dataset")[2] = [DATE, "", ""]

    outcome = await engine.upsert(WRITE_ONCE, DATE, _row(), today=NOT_TODAY)

    assert outcome.status == OutcomeStatus.WRITTEN
    assert outcome.row == 2
    assert header_store.row("dataset", 2)[1:5] == [3, 1, 0, 2]


@pytest.mark.asyncio
async def test_duplicate_keys_on_write_once_sheet_are_reported(engine, header_store):
    header_store.rows("dataset")[2] = [DATE, 1, 1, 1, 1, "x"]
    header_store.rows("dataset")[3] = [DATE, 2, 2, 2, 2, "y"]

    outcome = await engine.upsert(WRITE_ONCE, DATE, _row(), today=NOT_TODAY)

    assert outcome.status == OutcomeStatus.SKIPPED_DUPLICATE
    assert outcome.row == 2
    assert not [c for c in header_store.calls if c[0] in ("update_range", "append_rows")]


@pytest.mark.asyncio
async def test_duplicate_keys_overwrite_earliest_row(engine, header_store):
    header_store.rows("dataset")[2] = [DATE, 1, 1, 1, 1, "x"]
    header_store.rows("dataset")[3] = [DATE, 2, 2, 2, 2, "y"]

    outcome = await engine.upsert(DATASET, DATE, _row(new=9), today=NOT_TODAY)

    assert outcome.row == 2
    assert header_store.row("dataset", 2)[1] == 9
    assert header_store.row("dataset", 3)[1] == 2


@pytest.mark.asyncio
async def test_reconcile_overwrites_past_rows(engine, header_store):
    header_store.rows("dataset")[2] = [DATE, 1, 1, 1, 1, "x"]

    outcome = await engine.upsert(WRITE_ONCE, DATE, _row(new=4), today=NOT_TODAY, reconcile=True)

    assert outcome.status == OutcomeStatus.WRITTEN
    assert header_store.row("dataset", 2)[1] == 4


@pytest.mark.asyncio
async def test_monthly_sheet_uses_fixed_row(store, policy):
    engine = UpsertEngine(store, retry=policy)

    outcome = await engine.upsert(MONTHLY, "2025-08-03", [[3, 1, 0, 2]], today="2025-09-01")

    assert outcome.status == OutcomeStatus.WRITTEN
    assert outcome.sheet == "25.08"
    assert outcome.row == 7
    assert store.row("25.08", 7) == ["", "", 3, 1, 0, 2]
    assert ("update_range", "25.08", "C7:F7", WriteMode.INTERPRETED) in store.calls
    assert not [c for c in store.calls if c[0] == "get_column"]


@pytest.mark.asyncio
async def test_monthly_past_day_with_data_is_skipped(store, policy):
    store.rows("25.08")[7] = ["", "", 9, 9, 9, 9]
    engine = UpsertEngine(store, retry=policy)

    outcome = await engine.upsert(MONTHLY, "2025-08-03", [[3, 1, 0, 2]], today="2025-09-01")

    assert outcome.status == OutcomeStatus.SKIPPED_EXISTING
    assert store.row("25.08", 7)[2] == 9


@pytest.mark.asyncio
async def test_append_only_target_always_appends(store, policy):
    engine = UpsertEngine(store, retry=policy)
    rows = [[DATE, "GOLD", 2, 0, 0, 0], [DATE, "SILVER", 1, 0, 0, 0]]

    await engine.upsert(GRADES, DATE, rows, today=DATE)
    await engine.upsert(GRADES, DATE, rows, today=DATE)

    assert len(store.rows("dataset3")) == 4


@pytest.mark.asyncio
async def test_transient_read_failure_is_retried(engine, header_store):
    header_store.fail("get_column", TransientError("blip"))

    outcome = await engine.upsert(DATASET, DATE, _row(), today=NOT_TODAY)

    assert outcome.status == OutcomeStatus.WRITTEN
    assert [c[0] for c in header_store.calls].count("get_column") == 2


@pytest.mark.asyncio
async def test_append_is_attempted_once(engine, header_store):
    header_store.fail("append_rows", TransientError("blip"))

    with pytest.raises(FatalAfterRetryError):
        await engine.upsert(DATASET, DATE, _row(), today=NOT_TODAY)

    assert [c[0] for c in header_store.calls].count("append_rows") == 1


@pytest.mark.asyncio
async def test_positional_target_takes_one_row(engine):
    with pytest.raises(PermanentInputError):
        await engine.upsert(DATASET, DATE, _row() + _row(), today=NOT_TODAY)
    with pytest.raises(PermanentInputError):
        await engine.upsert(DATASET, DATE, [], today=NOT_TODAY)


def test_has_data():
    assert not has_data([])
    assert not has_data([["", "  ", None]])
    assert has_data([["", 0]])
