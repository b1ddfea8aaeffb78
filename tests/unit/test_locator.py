import pytest

from app.core.errors import PermanentInputError
from app.sync.locator import RowLocator, monthly_row


@pytest.mark.asyncio
async def test_locate_skips_header_and_matches_exactly(make_store):
    store = make_store(
        sheets={
            "dataset": {
                1: ["2025-09-15"],  # header row never counts
                2: ["2025-09-14", 1],
                3: ["2025-09-15 ", 2],
                4: ["2025-09-15", 3],
            }
        }
    )

    position = await RowLocator(store).locate("dataset", "2025-09-15")

    assert position.sheet == "dataset"
    assert position.row == 4


@pytest.mark.asyncio
async def test_locate_all_returns_every_match_ascending(make_store):
    store = make_store(
        sheets={"dataset": {1: ["Date"], 2: ["2025-09-15"], 5: ["2025-09-15"], 7: ["2025-09-15"]}}
    )

    assert await RowLocator(store).locate_all("dataset", "2025-09-15") == [2, 5, 7]


@pytest.mark.asyncio
async def test_locate_on_empty_sheet_is_none(store):
    assert await RowLocator(store).locate("dataset", "2025-09-15") is None


@pytest.mark.asyncio
async def test_locate_reads_fresh_every_call(make_store):
    store = make_store(sheets={"dataset": {1: ["Date"]}})
    locator = RowLocator(store)

    assert await locator.locate("dataset", "2025-09-15") is None
    store.rows("dataset")[2] = ["2025-09-15"]
    assert (await locator.locate("dataset", "2025-09-15")).row == 2


def test_monthly_row_is_day_plus_four():
    assert monthly_row("2025-08-01") == 5
    assert monthly_row("2025-08-31") == 35


def test_monthly_row_rejects_bad_keys():
    with pytest.raises(PermanentInputError):
        monthly_row("2025-08-32")
