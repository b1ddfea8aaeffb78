"""MSYNC — Metrics Monitoring Routes (read-only)."""

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_metrics_source
from app.connectors.postgres.source import MetricsSource
from app.core.dates import validate_date_key
from app.core.logging import get_logger

logger = get_logger("api.monitoring")

router = APIRouter(prefix="/monitoring", tags=["Monitoring"])


@router.get("/daily/{date}")
async def get_daily(date: str, source: MetricsSource = Depends(get_metrics_source)):
    """Integration metrics for one day (zeros when the day has no data)."""
    validate_date_key(date)
    record = await source.fetch_daily_metrics(date)
    return {"date": date, "data": record.model_dump(exclude={"date"})}


@router.get("/all-metrics")
async def get_all_metrics(
    start_date: str = Query(..., description="YYYY-MM-DD"),
    end_date: str = Query(..., description="YYYY-MM-DD"),
    source: MetricsSource = Depends(get_metrics_source),
):
    """Every integration metric over an inclusive date range."""
    totals = await source.fetch_period_totals(start_date, end_date)
    return {
        "period": {"start_date": start_date, "end_date": end_date},
        "metrics": totals.model_dump(exclude={"start_date", "end_date"}),
    }


@router.get("/duplicate-cards")
async def get_duplicate_cards(source: MetricsSource = Depends(get_metrics_source)):
    """Card numbers registered more than once."""
    cards = await source.fetch_duplicate_cards()
    return {"count": len(cards), "cards": [c.model_dump() for c in cards]}


def _register_metric_route(metric: str) -> None:
    path = "/" + metric.replace("_", "-")

    async def endpoint(
        start_date: str = Query(..., description="YYYY-MM-DD"),
        end_date: str = Query(..., description="YYYY-MM-DD"),
        source: MetricsSource = Depends(get_metrics_source),
    ):
        value = await source.fetch_period_metric(metric, start_date, end_date)
        return {"period": {"start_date": start_date, "end_date": end_date}, metric: value}

    endpoint.__name__ = f"get_{metric}"
    endpoint.__doc__ = f"{metric.replace('_', ' ').capitalize()} over an inclusive date range."
    router.add_api_route(path, endpoint, methods=["GET"])


for _metric in (
    "total_integrated_users",
    "new_integrated_users",
    "converted_integrated_users",
    "physical_card_requests",
    "online_auto_issued_cards",
):
    _register_metric_route(_metric)
