"""MSYNC — Metric Record Models.

Typed records produced by the metrics source. Absent or NULL fields are
defaulted to zero here, at the source boundary, and nowhere downstream.
"""

from typing import Annotated, Any, List, Mapping, Optional

from pydantic import BaseModel, BeforeValidator, Field

INTEGRATION_FIELDS = (
    "new_integrated_users",
    "converted_integrated_users",
    "physical_card_requests",
    "online_auto_issued_cards",
)

MILEAGE_FIELDS = (
    "total_pc",
    "used_point",
    "use_card_price",
    "paid_price",
    "served_mileage",
    "charging_count",
    "elctc_pc_ratio",
    "paid_price_ratio",
    "point_success_count",
    "point_other_status_count",
    "avg_price",
    "avg_paid_price",
    "avg_mileage",
    "charging_qy",
)


def _zero_if_none(value: Any) -> Any:
    return 0 if value is None else value


Count = Annotated[int, BeforeValidator(_zero_if_none), Field(ge=0)]
Amount = Annotated[float, BeforeValidator(_zero_if_none)]


class _SourceRecord(BaseModel):
    """Frozen record built from one DB row."""

    model_config = {"frozen": True}

    date: str

    @classmethod
    def from_row(cls, date: str, row: Optional[Mapping[str, Any]]):
        """Build from a DB row mapping. A missing row is an all-zero record."""
        data = {k: v for k, v in dict(row or {}).items() if k in cls.model_fields}
        data["date"] = date
        return cls(**data)


class MetricRecord(_SourceRecord):
    """Daily integration metrics for one date key."""

    total_integrated_users: Count = 0
    new_integrated_users: Count = 0
    converted_integrated_users: Count = 0
    physical_card_requests: Count = 0
    online_auto_issued_cards: Count = 0

    def values(self) -> List[int]:
        """Sheet-ordered numeric values (new, converted, physical, online)."""
        return [getattr(self, name) for name in INTEGRATION_FIELDS]


class MileageStats(_SourceRecord):
    """Charging / mileage aggregate for one day."""

    total_pc: Amount = 0
    used_point: Amount = 0
    use_card_price: Amount = 0
    paid_price: Amount = 0
    served_mileage: Amount = 0
    charging_count: Count = 0
    elctc_pc_ratio: Amount = 0
    paid_price_ratio: Amount = 0
    point_success_count: Count = 0
    point_other_status_count: Count = 0
    avg_price: Amount = 0
    avg_paid_price: Amount = 0
    avg_mileage: Amount = 0
    charging_qy: Amount = 0

    def values(self) -> List[float]:
        return [getattr(self, name) for name in MILEAGE_FIELDS]


class GradeStats(_SourceRecord):
    """Charging aggregate for one membership grade on one day."""

    grade_nm: Annotated[str, BeforeValidator(lambda v: v or "Unknown")] = "Unknown"
    charging_count: Count = 0
    avg_pc: Amount = 0
    avg_paid_price: Amount = 0
    avg_mileage: Amount = 0


class RegistrationCount(_SourceRecord):
    """Daily user registrations."""

    registration_count: Count = 0


class PeriodTotals(BaseModel):
    """Integration metrics summed over a date range."""

    start_date: str
    end_date: str
    total_integrated_users: Count = 0
    new_integrated_users: Count = 0
    converted_integrated_users: Count = 0
    physical_card_requests: Count = 0
    online_auto_issued_cards: Count = 0


class DuplicateCard(BaseModel):
    card_no: str
    count: int


class DailySnapshot(BaseModel):
    """Everything fetched from the source for one date key."""

    date: str
    metrics: MetricRecord
    mileage: Optional[MileageStats] = None
    grades: List[GradeStats] = []
    registration: Optional[RegistrationCount] = None
