"""Pydantic models for logged periods, preferences, and engine insights."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import Field, model_validator

from src.cycles.records import CYCLE_LENGTH_RANGE, PERIOD_LENGTH_RANGE, Flow
from src.models.base import TimestampMixin, TrackerBase


# ---------- Logged periods ----------

class CycleBase(TrackerBase):
    start_date: date
    end_date: date | None = None
    period_length: int | None = Field(default=None, ge=1)
    cycle_length: int | None = Field(default=None, ge=0)
    flow: Flow | None = None
    symptoms: list[str] = Field(default_factory=list)
    notes: str | None = None

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "CycleBase":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CycleCreate(CycleBase):
    pass


class CycleUpdate(TrackerBase):
    start_date: date | None = None
    end_date: date | None = None
    period_length: int | None = Field(default=None, ge=1)
    cycle_length: int | None = Field(default=None, ge=0)
    flow: Flow | None = None
    symptoms: list[str] | None = None
    notes: str | None = None


class CycleRead(CycleBase, TimestampMixin):
    cycle_id: uuid.UUID
    user_id: uuid.UUID


# ---------- Preferences ----------

class PreferencesRead(TrackerBase):
    typical_cycle_length: int = Field(
        default=28, ge=CYCLE_LENGTH_RANGE[0], le=CYCLE_LENGTH_RANGE[1]
    )
    typical_period_length: int = Field(
        default=5, ge=PERIOD_LENGTH_RANGE[0], le=PERIOD_LENGTH_RANGE[1]
    )


# ---------- Insights ----------

class PredictionRead(TrackerBase):
    cycle_index: int
    start_date: date
    confidence: int = Field(ge=0, le=100)
    ovulation_date: date
    fertile_window_start: date
    fertile_window_end: date
    avg_cycle_length_used: int


class PredictionsResponse(TrackerBase):
    avg_cycle_length: int | None = None
    avg_period_length: int | None = None
    predictions: list[PredictionRead] = Field(default_factory=list)


class LateStatusRead(TrackerBase):
    is_late: bool
    days_since_last_period: int
    days_late: int | None = None
    expected_date: date | None = None
    last_period_date: date | None = None
    is_approaching: bool = False


class LateStatusResponse(TrackerBase):
    status: LateStatusRead | None = None


class ConceptionPlanRead(TrackerBase):
    target_delivery_date: date
    optimal_conception_date: date
    cycle_number: int
    period_start: date
    fertile_window_start: date
    fertile_window_end: date
    ovulation_date: date
    days_from_now: int


class ConceptionPlanResponse(TrackerBase):
    insufficient_data: bool = False
    plan: ConceptionPlanRead | None = None


class CycleSummaryRead(TrackerBase):
    total_cycles: int
    avg_cycle_length: int
    avg_period_length: int | None = None
    min_cycle_length: int | None = None
    max_cycle_length: int | None = None
    cycle_lengths: list[int] = Field(default_factory=list)
    flow_distribution: dict[str, int] = Field(default_factory=dict)
    symptom_frequency: dict[str, int] = Field(default_factory=dict)
    most_common_flow: str
    top_symptoms: list[str] = Field(default_factory=list)
