"""Data model for the cycle engine.

The engine never owns records: callers hand it an immutable, newest-first
snapshot of ``CycleRecord`` objects together with the user's
``UserPreferences``.  Records validate themselves on construction so that a
nonsensical date or length is rejected at the boundary instead of flowing
into a prediction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import UUID

logger = logging.getLogger("fertility.cycles.records")

DEFAULT_PERIOD_LENGTH = 5
DEFAULT_CYCLE_LENGTH = 28

# Documented preference domains (inclusive)
CYCLE_LENGTH_RANGE = (15, 45)
PERIOD_LENGTH_RANGE = (1, 10)

QUICK_START_NOTE = "Period started (late period logged quickly)"


class CycleDataError(ValueError):
    """A record or request parameter the engine cannot compute with."""


class PreferencesError(ValueError):
    """User preferences outside their documented domains."""


class Flow(str, Enum):
    light = "light"
    medium = "medium"
    heavy = "heavy"


def _parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        # A full timestamp is allowed; only its calendar date is kept
        text = value.strip().split("T")[0]
        try:
            parsed = date.fromisoformat(text)
        except ValueError as exc:
            raise CycleDataError(f"{field_name} is not an ISO date: {value!r}") from exc
        if len(text) != 10:
            raise CycleDataError(f"{field_name} is not a YYYY-MM-DD date: {value!r}")
        return parsed
    raise CycleDataError(f"{field_name} must be a date, got {value!r}")


@dataclass(frozen=True)
class CycleRecord:
    """One logged menstrual period.

    Attributes:
        start_date:    First day of bleeding.
        end_date:      Last day of bleeding, if logged.
        period_length: Days the period lasted (None → treated as 5).
        cycle_length:  User-entered cycle length; informational only.
        flow:          Flow intensity, if logged.
        symptoms:      Symptom tags logged with this period.
        notes:         Free text.
        cycle_id:      Storage identifier, None for unsaved records.
    """

    start_date: date
    end_date: date | None = None
    period_length: int | None = None
    cycle_length: int | None = None
    flow: Flow | None = None
    symptoms: frozenset[str] = field(default_factory=frozenset)
    notes: str | None = None
    cycle_id: UUID | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.start_date, date) or isinstance(self.start_date, datetime):
            raise CycleDataError(f"start_date must be a calendar date, got {self.start_date!r}")
        if self.end_date is not None:
            if not isinstance(self.end_date, date) or isinstance(self.end_date, datetime):
                raise CycleDataError(f"end_date must be a calendar date, got {self.end_date!r}")
            if self.end_date < self.start_date:
                raise CycleDataError(
                    f"end_date {self.end_date} is before start_date {self.start_date}"
                )
        if self.period_length is not None and self.period_length < 1:
            raise CycleDataError(f"period_length must be >= 1, got {self.period_length}")
        if self.cycle_length is not None and self.cycle_length < 0:
            raise CycleDataError(f"cycle_length must be >= 0, got {self.cycle_length}")
        if self.flow is not None and not isinstance(self.flow, Flow):
            try:
                object.__setattr__(self, "flow", Flow(self.flow))
            except ValueError as exc:
                raise CycleDataError(f"Unknown flow: {self.flow!r}") from exc
        if not isinstance(self.symptoms, frozenset):
            object.__setattr__(self, "symptoms", frozenset(self.symptoms or ()))

    @property
    def effective_period_length(self) -> int:
        """Logged period length, or the default of 5 days."""
        return self.period_length if self.period_length is not None else DEFAULT_PERIOD_LENGTH

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> CycleRecord:
        """Build a record from a storage row or decoded JSON object.

        Accepts ISO strings or date objects for the date fields and any
        iterable of strings for ``symptoms``.

        Raises:
            CycleDataError: If ``start_date`` is missing or any field is invalid.
        """
        if row.get("start_date") is None:
            raise CycleDataError("start_date is required")

        end_raw = row.get("end_date")
        cycle_id = row.get("cycle_id")
        if cycle_id is not None and not isinstance(cycle_id, UUID):
            try:
                cycle_id = UUID(str(cycle_id))
            except ValueError as exc:
                raise CycleDataError(f"cycle_id is not a UUID: {cycle_id!r}") from exc

        return cls(
            start_date=_parse_date(row["start_date"], "start_date"),
            end_date=_parse_date(end_raw, "end_date") if end_raw is not None else None,
            period_length=_optional_int(row.get("period_length"), "period_length"),
            cycle_length=_optional_int(row.get("cycle_length"), "cycle_length"),
            flow=row.get("flow") or None,
            symptoms=frozenset(row.get("symptoms") or ()),
            notes=row.get("notes"),
            cycle_id=cycle_id,
        )


def _optional_int(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise CycleDataError(f"{field_name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise CycleDataError(f"{field_name} must be an integer, got {value!r}") from exc


@dataclass(frozen=True)
class UserPreferences:
    """The user's self-reported typical cycle and period lengths."""

    typical_cycle_length: int = DEFAULT_CYCLE_LENGTH
    typical_period_length: int = DEFAULT_PERIOD_LENGTH

    def __post_init__(self) -> None:
        lo, hi = CYCLE_LENGTH_RANGE
        if not isinstance(self.typical_cycle_length, int) or not (
            lo <= self.typical_cycle_length <= hi
        ):
            raise PreferencesError(
                f"typical_cycle_length must be between {lo} and {hi}, "
                f"got {self.typical_cycle_length!r}"
            )
        lo, hi = PERIOD_LENGTH_RANGE
        if not isinstance(self.typical_period_length, int) or not (
            lo <= self.typical_period_length <= hi
        ):
            raise PreferencesError(
                f"typical_period_length must be between {lo} and {hi}, "
                f"got {self.typical_period_length!r}"
            )


# ---------------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Prediction:
    """One projected period.

    ``ovulation_date`` and the fertile window belong to the cycle that
    *starts* with this period (start + average cycle length − 14), not to
    the cycle leading up to it.
    """

    cycle_index: int
    start_date: date
    confidence: int
    ovulation_date: date
    fertile_window_start: date
    fertile_window_end: date
    avg_cycle_length_used: int


@dataclass(frozen=True)
class LateStatus:
    """Overdue check for the current cycle.

    When ``is_late`` is False only ``days_since_last_period`` and
    ``is_approaching`` are populated.
    """

    is_late: bool
    days_since_last_period: int
    days_late: int | None = None
    expected_date: date | None = None
    last_period_date: date | None = None
    is_approaching: bool = False


@dataclass(frozen=True)
class ConceptionPlan:
    """Which cycle to target for conception given a desired delivery month."""

    target_delivery_date: date
    optimal_conception_date: date
    cycle_number: int
    period_start: date
    fertile_window_start: date
    fertile_window_end: date
    ovulation_date: date
    days_from_now: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sort_newest_first(records: Iterable[CycleRecord]) -> list[CycleRecord]:
    """Order records by start date, most recent first."""
    return sorted(records, key=lambda r: r.start_date, reverse=True)


def with_logged_lengths(
    record: CycleRecord, preferences: UserPreferences, *, new: bool = False
) -> CycleRecord:
    """Fill in the lengths implied by a logged period's dates.

    A logged end date fixes ``period_length`` (inclusive of both days).
    Without one the period is assumed to last ``period_length`` days, or the
    user's typical period length, and ``end_date`` is set to match.  New
    records also take the user's typical cycle length when none was given.
    """
    if record.end_date is not None:
        end_date = record.end_date
        period_length = (end_date - record.start_date).days + 1
    else:
        period_length = record.period_length or preferences.typical_period_length
        end_date = record.start_date + timedelta(days=period_length - 1)

    cycle_length = record.cycle_length
    if new and cycle_length is None:
        cycle_length = preferences.typical_cycle_length

    return replace(
        record, end_date=end_date, period_length=period_length, cycle_length=cycle_length
    )


def quick_start_record(preferences: UserPreferences, today: date) -> CycleRecord:
    """Build the record logged when the user taps "my period started today".

    The period is assumed to run for the user's typical period length.
    """
    record = CycleRecord(start_date=today, flow=Flow.medium, notes=QUICK_START_NOTE)
    return with_logged_lengths(record, preferences, new=True)
