"""Shared fixtures and record builders for the cycle engine tests."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence
from uuid import UUID

import pytest

from src.cycles.config_loader import CycleConfig, load_cycle_config
from src.cycles.records import CycleRecord, Flow, UserPreferences

# Canonical test user and reference date
TEST_USER_ID = UUID("12345678-1234-5678-1234-567812345678")
TEST_TODAY = date(2024, 6, 1)


def make_record(
    start: date,
    period_length: int | None = None,
    flow: str | None = None,
    symptoms: Sequence[str] = (),
) -> CycleRecord:
    return CycleRecord(
        start_date=start,
        period_length=period_length,
        flow=Flow(flow) if flow else None,
        symptoms=frozenset(symptoms),
    )


def build_history(newest: date, deltas: Sequence[int]) -> list[CycleRecord]:
    """Build newest-first records whose consecutive start dates differ by ``deltas``.

    ``len(deltas) + 1`` records are returned; ``deltas[0]`` is the gap
    between the newest record and the one before it.
    """
    records = [make_record(newest)]
    start = newest
    for delta in deltas:
        start -= timedelta(days=delta)
        records.append(make_record(start))
    return records


def build_regular_history(n: int = 6, cycle_length: int = 28) -> list[CycleRecord]:
    return build_history(date(2024, 5, 1), [cycle_length] * (n - 1))


@pytest.fixture
def cycle_config() -> CycleConfig:
    """Load the bundled cycle config."""
    return load_cycle_config()


@pytest.fixture
def preferences() -> UserPreferences:
    return UserPreferences(typical_cycle_length=28, typical_period_length=5)
