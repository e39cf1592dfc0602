"""Cycle statistics estimator.

Derives the effective average cycle length and average period length from a
user's logged periods.  Cycle length is never read from the records
directly; it is implied by the gap between consecutive start dates:

1. Take the 6 most recent records (configurable window).
2. For each adjacent pair, delta = newer.start_date − older.start_date.
3. Keep deltas strictly between 15 and 45 days.  Anything else is a missed
   log or a data-entry slip, not a cycle.
4. Average the survivors, or fall back to the user's typical cycle length.

Period length is a direct observation, so it is averaged over every record
without filtering.

``summarize()`` additionally produces the analytics overview: full
cycle-length history, flow distribution and most frequent symptoms.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import Counter
from dataclasses import dataclass, field
from typing import Sequence

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.records import CycleRecord, UserPreferences

logger = logging.getLogger("fertility.cycles.cycle_stats")

# Cycle length shown in analytics when no valid deltas exist
_ANALYTICS_FALLBACK_CYCLE_LENGTH = 28
_TOP_SYMPTOMS = 3


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (26.5 → 27).

    Python's ``round()`` rounds halves to even, which would report 26 for a
    26.5-day average.
    """
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class CycleStatistics:
    """Estimator output consumed by the predictor, monitor and planner.

    Attributes:
        avg_cycle_length:  Rounded mean of valid deltas, or the typical length.
        avg_period_length: Rounded mean period length over all records.
        records_in_window: Records inspected for cycle length (≤ window).
        valid_deltas:      Deltas that passed the plausibility filter, newest first.
        used_fallback:     True when no delta survived and the typical length was used.
    """

    avg_cycle_length: int
    avg_period_length: int
    records_in_window: int
    valid_deltas: tuple[int, ...] = ()
    used_fallback: bool = True


@dataclass
class CycleSummary:
    """Analytics overview across the full history."""

    total_cycles: int = 0
    avg_cycle_length: int = _ANALYTICS_FALLBACK_CYCLE_LENGTH
    avg_period_length: int | None = None
    min_cycle_length: int | None = None
    max_cycle_length: int | None = None
    cycle_lengths: list[int] = field(default_factory=list)
    period_lengths: list[int] = field(default_factory=list)
    flow_distribution: dict[str, int] = field(default_factory=dict)
    symptom_frequency: dict[str, int] = field(default_factory=dict)
    most_common_flow: str = "medium"
    top_symptoms: list[str] = field(default_factory=list)


class CycleStatisticsEstimator:
    """Compute average cycle and period lengths from newest-first records.

    Usage::

        estimator = CycleStatisticsEstimator()
        stats = estimator.estimate(records, UserPreferences())
        print(stats.avg_cycle_length, stats.avg_period_length)
    """

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()

    def window(self, records: Sequence[CycleRecord]) -> list[CycleRecord]:
        """The most recent records used for cycle-length averaging."""
        return list(records[: self._config.history.window])

    def start_date_deltas(self, records: Sequence[CycleRecord]) -> list[int]:
        """Day gaps between consecutive start dates, newest pair first."""
        return [
            (current.start_date - older.start_date).days
            for current, older in zip(records, records[1:])
        ]

    def valid_deltas(self, records: Sequence[CycleRecord]) -> list[int]:
        """Start-date deltas that fall inside the plausible cycle range."""
        history = self._config.history
        deltas = self.start_date_deltas(records)
        valid = [d for d in deltas if history.is_valid_delta(d)]
        if len(valid) < len(deltas):
            logger.debug(
                "Dropped %d implausible cycle delta(s): %s",
                len(deltas) - len(valid),
                [d for d in deltas if not history.is_valid_delta(d)],
            )
        return valid

    def estimate(
        self,
        records: Sequence[CycleRecord],
        preferences: UserPreferences | None = None,
    ) -> CycleStatistics:
        """Estimate average cycle and period lengths.

        Args:
            records:     Historical records ordered newest first.
            preferences: Supplies the fallback cycle/period lengths.

        Returns:
            CycleStatistics.  With no records, both averages are the
            user's typical values.
        """
        prefs = preferences or UserPreferences()
        window = self.window(records)
        valid = self.valid_deltas(window)

        if valid:
            avg_cycle = round_half_up(statistics.mean(valid))
        else:
            avg_cycle = prefs.typical_cycle_length
            if len(window) >= 2:
                logger.warning(
                    "No plausible cycle deltas in %d recent record(s); "
                    "falling back to typical cycle length %d",
                    len(window),
                    avg_cycle,
                )

        if records:
            avg_period = round_half_up(
                statistics.mean(r.effective_period_length for r in records)
            )
        else:
            avg_period = prefs.typical_period_length

        result = CycleStatistics(
            avg_cycle_length=avg_cycle,
            avg_period_length=avg_period,
            records_in_window=len(window),
            valid_deltas=tuple(valid),
            used_fallback=not valid,
        )
        logger.debug(
            "Cycle stats: avg_cycle=%d avg_period=%d window=%d deltas=%s",
            result.avg_cycle_length,
            result.avg_period_length,
            result.records_in_window,
            list(result.valid_deltas),
        )
        return result

    def summarize(self, records: Sequence[CycleRecord]) -> CycleSummary:
        """Build the analytics overview over every record (not windowed)."""
        summary = CycleSummary(total_cycles=len(records))
        if not records:
            return summary

        summary.period_lengths = [r.effective_period_length for r in records]
        summary.avg_period_length = round_half_up(statistics.mean(summary.period_lengths))

        lengths = self.valid_deltas(records)
        summary.cycle_lengths = lengths
        if lengths:
            summary.avg_cycle_length = round_half_up(statistics.mean(lengths))
            summary.min_cycle_length = min(lengths)
            summary.max_cycle_length = max(lengths)

        flows = Counter(r.flow.value if r.flow else "unknown" for r in records)
        summary.flow_distribution = dict(flows)
        logged_flows = Counter(r.flow.value for r in records if r.flow)
        if logged_flows:
            # Counter.most_common keeps first-seen order among ties
            summary.most_common_flow = logged_flows.most_common(1)[0][0]

        symptoms: Counter[str] = Counter()
        for record in records:
            symptoms.update(sorted(record.symptoms))
        summary.symptom_frequency = dict(symptoms)
        summary.top_symptoms = [name for name, _ in symptoms.most_common(_TOP_SYMPTOMS)]

        return summary
