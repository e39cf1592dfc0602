"""Future period projection.

Projects the next N period start dates from the most recent logged period
and the estimator's average cycle length.  Each projection carries a
heuristic confidence score:

- base = 100 − 10 × |avg − typical| when the recent window holds ≥ 3 records,
  otherwise a flat 75 (not enough data to judge regularity)
- confidence_i = max(base − 8 × i, 45)

so confidence decays with every cycle projected and never drops below the
45-point floor.

The ovulation date attached to prediction i is start_i + avg − 14, i.e. the
ovulation of the cycle that begins with the predicted period.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Sequence

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.cycle_stats import CycleStatistics, CycleStatisticsEstimator
from src.cycles.records import CycleDataError, CycleRecord, Prediction, UserPreferences

logger = logging.getLogger("fertility.cycles.predictor")

LUTEAL_PHASE_DAYS = 14
# Fertile window: five days before ovulation through the day after
FERTILE_DAYS_BEFORE_OVULATION = 5
FERTILE_DAYS_AFTER_OVULATION = 1


class PeriodPredictor:
    """Predict upcoming periods with decaying confidence.

    Usage::

        predictor = PeriodPredictor()
        for p in predictor.predict(records, prefs, number_of_periods=4):
            print(p.cycle_index, p.start_date, p.confidence)
    """

    def __init__(
        self,
        config: CycleConfig | None = None,
        estimator: CycleStatisticsEstimator | None = None,
    ) -> None:
        self._config = config or get_cycle_config()
        self._estimator = estimator or CycleStatisticsEstimator(self._config)

    def base_confidence(self, stats: CycleStatistics, typical_cycle_length: int) -> int:
        """Regularity score before per-cycle decay."""
        cc = self._config.confidence
        if stats.records_in_window < cc.min_records_for_regularity:
            return cc.insufficient_data
        drift = abs(stats.avg_cycle_length - typical_cycle_length)
        return max(0, 100 - drift * cc.regularity_penalty_per_day)

    def confidence_for(self, base: int, cycle_index: int) -> int:
        cc = self._config.confidence
        return max(base - cycle_index * cc.decay_per_cycle, cc.floor)

    def predict(
        self,
        records: Sequence[CycleRecord],
        preferences: UserPreferences | None = None,
        number_of_periods: int | None = None,
    ) -> list[Prediction]:
        """Project upcoming periods.

        Args:
            records:           Historical records ordered newest first.
            preferences:       Typical cycle/period lengths.
            number_of_periods: How many periods to project (default from config).

        Returns:
            Predictions for cycle_index 1..N, empty when there are no records.

        Raises:
            CycleDataError: If number_of_periods is negative.
        """
        count = self._config.default_periods if number_of_periods is None else number_of_periods
        if count < 0:
            raise CycleDataError(f"number_of_periods must be >= 0, got {count}")
        if not records:
            return []

        prefs = preferences or UserPreferences()
        stats = self._estimator.estimate(records, prefs)
        avg = stats.avg_cycle_length
        base = self.base_confidence(stats, prefs.typical_cycle_length)
        last_start = records[0].start_date

        predictions: list[Prediction] = []
        for i in range(1, count + 1):
            start = last_start + timedelta(days=avg * i)
            ovulation = start + timedelta(days=avg - LUTEAL_PHASE_DAYS)
            predictions.append(
                Prediction(
                    cycle_index=i,
                    start_date=start,
                    confidence=self.confidence_for(base, i),
                    ovulation_date=ovulation,
                    fertile_window_start=ovulation - timedelta(days=FERTILE_DAYS_BEFORE_OVULATION),
                    fertile_window_end=ovulation + timedelta(days=FERTILE_DAYS_AFTER_OVULATION),
                    avg_cycle_length_used=avg,
                )
            )

        logger.debug(
            "Predicted %d period(s) from %s (avg=%d, base confidence=%d)",
            len(predictions),
            last_start,
            avg,
            base,
        )
        return predictions
