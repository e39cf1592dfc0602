"""Overdue-period detection.

Compares a reference date against last_period + typical cycle length.  A
period is late only once the expected date has fully passed: on the
expected day itself ``days_late`` is 0 and the status is not late.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Sequence

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.records import CycleRecord, LateStatus, UserPreferences

logger = logging.getLogger("fertility.cycles.late_monitor")


class LatePeriodMonitor:
    """Report whether the next period is overdue."""

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()

    def check(
        self,
        records: Sequence[CycleRecord],
        today: date,
        preferences: UserPreferences | None = None,
    ) -> LateStatus | None:
        """Check the newest record against ``today``.

        Args:
            records:     Historical records ordered newest first.
            today:       Reference date.
            preferences: Supplies the typical cycle length (28 by default).

        Returns:
            LateStatus, or None when there are no records.
        """
        if not records:
            return None

        cycle_length = (preferences or UserPreferences()).typical_cycle_length
        last_period = records[0].start_date
        days_since = (today - last_period).days
        expected = last_period + timedelta(days=cycle_length)
        days_late = (today - expected).days

        if days_late > 0:
            logger.info("Period is %d day(s) late (expected %s)", days_late, expected)
            return LateStatus(
                is_late=True,
                days_since_last_period=days_since,
                days_late=days_late,
                expected_date=expected,
                last_period_date=last_period,
            )

        approaching = days_since > cycle_length - self._config.approaching_notice_days
        return LateStatus(
            is_late=False,
            days_since_last_period=days_since,
            is_approaching=approaching,
        )
