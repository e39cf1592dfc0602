"""Conception planning for a target delivery month.

Works backwards from the desired due date:

1. Delivery is assumed on the 15th of the target month.
2. Conception = delivery − 280 days.
3. Starting at the last period, step forward one typical cycle at a time
   while the cycle start is still before the conception date, then step
   back one cycle.  The result is the cycle whose start precedes the
   conception date: cycle_start < conception ≤ cycle_start + cycle_length.
4. Ovulation is day 14 of that cycle; the fertile window runs from five
   days before ovulation to the day after.

Cycles are assumed perfectly regular at the user's typical length.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Sequence

from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.predictor import FERTILE_DAYS_AFTER_OVULATION, FERTILE_DAYS_BEFORE_OVULATION
from src.cycles.records import CycleDataError, CycleRecord, ConceptionPlan, UserPreferences

logger = logging.getLogger("fertility.cycles.conception")

GESTATION_DAYS = 280
OVULATION_CYCLE_DAY = 14
DELIVERY_DAY_OF_MONTH = 15


class PlanningError(RuntimeError):
    """The cycle search did not converge within the iteration cap."""


class ConceptionPlanner:
    """Find the cycle to target for a delivery in a given month."""

    def __init__(self, config: CycleConfig | None = None) -> None:
        self._config = config or get_cycle_config()

    @staticmethod
    def target_delivery_date(target_month: int, target_year: int) -> date:
        if not 1 <= target_month <= 12:
            raise CycleDataError(f"target_month must be 1-12, got {target_month}")
        try:
            return date(target_year, target_month, DELIVERY_DAY_OF_MONTH)
        except (ValueError, OverflowError) as exc:
            raise CycleDataError(f"Invalid target year: {target_year}") from exc

    def locate_cycle(
        self, last_period: date, cycle_length: int, conception: date
    ) -> tuple[int, date]:
        """Return (cycle_number, cycle_start) for the cycle containing ``conception``.

        Cycle 1 starts at the last period.  A conception date on or before
        the last period yields cycle numbers ≤ 0.

        Raises:
            PlanningError: If more than ``max_planner_iterations`` steps are needed.
        """
        if cycle_length <= 0:
            raise CycleDataError(f"cycle length must be positive, got {cycle_length}")

        step = timedelta(days=cycle_length)
        limit = self._config.max_planner_iterations
        iterations = 0

        cycle_number = 1
        cycle_start = last_period
        while cycle_start < conception:
            cycle_start += step
            cycle_number += 1
            iterations += 1
            if iterations > limit:
                raise PlanningError(
                    f"Conception date {conception} is more than {limit} cycles "
                    f"after {last_period}"
                )

        cycle_number -= 1
        cycle_start -= step

        # Targets already behind the last period keep walking back
        while cycle_start >= conception:
            cycle_start -= step
            cycle_number -= 1
            iterations += 1
            if iterations > limit:
                raise PlanningError(
                    f"Conception date {conception} is more than {limit} cycles "
                    f"before {last_period}"
                )

        return cycle_number, cycle_start

    def plan(
        self,
        records: Sequence[CycleRecord],
        target_month: int,
        target_year: int,
        today: date,
        preferences: UserPreferences | None = None,
    ) -> ConceptionPlan | None:
        """Plan conception timing for a delivery in ``target_month``/``target_year``.

        Args:
            records:      Historical records ordered newest first.
            target_month: 1–12.
            target_year:  Calendar year of the desired delivery.
            today:        Reference date for ``days_from_now``.
            preferences:  Supplies the typical cycle length.

        Returns:
            ConceptionPlan, or None when there are no records.  A target
            whose window has already passed is returned with a negative
            ``days_from_now``.

        Raises:
            CycleDataError: If the target month/year is invalid.
            PlanningError:  If the target is absurdly far from the last period.
        """
        delivery = self.target_delivery_date(target_month, target_year)
        if not records:
            logger.debug("No records; cannot plan conception for %s", delivery)
            return None

        cycle_length = (preferences or UserPreferences()).typical_cycle_length
        conception = delivery - timedelta(days=GESTATION_DAYS)
        cycle_number, cycle_start = self.locate_cycle(
            records[0].start_date, cycle_length, conception
        )

        ovulation = cycle_start + timedelta(days=OVULATION_CYCLE_DAY)
        plan = ConceptionPlan(
            target_delivery_date=delivery,
            optimal_conception_date=conception,
            cycle_number=cycle_number,
            period_start=cycle_start,
            fertile_window_start=ovulation - timedelta(days=FERTILE_DAYS_BEFORE_OVULATION),
            fertile_window_end=ovulation + timedelta(days=FERTILE_DAYS_AFTER_OVULATION),
            ovulation_date=ovulation,
            days_from_now=(conception - today).days,
        )
        if plan.days_from_now < 0:
            logger.info(
                "Conception target %s for delivery %s is already %d day(s) past",
                conception,
                delivery,
                -plan.days_from_now,
            )
        return plan
