"""Cycle statistics and fertility-prediction engine.

Every component is a pure function of a newest-first snapshot of
``CycleRecord`` objects, the user's ``UserPreferences`` and, where relevant,
an explicit reference date.  Nothing here performs I/O.

Modules:
    records       — Engine data model, validation, quick-start record builder
    cycle_stats   — Average cycle/period length estimation + analytics summary
    predictor     — Future period projection with decaying confidence
    late_monitor  — Overdue-period detection
    conception    — Back-solve the cycle to target for a delivery month
    config_loader — Load/validate/hot-reload cycle_config.yaml
"""

from src.cycles.conception import ConceptionPlanner, PlanningError
from src.cycles.config_loader import CycleConfig, get_cycle_config
from src.cycles.cycle_stats import CycleStatistics, CycleStatisticsEstimator, CycleSummary
from src.cycles.late_monitor import LatePeriodMonitor
from src.cycles.predictor import PeriodPredictor
from src.cycles.records import (
    ConceptionPlan,
    CycleDataError,
    CycleRecord,
    Flow,
    LateStatus,
    Prediction,
    PreferencesError,
    UserPreferences,
    quick_start_record,
    sort_newest_first,
    with_logged_lengths,
)

__all__ = [
    "CycleRecord",
    "UserPreferences",
    "Flow",
    "Prediction",
    "LateStatus",
    "ConceptionPlan",
    "CycleDataError",
    "PreferencesError",
    "PlanningError",
    "CycleStatistics",
    "CycleSummary",
    "CycleStatisticsEstimator",
    "PeriodPredictor",
    "LatePeriodMonitor",
    "ConceptionPlanner",
    "CycleConfig",
    "get_cycle_config",
    "quick_start_record",
    "sort_newest_first",
    "with_logged_lengths",
]
