"""Load, validate, and hot-reload the cycle engine configuration.

The config lives in ``cycle_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_cycle_config()`` to re-read from
disk after an admin update — no restart required.

Usage::

    from src.cycles.config_loader import get_cycle_config

    config = get_cycle_config()
    window = config.history.window                 # 6
    floor = config.confidence.floor                # 45
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("fertility.cycles.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "cycle_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class HistoryConfig:
    """How much history the estimator reads and which deltas it trusts."""

    window: int = 6
    min_valid_cycle_days: int = 15
    max_valid_cycle_days: int = 45

    def is_valid_delta(self, delta: int) -> bool:
        """True when a start-date delta looks like a real cycle length."""
        return self.min_valid_cycle_days < delta < self.max_valid_cycle_days


@dataclass
class ConfidenceConfig:
    """Heuristic confidence scoring for period predictions."""

    insufficient_data: int = 75
    min_records_for_regularity: int = 3
    regularity_penalty_per_day: int = 10
    decay_per_cycle: int = 8
    floor: int = 45


@dataclass
class CycleConfig:
    """Complete, validated cycle engine configuration.

    Attributes:
        version:                 Config schema version string.
        history:                 Estimator window and delta bounds.
        confidence:              Predictor confidence parameters.
        default_periods:         Periods predicted when the caller gives no count.
        approaching_notice_days: Lead time for the "period approaching" notice.
        max_planner_iterations:  Cap on the conception planner's advance loop.
        default_cycle_length:    Typical cycle length for users with no preferences.
        default_period_length:   Typical period length for users with no preferences.
    """

    version: str
    history: HistoryConfig
    confidence: ConfidenceConfig
    default_periods: int = 4
    approaching_notice_days: int = 3
    max_planner_iterations: int = 1000
    default_cycle_length: int = 28
    default_period_length: int = 5
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when cycle_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Cycle config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> CycleConfig:
    """Validate the raw YAML dict and construct a CycleConfig.

    Missing sections fall back to the documented defaults; present values
    must be integers inside their allowed ranges.

    Raises:
        ConfigValidationError: If any value is invalid.
    """
    errors: list[str] = []

    def _int(section: dict, key: str, default: int, path: str, minimum: int = 0) -> int:
        value = section.get(key, default)
        try:
            number = int(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be an integer, got {value!r}")
            return default
        if number < minimum:
            errors.append(f"{path}.{key} = {number} must be >= {minimum}")
        return number

    version = str(raw.get("version", "1.0"))

    # ── History window ──
    h_raw = raw.get("history") or {}
    history = HistoryConfig(
        window=_int(h_raw, "window", 6, "history", minimum=1),
        min_valid_cycle_days=_int(h_raw, "min_valid_cycle_days", 15, "history"),
        max_valid_cycle_days=_int(h_raw, "max_valid_cycle_days", 45, "history", minimum=1),
    )
    if history.min_valid_cycle_days >= history.max_valid_cycle_days:
        errors.append(
            "history.min_valid_cycle_days must be below history.max_valid_cycle_days"
        )

    # ── Confidence ──
    c_raw = raw.get("confidence") or {}
    confidence = ConfidenceConfig(
        insufficient_data=_int(c_raw, "insufficient_data", 75, "confidence"),
        min_records_for_regularity=_int(
            c_raw, "min_records_for_regularity", 3, "confidence", minimum=1
        ),
        regularity_penalty_per_day=_int(c_raw, "regularity_penalty_per_day", 10, "confidence"),
        decay_per_cycle=_int(c_raw, "decay_per_cycle", 8, "confidence"),
        floor=_int(c_raw, "floor", 45, "confidence"),
    )
    for key in ("insufficient_data", "floor"):
        if getattr(confidence, key) > 100:
            errors.append(f"confidence.{key} must be <= 100")

    p_raw = raw.get("prediction") or {}
    lp_raw = raw.get("late_period") or {}
    pl_raw = raw.get("planner") or {}
    d_raw = raw.get("defaults") or {}

    config = CycleConfig(
        version=version,
        history=history,
        confidence=confidence,
        default_periods=_int(p_raw, "default_periods", 4, "prediction"),
        approaching_notice_days=_int(lp_raw, "approaching_notice_days", 3, "late_period"),
        max_planner_iterations=_int(pl_raw, "max_iterations", 1000, "planner", minimum=1),
        default_cycle_length=_int(d_raw, "typical_cycle_length", 28, "defaults", minimum=1),
        default_period_length=_int(d_raw, "typical_period_length", 5, "defaults", minimum=1),
        _raw=raw,
    )

    if errors:
        raise ConfigValidationError(
            f"cycle_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return config


def load_cycle_config(path: Path | None = None) -> CycleConfig:
    """Load and validate the cycle config from disk.

    Args:
        path: Override path to YAML. Uses the bundled cycle_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded cycle config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: CycleConfig | None = None
_config_lock = threading.Lock()


def get_cycle_config() -> CycleConfig:
    """Return the global CycleConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_cycle_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_cycle_config()
    return _config


def reload_cycle_config(path: Path | None = None) -> CycleConfig:
    """Reload the cycle config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_cycle_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded cycle config: %s → %s", old_version, new_config.version)
    return new_config
