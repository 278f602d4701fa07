"""Load, validate, and hot-reload the cycle analytics engine configuration.

The config lives in ``engine_config.yaml`` alongside this module (or at
``Settings.engine_config_path`` when set).  At first use it is loaded once and
cached.  Call ``reload_engine_config()`` to re-read from disk; the previous
config stays active if the new file fails validation.

Usage::

    from src.cycles.config_loader import get_engine_config

    config = get_engine_config()
    config.robust_estimator.ewma_alpha          # 0.5
    config.hormone_map.entry("cramps").driver   # 'low_hormones'
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

logger = logging.getLogger("cyclesense.cycles.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "engine_config.yaml"

HORMONE_DRIVERS = ("estrogen", "progesterone", "fsh", "lh", "low_hormones", "multi")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IntervalConfig:
    """Plausibility bounds for raw inter-period intervals."""

    min_plausible_days: int = 10
    max_plausible_days: int = 120


@dataclass(frozen=True)
class EstimatorConfig:
    """Robust cycle-length estimator constants."""

    mad_scale: float = 1.4826
    sigma_floor: float = 2.5
    iqr_fence: float = 1.5
    ewma_alpha: float = 0.5
    min_cycle_days: int = 21
    max_cycle_days: int = 45
    default_cycle_length: int = 28


@dataclass(frozen=True)
class PredictionConfig:
    """Next-period prediction, confidence, curve, and backtest settings."""

    long_cycle_threshold: int = 32
    long_luteal_days: int = 15
    short_cycle_threshold: int = 26
    short_luteal_days: int = 13
    default_luteal_days: int = 14
    fertile_days_before_ovulation: int = 5
    fertile_days_after_ovulation: int = 1
    default_bleed_days: int = 5
    min_bleed_days: int = 2
    max_bleed_days: int = 8
    ongoing_grace_days: int = 2
    confidence_base: float = 30
    confidence_max: float = 95
    sigma_penalty_per_day: float = 8
    max_variability_bonus: float = 50
    volume_bonus_per_interval: float = 10
    max_volume_bonus: float = 40
    ovulation_confidence_offset: float = 8
    ovulation_confidence_max: float = 90
    no_history_confidence: float = 30
    no_history_ovulation_confidence: float = 20
    curve_offset_days: int = 5
    curve_min_sigma: float = 1.5
    backtest_min_cycles: int = 3
    backtest_tolerance_days: int = 2


@dataclass(frozen=True)
class AnomalyConfig:
    """Z-score anomaly detection and risk-level thresholds."""

    min_cycles: int = 5
    z_score_threshold: float = 2.0
    z_score_high: float = 3.0
    missed_period_days: int = 45
    short_cycle_days: int = 21
    very_short_cycle_days: int = 18
    recent_window_months: int = 6
    high_risk_high_severity: int = 2
    high_risk_recent: int = 3
    moderate_risk_high_severity: int = 1
    moderate_risk_recent: int = 2


@dataclass(frozen=True)
class CorrelationConfig:
    """Symptom to cycle-phase correlation settings."""

    reference_cycle_length: int = 28
    open_cycle_horizon_days: int = 45
    menstrual_until_day: int = 7
    follicular_until_day: int = 13
    ovulatory_until_day: int = 16
    predictable_frequency_ratio: float = 0.5
    consistent_max_stdev: float = 2.0
    variable_max_stdev: float = 5.0
    frequent_ratio: float = 0.7


@dataclass(frozen=True)
class HealthScoreConfig:
    """Health score adjustments and category thresholds."""

    baseline: int = 85
    regular_cv_below: float = 10
    regular_bonus: int = 10
    irregular_cv_above: float = 25
    irregular_penalty: int = 15
    high_anomaly_penalty: int = 10
    severe_symptom_penalty: int = 5
    excellent_at: int = 90
    good_at: int = 75
    fair_at: int = 60
    default_cv: float = 15
    good_regularity_cv_below: float = 20
    severe_symptom_share: float = 0.3
    moderate_symptom_share: float = 0.5
    high_consistency_cv_below: float = 10
    moderate_consistency_cv_below: float = 20
    consistent_flow_above: float = 70
    variable_flow_above: float = 40


@dataclass(frozen=True)
class HormonalConfig:
    """Dominant-hormone tiers and overall pattern-confidence thresholds."""

    min_cycles: int = 2
    dominance_floor: float = 1.0
    medium_dominance_at: float = 1.5
    high_dominance_at: float = 2.0
    high_confidence_cycles: int = 6
    high_confidence_correlation: float = 70
    high_confidence_occurrences: int = 12
    medium_confidence_cycles: int = 3
    medium_confidence_correlation: float = 50
    medium_confidence_occurrences: int = 6
    common_symptom_limit: int = 5
    high_correlation_insight_at: float = 70
    high_intensity_insight_at: float = 3.0
    high_consistency_insight_at: float = 80
    high_sensitivity_at: float = 3.0
    moderate_sensitivity_at: float = 2.0
    general_recommendation_at: float = 2.5
    phase_recommendation_intensity_at: float = 2.5
    phase_recommendation_consistency_at: float = 60


@dataclass(frozen=True)
class SymptomHormoneEntry:
    """Primary hormonal driver of a symptom and the phases it is expected in."""

    driver: str
    phases: tuple[str, ...]


@dataclass(frozen=True)
class HormoneMap:
    """Immutable, versioned symptom-to-hormone lookup table.

    Attributes:
        version:          Table version string, independent of the config version.
        phases:           Ordered phase name → cycle days on a 28-day cycle.
        symptoms:         Symptom tag → SymptomHormoneEntry.
        severity_weights: Severity label → numeric weight.
    """

    version: str
    phases: Mapping[str, tuple[int, ...]]
    symptoms: Mapping[str, SymptomHormoneEntry]
    severity_weights: Mapping[str, int]

    def entry(self, symptom_type: str) -> SymptomHormoneEntry | None:
        return self.symptoms.get(symptom_type)

    def severity_weight(self, severity: str) -> int:
        """Numeric weight for a severity label; unknown labels weigh 1."""
        return self.severity_weights.get(severity, 1)

    def with_entries(
        self, version: str, entries: Mapping[str, SymptomHormoneEntry]
    ) -> HormoneMap:
        """Return a new table with ``entries`` added or replaced."""
        merged = dict(self.symptoms)
        merged.update(entries)
        return HormoneMap(
            version=version,
            phases=self.phases,
            symptoms=MappingProxyType(merged),
            severity_weights=self.severity_weights,
        )


@dataclass(frozen=True)
class RecommendationTable:
    """Text attached to hormonal-pattern recommendations.

    Attributes:
        general_title:   Title of the overall high-sensitivity recommendation.
        general_message: Its message.
        general_actions: Its suggested actions.
        phase_actions:   Hormone-map phase → suggested actions for that phase.
    """

    general_title: str = ""
    general_message: str = ""
    general_actions: tuple[str, ...] = ()
    phase_actions: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def actions_for(self, phase: str) -> tuple[str, ...]:
        return self.phase_actions.get(phase, ())


@dataclass(frozen=True)
class EngineConfig:
    """Complete, validated engine configuration.

    This is the single in-memory representation of engine_config.yaml.
    Every estimator, detector, and analyzer reads from this object.
    """

    version: str
    intervals: IntervalConfig
    robust_estimator: EstimatorConfig
    prediction: PredictionConfig
    anomaly: AnomalyConfig
    correlation: CorrelationConfig
    health_score: HealthScoreConfig
    hormonal: HormonalConfig
    hormone_map: HormoneMap
    recommendations: RecommendationTable = field(default_factory=RecommendationTable)
    _raw: dict = field(default_factory=dict, repr=False, compare=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when engine_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    import yaml  # pyyaml

    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return data


def _build_section(cls: type, raw: Any, section: str, errors: list[str]) -> Any:
    """Build a flat numeric config section, defaulting any missing key."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        errors.append(f"'{section}' must be a mapping")
        return cls()

    known = {f.name for f in fields(cls)}
    for key in raw:
        if key not in known:
            errors.append(f"Unknown key '{key}' in section '{section}'")

    values: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        cast = int if f.type in ("int", int) else float
        val = raw[f.name]
        if isinstance(val, bool):
            errors.append(f"{section}.{f.name} must be a number, got {val!r}")
            continue
        try:
            values[f.name] = cast(val)
        except (TypeError, ValueError):
            errors.append(f"{section}.{f.name} must be a number, got {val!r}")
    return cls(**values)


def _build_hormone_map(raw: Any, errors: list[str]) -> HormoneMap:
    """Validate the ``hormone_map`` section and freeze it."""
    if not isinstance(raw, dict):
        errors.append("'hormone_map' section is missing or not a mapping")
        return HormoneMap("0", MappingProxyType({}), MappingProxyType({}), MappingProxyType({}))

    version = str(raw.get("version", "1"))

    phases: dict[str, tuple[int, ...]] = {}
    for name, days in (raw.get("phases") or {}).items():
        if not isinstance(days, list) or not days:
            errors.append(f"hormone_map.phases.{name} must be a non-empty list of days")
            continue
        if not all(isinstance(d, int) and not isinstance(d, bool) and d >= 1 for d in days):
            errors.append(f"hormone_map.phases.{name} days must be positive integers")
            continue
        phases[name] = tuple(days)
    if not phases:
        errors.append("hormone_map.phases is missing or empty")

    weights: dict[str, int] = {}
    for label, weight in (raw.get("severity_weights") or {}).items():
        try:
            w = int(weight)
        except (TypeError, ValueError):
            errors.append(f"hormone_map.severity_weights.{label} must be an integer, got {weight!r}")
            continue
        if w <= 0:
            errors.append(f"hormone_map.severity_weights.{label} = {w} must be positive")
        weights[label] = w

    symptoms: dict[str, SymptomHormoneEntry] = {}
    for tag, entry in (raw.get("symptoms") or {}).items():
        if not isinstance(entry, dict):
            errors.append(f"hormone_map.symptoms.{tag} must be a mapping")
            continue
        driver = entry.get("driver")
        if driver not in HORMONE_DRIVERS:
            errors.append(
                f"hormone_map.symptoms.{tag}.driver {driver!r} is not one of {', '.join(HORMONE_DRIVERS)}"
            )
            continue
        expected = entry.get("phases") or []
        unknown = [p for p in expected if p not in phases]
        if unknown and phases:
            errors.append(f"hormone_map.symptoms.{tag} references unknown phase(s): {', '.join(map(str, unknown))}")
            continue
        symptoms[tag] = SymptomHormoneEntry(driver=driver, phases=tuple(expected))

    return HormoneMap(
        version=version,
        phases=MappingProxyType(phases),
        symptoms=MappingProxyType(symptoms),
        severity_weights=MappingProxyType(weights),
    )


def _string_list(value: Any, where: str, errors: list[str]) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        errors.append(f"{where} must be a list of strings")
        return ()
    return tuple(value)


def _build_recommendations(
    raw: Any, phases: Mapping[str, tuple[int, ...]], errors: list[str]
) -> RecommendationTable:
    """Validate the optional ``hormonal_recommendations`` section."""
    if raw is None:
        return RecommendationTable()
    if not isinstance(raw, dict):
        errors.append("'hormonal_recommendations' must be a mapping")
        return RecommendationTable()

    general = raw.get("general") or {}
    if not isinstance(general, dict):
        errors.append("hormonal_recommendations.general must be a mapping")
        general = {}

    phase_actions: dict[str, tuple[str, ...]] = {}
    for phase, actions in (raw.get("phase_actions") or {}).items():
        if phases and phase not in phases:
            errors.append(f"hormonal_recommendations.phase_actions.{phase} is not a hormone_map phase")
            continue
        phase_actions[phase] = _string_list(
            actions, f"hormonal_recommendations.phase_actions.{phase}", errors
        )

    return RecommendationTable(
        general_title=str(general.get("title", "")),
        general_message=str(general.get("message", "")),
        general_actions=_string_list(
            general.get("actions"), "hormonal_recommendations.general.actions", errors
        ),
        phase_actions=MappingProxyType(phase_actions),
    )


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Performs structural validation and applies defaults for optional fields.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    intervals = _build_section(IntervalConfig, raw.get("intervals"), "intervals", errors)
    estimator = _build_section(EstimatorConfig, raw.get("robust_estimator"), "robust_estimator", errors)
    prediction = _build_section(PredictionConfig, raw.get("prediction"), "prediction", errors)
    anomaly = _build_section(AnomalyConfig, raw.get("anomaly_detection"), "anomaly_detection", errors)
    correlation = _build_section(
        CorrelationConfig, raw.get("symptom_correlation"), "symptom_correlation", errors
    )
    health = _build_section(HealthScoreConfig, raw.get("health_score"), "health_score", errors)
    hormonal = _build_section(HormonalConfig, raw.get("hormonal_inference"), "hormonal_inference", errors)
    hormone_map = _build_hormone_map(raw.get("hormone_map"), errors)
    recommendations = _build_recommendations(
        raw.get("hormonal_recommendations"), hormone_map.phases, errors
    )

    # ── Cross-field checks ──
    if intervals.min_plausible_days >= intervals.max_plausible_days:
        errors.append("intervals.min_plausible_days must be below max_plausible_days")
    if estimator.min_cycle_days >= estimator.max_cycle_days:
        errors.append("robust_estimator.min_cycle_days must be below max_cycle_days")
    if not (0.0 < estimator.ewma_alpha <= 1.0):
        errors.append(f"robust_estimator.ewma_alpha = {estimator.ewma_alpha} is out of range (0.0, 1.0]")
    if estimator.sigma_floor <= 0:
        errors.append("robust_estimator.sigma_floor must be positive")
    if prediction.curve_min_sigma <= 0:
        errors.append("prediction.curve_min_sigma must be positive")
    if prediction.min_bleed_days > prediction.max_bleed_days:
        errors.append("prediction.min_bleed_days must not exceed max_bleed_days")
    if not (
        correlation.menstrual_until_day
        < correlation.follicular_until_day
        < correlation.ovulatory_until_day
    ):
        errors.append("symptom_correlation phase boundaries must be strictly increasing")
    if not (health.fair_at <= health.good_at <= health.excellent_at):
        errors.append("health_score category thresholds must be non-decreasing")

    if errors:
        raise ConfigValidationError(
            f"engine_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        intervals=intervals,
        robust_estimator=estimator,
        prediction=prediction,
        anomaly=anomaly,
        correlation=correlation,
        health_score=health,
        hormonal=hormonal,
        hormone_map=hormone_map,
        recommendations=recommendations,
        _raw=raw,
    )


def _default_path() -> Path:
    from src.config import get_settings

    override = get_settings().engine_config_path
    return Path(override) if override else _CONFIG_PATH


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the configured or bundled file by default.
    """
    target = path or _default_path()
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info(
        "Loaded engine config v%s (hormone map v%s) from %s",
        config.version,
        config.hormone_map.version,
        target,
    )
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_lock = threading.Lock()


def get_engine_config() -> EngineConfig:
    """Return the global EngineConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_engine_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_engine_config()
    return _config


def reload_engine_config(path: Path | None = None) -> EngineConfig:
    """Reload the engine config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_engine_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded engine config: %s → %s", old_version, new_config.version)
    return new_config
