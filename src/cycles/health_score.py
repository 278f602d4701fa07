"""Cycle health score and the regularity statistics behind it.

Score (0–100, baseline 85):
    +10  coefficient of variation of cycle length < 10 %
    −15  coefficient of variation > 25 %
    −10  per high-severity anomaly
    −5   per severe or extreme symptom observation

Category: excellent ≥ 90, good ≥ 75, fair ≥ 60, otherwise needs-attention.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from dataclasses import dataclass, field
from typing import Sequence

from src.cycles.anomaly_detector import AnomalyReport
from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.robust_estimator import clamp, round_half_up
from src.cycles.timeline import cycle_intervals, sort_cycles

logger = logging.getLogger("cyclesense.cycles.health_score")

_SEVERE_LABELS = frozenset({"severe", "extreme"})


@dataclass(frozen=True)
class CycleVariability:
    """Classical spread of cycle lengths.

    Attributes:
        mean:                     Mean cycle length (one decimal).
        standard_deviation:       Population std dev (one decimal).
        coefficient_of_variation: std / mean × 100 (one decimal).
        consistency:              'high', 'moderate', or 'low'.
        cycle_count:              Lengths used.
    """

    mean: float
    standard_deviation: float
    coefficient_of_variation: float
    consistency: str
    cycle_count: int


@dataclass(frozen=True)
class FlowConsistency:
    """How often the most common flow intensity was logged."""

    distribution: dict[str, int]
    most_common: str
    consistency: int
    pattern: str


@dataclass
class HealthScoreFactors:
    cycle_regularity: str = "good"
    anomaly_risk: str = "low"
    symptom_severity: str = "none"


@dataclass
class HealthScore:
    """Aggregated cycle health score.

    Attributes:
        score:    0–100.
        category: 'excellent', 'good', 'fair', or 'needs-attention'.
        factors:  Qualitative labels for each input to the score.
        variability: Cycle variability used, or None with fewer than one length.
    """

    score: int
    category: str
    factors: HealthScoreFactors = field(default_factory=HealthScoreFactors)
    variability: CycleVariability | None = None


def cycle_variability(
    cycles: Sequence[CycleRecord],
    config: EngineConfig | None = None,
) -> CycleVariability | None:
    """Mean, standard deviation and coefficient of variation of cycle lengths.

    Returns None when no plausible cycle length can be derived.
    """
    config = config or get_engine_config()
    hc = config.health_score
    bounds = config.intervals
    lengths = cycle_intervals(sort_cycles(cycles), bounds.min_plausible_days, bounds.max_plausible_days)
    if not lengths:
        return None

    mean = statistics.fmean(lengths)
    std = statistics.pstdev(lengths)
    cv = std / mean * 100
    if cv < hc.high_consistency_cv_below:
        consistency = "high"
    elif cv < hc.moderate_consistency_cv_below:
        consistency = "moderate"
    else:
        consistency = "low"
    return CycleVariability(
        mean=round_half_up(mean, 1),
        standard_deviation=round_half_up(std, 1),
        coefficient_of_variation=round_half_up(cv, 1),
        consistency=consistency,
        cycle_count=len(lengths),
    )


def flow_consistency(
    cycles: Sequence[CycleRecord],
    config: EngineConfig | None = None,
) -> FlowConsistency | None:
    """Distribution of logged flow intensities; None without cycles."""
    if not cycles:
        return None
    hc = (config or get_engine_config()).health_score

    counts = Counter(c.flow_intensity for c in sort_cycles(cycles))
    # Ties go to the intensity logged first
    most_common = counts.most_common(1)[0][0]
    share = counts[most_common] / len(cycles) * 100
    if share > hc.consistent_flow_above:
        pattern = "consistent"
    elif share > hc.variable_flow_above:
        pattern = "variable"
    else:
        pattern = "irregular"
    return FlowConsistency(
        distribution=dict(counts),
        most_common=most_common,
        consistency=int(round_half_up(share)),
        pattern=pattern,
    )


class HealthScoreAggregator:
    """Combine regularity, anomalies and symptom severity into one score.

    Usage::

        aggregator = HealthScoreAggregator()
        health = aggregator.score(cycles, anomaly_report, symptoms)
        print(health.score, health.category)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()

    @property
    def _hc(self):
        return self._config.health_score

    def score(
        self,
        cycles: Sequence[CycleRecord],
        anomalies: AnomalyReport | None = None,
        symptoms: Sequence[SymptomObservation] = (),
    ) -> HealthScore:
        hc = self._hc
        variability = cycle_variability(cycles, self._config)
        cv = variability.coefficient_of_variation if variability else hc.default_cv

        total = float(hc.baseline)
        if cv < hc.regular_cv_below:
            total += hc.regular_bonus
        elif cv > hc.irregular_cv_above:
            total -= hc.irregular_penalty

        high_anomalies = anomalies.high_severity_count if anomalies else 0
        total -= high_anomalies * hc.high_anomaly_penalty

        severe = sum(1 for s in symptoms if s.severity in _SEVERE_LABELS)
        total -= severe * hc.severe_symptom_penalty

        final = int(round_half_up(clamp(total, 0, 100)))
        logger.debug(
            "Health score %d (cv=%.1f, high anomalies=%d, severe symptoms=%d)",
            final, cv, high_anomalies, severe,
        )
        return HealthScore(
            score=final,
            category=self.category(final),
            factors=HealthScoreFactors(
                cycle_regularity=self._regularity(cv),
                anomaly_risk="low" if high_anomalies == 0 else "elevated",
                symptom_severity=self.symptom_severity(symptoms),
            ),
            variability=variability,
        )

    def category(self, score: float) -> str:
        hc = self._hc
        if score >= hc.excellent_at:
            return "excellent"
        if score >= hc.good_at:
            return "good"
        if score >= hc.fair_at:
            return "fair"
        return "needs-attention"

    def _regularity(self, cv: float) -> str:
        if cv < self._hc.regular_cv_below:
            return "excellent"
        if cv < self._hc.good_regularity_cv_below:
            return "good"
        return "needs-attention"

    def symptom_severity(self, symptoms: Sequence[SymptomObservation]) -> str:
        """Overall severity label across all logged symptoms."""
        if not symptoms:
            return "none"
        hc = self._hc
        severe = sum(1 for s in symptoms if s.severity in _SEVERE_LABELS)
        moderate = sum(1 for s in symptoms if s.severity == "moderate")
        if severe > len(symptoms) * hc.severe_symptom_share:
            return "high"
        if moderate > len(symptoms) * hc.moderate_symptom_share:
            return "moderate"
        return "low"
