"""Hormonal-phase inference from symptom patterns.

Splits each cycle into the six phases of the hormone map (contiguous day
ranges defined on a 28-day cycle, with each phase's last day scaled to the
cycle's actual length), then for every phase in which symptoms were logged:

- hormonal activity: severity weights summed per driver hormone and divided
  by the number of symptoms in that phase occurrence
- intensity: mean severity weight
- correlation score: % of symptoms whose expected phases include this one

Per phase, those values are averaged across occurrences; the hormone with the
highest averaged level is reported as dominant.

The symptom → hormone table is injected through ``EngineConfig.hormone_map``
and never hardcoded here.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.robust_estimator import round_half_up
from src.cycles.symptom_correlator import CorrelationAnalyzer, SymptomOccurrence
from src.cycles.timeline import cycle_intervals, sort_cycles

logger = logging.getLogger("cyclesense.cycles.hormonal_patterns")

# Hormones eligible for dominance, in tie-break order
DOMINANCE_ORDER = ("estrogen", "progesterone", "fsh", "lh")


@dataclass(frozen=True)
class HormonalProfile:
    """Relative activity level per hormone (severity-weighted)."""

    estrogen: float = 0.0
    progesterone: float = 0.0
    fsh: float = 0.0
    lh: float = 0.0
    overall_intensity: float = 0.0

    def level(self, hormone: str) -> float:
        return getattr(self, hormone)


@dataclass(frozen=True)
class DominantHormone:
    """Strongest hormone in a phase.

    Attributes:
        hormone:    Hormone name, or 'none' when no level reaches the floor.
        level:      Averaged activity level (0 for 'none').
        confidence: 'high', 'medium', 'low', or 'none'.
    """

    hormone: str = "none"
    level: float = 0.0
    confidence: str = "none"


@dataclass(frozen=True)
class CommonSymptom:
    symptom_type: str
    frequency: int
    percentage: int


@dataclass
class PhaseOccurrence:
    """Symptoms of one phase within one cycle.

    Attributes:
        cycle_index:       Index of the cycle (chronological order).
        phase:             Hormone-map phase name.
        symptoms:          Occurrences whose cycle day falls in the phase.
        activity:          Per-hormone activity for this occurrence.
        intensity:         Mean severity weight.
        correlation_score: % of symptoms expected in this phase (0–100).
    """

    cycle_index: int
    phase: str
    symptoms: list[SymptomOccurrence]
    activity: HormonalProfile
    intensity: float
    correlation_score: int


@dataclass
class HormonalPhasePattern:
    """Aggregated pattern for one phase across all cycles.

    Attributes:
        phase:               Hormone-map phase name.
        occurrences:         Cycles in which symptoms were logged in this phase.
        average_intensity:   Mean of per-occurrence intensity.
        average_correlation: Mean of per-occurrence correlation score.
        consistency:         occurrences / total cycles × 100.
        hormonal_profile:    Per-hormone level averaged across occurrences.
        dominant_hormone:    Strongest hormone and its confidence tier.
        common_symptoms:     Most frequent symptom tags in this phase.
    """

    phase: str
    occurrences: int
    average_intensity: float
    average_correlation: int
    consistency: int
    hormonal_profile: HormonalProfile
    dominant_hormone: DominantHormone
    common_symptoms: list[CommonSymptom] = field(default_factory=list)


@dataclass(frozen=True)
class PhaseLevel:
    phase: str
    level: float


@dataclass(frozen=True)
class HormonalRecommendation:
    """Guidance for a high-sensitivity history or one intense phase.

    Attributes:
        kind:     'general' or 'phase-specific'.
        priority: 'high' for general, 'medium' for phase-specific.
        title:    Short heading.
        message:  One-sentence explanation.
        actions:  Suggested actions, from the recommendation table.
        phase:    Hormone-map phase for phase-specific entries.
    """

    kind: str
    priority: str
    title: str
    message: str
    actions: tuple[str, ...] = ()
    phase: str | None = None


@dataclass
class HormonalAnalysis:
    """Result of HormonalInferenceLayer.analyze().

    Attributes:
        patterns:          Phase name → pattern, in hormone-map phase order.
        confidence:        Overall pattern confidence ('high', 'medium', 'low').
        cycle_count:       Cycles analysed.
        total_occurrences: Sum of occurrences across phases.
        mean_correlation:  Mean of per-phase average correlation.
        overall_pattern:   'high-sensitivity', 'moderate-sensitivity',
                           'low-sensitivity', or 'insufficient-data'.
        dominant_phases:   Up to two phases with the highest intensity.
        insights:          Short human-readable observations.
        recommendations:   General and phase-specific guidance.
        hormone_sensitivity: Hormone → level in each phase, in phase order.
        table_version:     Hormone map version used.
    """

    patterns: dict[str, HormonalPhasePattern] = field(default_factory=dict)
    confidence: str = "low"
    cycle_count: int = 0
    total_occurrences: int = 0
    mean_correlation: float = 0.0
    overall_pattern: str = "insufficient-data"
    dominant_phases: list[str] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    recommendations: list[HormonalRecommendation] = field(default_factory=list)
    hormone_sensitivity: dict[str, list[PhaseLevel]] = field(default_factory=dict)
    table_version: str = ""


@dataclass
class ExpectedPhase:
    """Phase and typical hormonal activity projected onto a date."""

    date: date
    cycle_day: int
    phase: str
    expected_activity: HormonalProfile | None = None
    expected_symptoms: list[CommonSymptom] = field(default_factory=list)
    confidence: int = 0


class HormonalInferenceLayer:
    """Infer likely dominant hormones per cycle phase from symptom logs.

    Usage::

        layer = HormonalInferenceLayer()
        analysis = layer.analyze(cycles, symptoms)
        luteal = analysis.patterns.get("luteal_late")
        if luteal:
            print(luteal.dominant_hormone.hormone, luteal.consistency)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()
        self._correlator = CorrelationAnalyzer(self._config)

    @property
    def _hc(self):
        return self._config.hormonal

    @property
    def _table(self):
        return self._config.hormone_map

    # ------------------------------------------------------------------
    # Phase geometry
    # ------------------------------------------------------------------

    def scaled_phase_days(self, cycle_length: int) -> dict[str, set[int]]:
        """Phase → cycle days, scaled from 28 days to ``cycle_length``.

        Only each phase's last day is scaled; a phase runs from the day after
        the previous phase ends, and the final phase runs to ``cycle_length``.
        Every day 1..cycle_length therefore belongs to exactly one phase.
        """
        reference = self._config.correlation.reference_cycle_length
        ratio = cycle_length / reference
        phases = list(self._table.phases.items())
        scaled: dict[str, set[int]] = {}
        start = 1
        for position, (phase, days) in enumerate(phases):
            if position == len(phases) - 1:
                end = cycle_length
            else:
                end = min(int(round_half_up(max(days) * ratio)), cycle_length)
            scaled[phase] = set(range(start, end + 1))
            start = max(start, end + 1)
        return scaled

    def phase_for_day(self, day: int, cycle_length: int) -> str:
        """Hormone-map phase containing ``day``; 'unknown' when none does."""
        for phase, days in self.scaled_phase_days(cycle_length).items():
            if day in days:
                return phase
        return "unknown"

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(
        self,
        cycles: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation],
    ) -> HormonalAnalysis:
        """Build per-phase hormonal patterns.

        Args:
            cycles:   Cycle records in any order.
            symptoms: Symptom observations in any order.

        Returns:
            HormonalAnalysis; empty with 'low' confidence below the minimum
            number of cycles or without symptoms.
        """
        hc = self._hc
        ordered = sort_cycles(cycles)
        result = HormonalAnalysis(cycle_count=len(ordered), table_version=self._table.version)
        if len(ordered) < hc.min_cycles or not symptoms:
            logger.info(
                "Insufficient data for hormonal inference: %d cycles, %d symptoms",
                len(ordered), len(symptoms),
            )
            return result

        occurrences = self.phase_occurrences(ordered, symptoms)
        grouped: dict[str, list[PhaseOccurrence]] = {}
        for occ in occurrences:
            grouped.setdefault(occ.phase, []).append(occ)

        for phase in self._table.phases:
            if phase in grouped:
                result.patterns[phase] = self._aggregate(phase, grouped[phase], len(ordered))

        patterns = list(result.patterns.values())
        result.total_occurrences = sum(p.occurrences for p in patterns)
        if patterns:
            result.mean_correlation = round_half_up(
                statistics.fmean(p.average_correlation for p in patterns), 1
            )
            result.overall_pattern = self._sensitivity(patterns)
            result.hormone_sensitivity = self.hormone_sensitivity(patterns)
            result.recommendations = self.recommendations(patterns)
            ranked = sorted(patterns, key=lambda p: -p.average_intensity)
            result.dominant_phases = [p.phase for p in ranked[:2]]
        result.confidence = self.pattern_confidence(
            len(ordered), result.mean_correlation, result.total_occurrences
        )
        result.insights = self._insights(patterns)
        return result

    def phase_occurrences(
        self,
        ordered: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation],
    ) -> list[PhaseOccurrence]:
        """One PhaseOccurrence per (cycle, phase) with at least one symptom."""
        result: list[PhaseOccurrence] = []
        placed = self._correlator.place_symptoms(ordered, symptoms)
        for cycle_index, cycle_symptoms in placed.items():
            length = cycle_symptoms[0].cycle_length
            for phase, days in self.scaled_phase_days(length).items():
                in_phase = [s for s in cycle_symptoms if s.cycle_day in days]
                if not in_phase:
                    continue
                result.append(
                    PhaseOccurrence(
                        cycle_index=cycle_index,
                        phase=phase,
                        symptoms=in_phase,
                        activity=self.hormonal_activity(in_phase),
                        intensity=self.intensity(in_phase),
                        correlation_score=self.correlation_score(in_phase, phase),
                    )
                )
        return result

    def hormonal_activity(self, symptoms: Sequence[SymptomOccurrence]) -> HormonalProfile:
        """Severity-weighted driver totals divided by the symptom count."""
        totals = dict.fromkeys(("estrogen", "progesterone", "fsh", "lh", "overall_intensity"), 0.0)
        for occ in symptoms:
            entry = self._table.entry(occ.observation.symptom_type)
            if entry is None:
                continue
            weight = self._table.severity_weight(occ.observation.severity)
            if entry.driver == "low_hormones":
                totals["overall_intensity"] += weight * 0.5
            elif entry.driver == "multi":
                totals["estrogen"] += weight * 0.5
                totals["progesterone"] += weight * 0.5
            else:
                totals[entry.driver] += weight

        count = max(len(symptoms), 1)
        return HormonalProfile(**{k: round_half_up(v / count, 2) for k, v in totals.items()})

    def intensity(self, symptoms: Sequence[SymptomOccurrence]) -> float:
        if not symptoms:
            return 0.0
        weights = [self._table.severity_weight(s.observation.severity) for s in symptoms]
        return round_half_up(sum(weights) / len(weights), 2)

    def correlation_score(self, symptoms: Sequence[SymptomOccurrence], phase: str) -> int:
        """Percentage of symptoms whose expected phases include ``phase``."""
        if not symptoms:
            return 0
        matched = 0
        for occ in symptoms:
            entry = self._table.entry(occ.observation.symptom_type)
            if entry is not None and phase in entry.phases:
                matched += 1
        return int(round_half_up(matched / len(symptoms) * 100))

    def _aggregate(
        self, phase: str, occurrences: list[PhaseOccurrence], total_cycles: int
    ) -> HormonalPhasePattern:
        profile = HormonalProfile(
            **{
                hormone: round_half_up(
                    statistics.fmean(o.activity.level(hormone) for o in occurrences), 2
                )
                for hormone in ("estrogen", "progesterone", "fsh", "lh", "overall_intensity")
            }
        )
        return HormonalPhasePattern(
            phase=phase,
            occurrences=len(occurrences),
            average_intensity=round_half_up(statistics.fmean(o.intensity for o in occurrences), 2),
            average_correlation=int(
                round_half_up(statistics.fmean(o.correlation_score for o in occurrences))
            ),
            consistency=int(round_half_up(len(occurrences) / total_cycles * 100)),
            hormonal_profile=profile,
            dominant_hormone=self.dominant_hormone(profile),
            common_symptoms=self._common_symptoms(occurrences),
        )

    def dominant_hormone(self, profile: HormonalProfile) -> DominantHormone:
        """Highest-level hormone; earlier hormones win ties."""
        hc = self._hc
        best, level = "none", 0.0
        for hormone in DOMINANCE_ORDER:
            if profile.level(hormone) > level:
                best, level = hormone, profile.level(hormone)

        if level < hc.dominance_floor:
            return DominantHormone()
        if level >= hc.high_dominance_at:
            tier = "high"
        elif level >= hc.medium_dominance_at:
            tier = "medium"
        else:
            tier = "low"
        return DominantHormone(hormone=best, level=level, confidence=tier)

    def _common_symptoms(self, occurrences: list[PhaseOccurrence]) -> list[CommonSymptom]:
        counts = Counter(s.observation.symptom_type for o in occurrences for s in o.symptoms)
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return [
            CommonSymptom(
                symptom_type=tag,
                frequency=count,
                percentage=int(round_half_up(count / len(occurrences) * 100)),
            )
            for tag, count in ranked[: self._hc.common_symptom_limit]
        ]

    def pattern_confidence(
        self, cycle_count: int, mean_correlation: float, total_occurrences: int
    ) -> str:
        hc = self._hc
        if (
            cycle_count >= hc.high_confidence_cycles
            and mean_correlation >= hc.high_confidence_correlation
            and total_occurrences >= hc.high_confidence_occurrences
        ):
            return "high"
        if (
            cycle_count >= hc.medium_confidence_cycles
            and mean_correlation >= hc.medium_confidence_correlation
            and total_occurrences >= hc.medium_confidence_occurrences
        ):
            return "medium"
        return "low"

    def _sensitivity(self, patterns: list[HormonalPhasePattern]) -> str:
        hc = self._hc
        mean_intensity = statistics.fmean(p.average_intensity for p in patterns)
        if mean_intensity >= hc.high_sensitivity_at:
            return "high-sensitivity"
        if mean_intensity >= hc.moderate_sensitivity_at:
            return "moderate-sensitivity"
        return "low-sensitivity"

    @staticmethod
    def hormone_sensitivity(
        patterns: Sequence[HormonalPhasePattern],
    ) -> dict[str, list[PhaseLevel]]:
        """Each hormone's averaged level in every phase that has a pattern."""
        return {
            hormone: [PhaseLevel(p.phase, p.hormonal_profile.level(hormone)) for p in patterns]
            for hormone in (*DOMINANCE_ORDER, "overall_intensity")
        }

    def recommendations(
        self, patterns: Sequence[HormonalPhasePattern]
    ) -> list[HormonalRecommendation]:
        """General guidance for high overall intensity, then one entry per
        phase whose symptoms are both intense and consistent."""
        if not patterns:
            return []
        hc = self._hc
        text = self._config.recommendations
        result: list[HormonalRecommendation] = []

        if statistics.fmean(p.average_intensity for p in patterns) >= hc.general_recommendation_at:
            result.append(
                HormonalRecommendation(
                    kind="general",
                    priority="high",
                    title=text.general_title,
                    message=text.general_message,
                    actions=text.general_actions,
                )
            )
        for p in patterns:
            if (
                p.average_intensity >= hc.phase_recommendation_intensity_at
                and p.consistency >= hc.phase_recommendation_consistency_at
            ):
                label = p.phase.replace("_", " ")
                result.append(
                    HormonalRecommendation(
                        kind="phase-specific",
                        priority="medium",
                        title=f"Optimize {label} phase",
                        message=f"Consistent intense symptoms during {label} phase",
                        actions=text.actions_for(p.phase),
                        phase=p.phase,
                    )
                )
        return result

    def _insights(self, patterns: list[HormonalPhasePattern]) -> list[str]:
        hc = self._hc
        insights = []
        for p in patterns:
            label = p.phase.replace("_", " ")
            if p.average_correlation >= hc.high_correlation_insight_at:
                insights.append(
                    f"Your symptoms strongly correlate with expected {label} hormonal changes"
                )
            if p.average_intensity >= hc.high_intensity_insight_at:
                insights.append(f"You experience intense symptoms during the {label} phase")
            if p.consistency >= hc.high_consistency_insight_at:
                insights.append(f"Your {label} symptoms are very consistent across cycles")
            if p.dominant_hormone.hormone != "none":
                insights.append(
                    f"{p.dominant_hormone.hormone} appears dominant during your {label} phase"
                )
        return insights

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def expected_phase(
        self,
        target_date: date,
        cycles: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation] = (),
    ) -> ExpectedPhase | None:
        """Project the phase and typical activity for ``target_date``.

        The cycle day is counted from the latest period start and wraps at
        the mean plausible cycle length.

        Returns:
            ExpectedPhase, or None when no cycle has been logged.
        """
        ordered = sort_cycles(cycles)
        if not ordered:
            return None

        bounds = self._config.intervals
        reference = self._config.correlation.reference_cycle_length
        intervals = cycle_intervals(ordered, bounds.min_plausible_days, bounds.max_plausible_days)
        avg_length = int(round_half_up(statistics.fmean(intervals))) if intervals else reference

        days_since = (target_date - ordered[-1].start_date).days
        day = days_since % avg_length + 1
        phase = self.phase_for_day(day, avg_length)

        projection = ExpectedPhase(date=target_date, cycle_day=day, phase=phase)
        if symptoms:
            pattern = self.analyze(ordered, symptoms).patterns.get(phase)
            if pattern is not None:
                projection.expected_activity = pattern.hormonal_profile
                projection.expected_symptoms = list(pattern.common_symptoms)
                projection.confidence = pattern.consistency
        return projection
