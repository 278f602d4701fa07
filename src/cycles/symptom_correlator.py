"""Symptom correlation engine for menstrual cycle tracking.

Places each logged symptom in the cycle that contains it and summarises, per
symptom type:
- how many cycles it showed up in
- the cycle day it typically appears on, and the phase that day falls in
- how tightly its timing clusters ("consistent", "variable", "irregular")

Symptoms seen in at least half of all cycles are "predictable" and feed the
symptom forecast of the prediction engine.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Sequence

from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.robust_estimator import round_half_up
from src.cycles.timeline import actual_length, cycle_containing, cycle_day, sort_cycles
from src.models.tracking import CyclePhase

logger = logging.getLogger("cyclesense.cycles.symptom_correlator")

# Phases in order
PHASES = [p.value for p in CyclePhase]


@dataclass(frozen=True)
class SymptomOccurrence:
    """A symptom observation placed within its cycle.

    Attributes:
        observation:  The original observation.
        cycle_index:  Index of the containing cycle (chronological order).
        cycle_day:    1-indexed day within that cycle.
        cycle_length: Observed length of that cycle (default when still open).
    """

    observation: SymptomObservation
    cycle_index: int
    cycle_day: int
    cycle_length: int


@dataclass
class SymptomCorrelation:
    """Timing statistics for one symptom type across cycles.

    Attributes:
        symptom_type:       Symptom tag.
        frequency:          Number of distinct cycles it was logged in.
        occurrences:        Total observations placed in a cycle.
        average_cycle_day:  Mean cycle day across occurrences (one decimal).
        phase:              Phase the average day falls in.
        pattern_stability:  'consistent', 'variable', 'irregular', or
                            'insufficient-data' for a single occurrence.
        typical_severity:   Most frequently logged severity.
        predictable:        Seen in at least half of all cycles.
        insights:           Short human-readable observations.
    """

    symptom_type: str
    frequency: int
    occurrences: int
    average_cycle_day: float
    phase: str
    pattern_stability: str
    typical_severity: str
    predictable: bool = False
    insights: list[str] = field(default_factory=list)


@dataclass
class CorrelationReport:
    """All per-symptom correlations for a cycle history.

    Attributes:
        cycle_count:   Cycles in the history.
        correlations:  One entry per symptom type, most frequent first.
        unplaced:      Observations outside every cycle span.
    """

    cycle_count: int = 0
    correlations: list[SymptomCorrelation] = field(default_factory=list)
    unplaced: int = 0

    @property
    def predictable(self) -> list[SymptomCorrelation]:
        return [c for c in self.correlations if c.predictable]

    def get(self, symptom_type: str) -> SymptomCorrelation | None:
        for corr in self.correlations:
            if corr.symptom_type == symptom_type:
                return corr
        return None


class CorrelationAnalyzer:
    """Correlate logged symptoms with cycle day and phase.

    Usage::

        analyzer = CorrelationAnalyzer()
        report = analyzer.analyze(cycles, symptoms)
        for corr in report.correlations:
            print(corr.symptom_type, corr.phase, corr.frequency)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()

    @property
    def _cc(self):
        return self._config.correlation

    def place_symptoms(
        self,
        cycles: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation],
    ) -> dict[int, list[SymptomOccurrence]]:
        """Group observations by containing cycle.

        Args:
            cycles:   Cycles sorted by start date.
            symptoms: Observations in any order.

        Returns:
            Dict of cycle index → occurrences sorted by date then tag.
            Observations outside every cycle are left out.
        """
        cc = self._cc
        grouped: dict[int, list[SymptomOccurrence]] = defaultdict(list)
        for obs in symptoms:
            idx = cycle_containing(obs.date, cycles, cc.open_cycle_horizon_days)
            if idx is None:
                continue
            cycle = cycles[idx]
            grouped[idx].append(
                SymptomOccurrence(
                    observation=obs,
                    cycle_index=idx,
                    cycle_day=cycle_day(obs.date, cycle),
                    cycle_length=actual_length(cycles, idx, cc.reference_cycle_length),
                )
            )
        for occurrences in grouped.values():
            occurrences.sort(key=lambda o: (o.observation.date, o.observation.symptom_type))
        return dict(sorted(grouped.items()))

    def phase_for_day(self, day: float, cycle_length: float | None = None) -> str:
        """Map a cycle day to one of the four basic phases.

        The day thresholds are defined for a 28-day cycle and scaled by
        ``cycle_length / 28``.
        """
        cc = self._cc
        ratio = (cycle_length or cc.reference_cycle_length) / cc.reference_cycle_length
        if day <= round_half_up(cc.menstrual_until_day * ratio):
            return "menstrual"
        if day <= round_half_up(cc.follicular_until_day * ratio):
            return "follicular"
        if day <= round_half_up(cc.ovulatory_until_day * ratio):
            return "ovulatory"
        return "luteal"

    def analyze(
        self,
        cycles: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation],
    ) -> CorrelationReport:
        """Compute per-symptom frequency, timing, and phase.

        Args:
            cycles:   Cycle records in any order.
            symptoms: Symptom observations in any order.

        Returns:
            CorrelationReport; empty when there are no cycles or symptoms.
        """
        ordered = sort_cycles(cycles)
        report = CorrelationReport(cycle_count=len(ordered))
        if not ordered or not symptoms:
            logger.info(
                "Insufficient data for symptom correlation: %d cycles, %d symptoms",
                len(ordered), len(symptoms),
            )
            return report

        grouped = self.place_symptoms(ordered, symptoms)
        placed = sum(len(v) for v in grouped.values())
        report.unplaced = len(symptoms) - placed
        if report.unplaced:
            logger.debug("%d symptom observation(s) fall outside every cycle", report.unplaced)

        by_type: dict[str, list[SymptomOccurrence]] = defaultdict(list)
        for occurrences in grouped.values():
            for occ in occurrences:
                by_type[occ.observation.symptom_type].append(occ)

        for symptom_type, occurrences in by_type.items():
            report.correlations.append(
                self._correlate(symptom_type, occurrences, len(ordered))
            )

        report.correlations.sort(key=lambda c: (-c.frequency, c.symptom_type))
        return report

    def _correlate(
        self,
        symptom_type: str,
        occurrences: list[SymptomOccurrence],
        cycle_count: int,
    ) -> SymptomCorrelation:
        cc = self._cc
        days = [o.cycle_day for o in occurrences]
        frequency = len({o.cycle_index for o in occurrences})
        avg_day = statistics.fmean(days)
        avg_length = statistics.fmean(o.cycle_length for o in occurrences)
        phase = self.phase_for_day(avg_day, avg_length)

        corr = SymptomCorrelation(
            symptom_type=symptom_type,
            frequency=frequency,
            occurrences=len(occurrences),
            average_cycle_day=round_half_up(avg_day, 1),
            phase=phase,
            pattern_stability=self._stability(days),
            typical_severity=self._typical_severity(occurrences),
            predictable=frequency >= cc.predictable_frequency_ratio * cycle_count,
        )
        corr.insights = self._insights(corr, cycle_count)
        return corr

    def _stability(self, days: list[int]) -> str:
        if len(days) < 2:
            return "insufficient-data"
        spread = statistics.pstdev(days)
        if spread <= self._cc.consistent_max_stdev:
            return "consistent"
        if spread <= self._cc.variable_max_stdev:
            return "variable"
        return "irregular"

    def _typical_severity(self, occurrences: list[SymptomOccurrence]) -> str:
        """Most common severity; ties go to the more severe label."""
        weights = self._config.hormone_map
        counts = Counter(o.observation.severity for o in occurrences)
        return max(counts, key=lambda s: (counts[s], weights.severity_weight(s), s))

    def _insights(self, corr: SymptomCorrelation, cycle_count: int) -> list[str]:
        label = corr.symptom_type.replace("-", " ")
        insights = []
        if corr.frequency > cycle_count * self._cc.frequent_ratio:
            insights.append(
                f"{label} occurs frequently ({corr.frequency}/{cycle_count} cycles)"
            )
        if corr.phase == "menstrual":
            insights.append(f"{label} typically occurs during menstruation")
        elif corr.phase == "ovulatory":
            insights.append(f"{label} may be related to ovulation")
        if corr.pattern_stability == "consistent" and corr.frequency >= 2:
            insights.append(
                f"{label} reliably appears around cycle day {int(round_half_up(corr.average_cycle_day))}"
            )
        return insights
