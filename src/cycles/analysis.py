"""One-call analysis over a user's full tracking history.

Runs every component of the engine against the same config and the same
sorted inputs and gathers the results into a single CycleAnalysis record
for display or export layers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from src.cycles.anomaly_detector import AnomalyDetector, AnomalyReport
from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.health_score import (
    CycleVariability,
    FlowConsistency,
    HealthScore,
    HealthScoreAggregator,
    cycle_variability,
    flow_consistency,
)
from src.cycles.hormonal_patterns import HormonalAnalysis, HormonalInferenceLayer
from src.cycles.prediction import PredictionEngine, PredictionResult
from src.cycles.symptom_correlator import CorrelationAnalyzer, CorrelationReport
from src.cycles.timeline import sort_cycles

logger = logging.getLogger("cyclesense.cycles.analysis")


@dataclass
class CycleAnalysis:
    """Everything the engine derives from one history snapshot.

    Attributes:
        prediction:     Next period, ovulation, fertile window, confidence.
        anomalies:      Flagged cycles and risk level.
        correlations:   Per-symptom timing statistics.
        hormonal:       Per-phase hormonal patterns.
        health:         Aggregated health score.
        variability:    Cycle-length variability (None without lengths).
        flow:           Flow intensity consistency (None without cycles).
        config_version: Engine config version used.
        warnings:       Plain-language notes on insufficient or unplaced data.
    """

    prediction: PredictionResult
    anomalies: AnomalyReport
    correlations: CorrelationReport
    hormonal: HormonalAnalysis
    health: HealthScore
    variability: CycleVariability | None = None
    flow: FlowConsistency | None = None
    config_version: str = ""
    warnings: list[str] = field(default_factory=list)


class CycleAnalysisEngine:
    """Facade over the prediction, anomaly, correlation, hormonal and health components.

    Usage::

        engine = CycleAnalysisEngine()
        analysis = engine.analyze(cycles, symptoms, as_of=date.today())
        analysis.prediction.next_period_date
        analysis.anomalies.risk_level
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()
        self.prediction = PredictionEngine(self._config)
        self.anomaly_detector = AnomalyDetector(self._config)
        self.correlator = CorrelationAnalyzer(self._config)
        self.hormonal = HormonalInferenceLayer(self._config)
        self.health = HealthScoreAggregator(self._config)

    def analyze(
        self,
        cycles: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation] = (),
        as_of: date | None = None,
    ) -> CycleAnalysis:
        """Run the full analysis.

        Args:
            cycles:   Cycle records in any order.
            symptoms: Symptom observations in any order.
            as_of:    Reference date for the in-progress check and the recent
                      anomaly window.  The engine never reads the clock.
        """
        ordered = sort_cycles(cycles)
        symptoms = list(symptoms)

        anomalies = self.anomaly_detector.detect(ordered, as_of=as_of)
        analysis = CycleAnalysis(
            prediction=self.prediction.predict(ordered, symptoms, as_of=as_of),
            anomalies=anomalies,
            correlations=self.correlator.analyze(ordered, symptoms),
            hormonal=self.hormonal.analyze(ordered, symptoms),
            health=self.health.score(ordered, anomalies, symptoms),
            variability=cycle_variability(ordered, self._config),
            flow=flow_consistency(ordered, self._config),
            config_version=self._config.version,
        )

        if analysis.prediction.insufficient_data:
            analysis.warnings.append("Not enough cycle history for a personalised prediction")
        if anomalies.risk_level == "insufficient-data":
            analysis.warnings.append(
                f"At least {self._config.anomaly.min_cycles} cycles are needed for anomaly detection"
            )
        if analysis.correlations.unplaced:
            analysis.warnings.append(
                f"{analysis.correlations.unplaced} symptom observation(s) fall outside every logged cycle"
            )

        logger.info(
            "Analysed %d cycles, %d symptoms: next period %s, risk %s, health %d",
            len(ordered),
            len(symptoms),
            analysis.prediction.next_period_date,
            anomalies.risk_level,
            analysis.health.score,
        )
        return analysis
