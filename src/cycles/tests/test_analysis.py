"""End-to-end tests for the CycleAnalysisEngine facade."""

from __future__ import annotations

from datetime import timedelta

from src.cycles.analysis import CycleAnalysisEngine
from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig
from src.cycles.ingest import parse_cycle_records, parse_symptom_observations
from src.cycles.tests.conftest import TEST_START, make_cycle, make_symptom
from src.models.tracking import AnomalyKind, CyclePhase, RiskLevel


class TestCycleAnalysisEngine:
    def test_regular_history(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        cramps_history: list[SymptomObservation],
    ) -> None:
        analysis = CycleAnalysisEngine(engine_config).analyze(regular_cycles, cramps_history)

        assert analysis.prediction.predicted_length == 28
        assert analysis.anomalies.risk_level == "low"
        assert analysis.correlations.get("cramps").frequency == 5
        assert "menstrual" in analysis.hormonal.patterns
        assert analysis.health.score == 95
        assert analysis.health.category == "excellent"
        assert analysis.variability.consistency == "high"
        assert analysis.flow.pattern == "consistent"
        assert analysis.config_version == "1.0"
        assert analysis.warnings == []

    def test_missed_period_history(
        self, engine_config: EngineConfig, missed_period_cycles: list[CycleRecord]
    ) -> None:
        analysis = CycleAnalysisEngine(engine_config).analyze(missed_period_cycles)
        assert analysis.anomalies.risk_level == "moderate"
        assert analysis.health.score == 75
        assert analysis.health.factors.anomaly_risk == "elevated"

    def test_sparse_history_never_raises(self, engine_config: EngineConfig) -> None:
        analysis = CycleAnalysisEngine(engine_config).analyze([make_cycle(TEST_START)])

        assert analysis.prediction.confidence.next_period == 30
        assert analysis.prediction.historical_accuracy is None
        assert analysis.anomalies.risk_level == "insufficient-data"
        assert analysis.hormonal.confidence == "low"
        assert len(analysis.warnings) == 2

    def test_empty_history(self, engine_config: EngineConfig) -> None:
        analysis = CycleAnalysisEngine(engine_config).analyze([])

        assert analysis.prediction.next_period_date is None
        assert analysis.anomalies.risk_level == "insufficient-data"
        assert analysis.health.score == 85
        assert analysis.variability is None
        assert analysis.flow is None

    def test_unplaced_symptoms_reported(
        self, engine_config: EngineConfig, regular_cycles: list[CycleRecord]
    ) -> None:
        early = make_symptom(TEST_START - timedelta(days=10), "headache")
        analysis = CycleAnalysisEngine(engine_config).analyze(regular_cycles, [early])
        assert analysis.correlations.unplaced == 1
        assert any("outside every logged cycle" in w for w in analysis.warnings)

    def test_reference_date_reaches_prediction(
        self, engine_config: EngineConfig, regular_cycles: list[CycleRecord]
    ) -> None:
        as_of = regular_cycles[-1].start_date + timedelta(days=2)
        analysis = CycleAnalysisEngine(engine_config).analyze(regular_cycles, as_of=as_of)
        assert analysis.prediction.cycle_in_progress

    def test_deterministic(
        self,
        engine_config: EngineConfig,
        missed_period_cycles: list[CycleRecord],
        cramps_history: list[SymptomObservation],
    ) -> None:
        engine = CycleAnalysisEngine(engine_config)
        first = engine.analyze(missed_period_cycles, cramps_history)
        second = engine.analyze(list(reversed(missed_period_cycles)), cramps_history)
        assert first == second

    def test_from_raw_rows(self, engine_config: EngineConfig) -> None:
        """Rows straight from storage, one of them malformed."""
        cycles = parse_cycle_records(
            [
                {"id": "1", "startDate": "2025-01-06", "endDate": "2025-01-10"},
                {"id": "2", "startDate": "2025-02-03", "endDate": "2025-02-07"},
                {"id": "3", "startDate": "2025-03-03", "endDate": "2025-02-01"},
                {"id": "4", "startDate": "2025-03-31"},
            ]
        )
        symptoms = parse_symptom_observations(
            [{"id": "s1", "type": "cramps", "date": "2025-02-04", "severity": "moderate"}]
        )
        analysis = CycleAnalysisEngine(engine_config).analyze(cycles, symptoms)

        assert len(cycles) == 3
        assert analysis.prediction.intervals_used == 2
        assert analysis.correlations.get("cramps").average_cycle_day == 2.0


class TestOutputVocabulary:
    def test_labels_match_model_enums(
        self,
        engine_config: EngineConfig,
        missed_period_cycles: list[CycleRecord],
        cramps_history: list[SymptomObservation],
    ) -> None:
        analysis = CycleAnalysisEngine(engine_config).analyze(missed_period_cycles, cramps_history)

        assert RiskLevel(analysis.anomalies.risk_level) is RiskLevel.moderate
        assert {AnomalyKind(a.kind) for a in analysis.anomalies.anomalies} == {
            AnomalyKind.unusual_length,
            AnomalyKind.missed_period,
        }
        assert all(CyclePhase(c.phase) for c in analysis.correlations.correlations)
