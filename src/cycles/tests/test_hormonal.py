"""Tests for hormonal-phase inference from symptom patterns."""

from __future__ import annotations

import dataclasses
from datetime import timedelta

import pytest

from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, SymptomHormoneEntry
from src.cycles.hormonal_patterns import HormonalInferenceLayer, HormonalProfile, PhaseLevel
from src.cycles.symptom_correlator import SymptomOccurrence
from src.cycles.tests.conftest import TEST_START, build_cycles, make_cycle, make_symptom, on_cycle_day


@pytest.fixture
def mixed_history(regular_cycles: list[CycleRecord]) -> list[SymptomObservation]:
    """Moderate cramps on day 2 of five cycles, severe fatigue on day 24 of four."""
    cramps = [on_cycle_day(c, 2, "cramps", "moderate") for c in regular_cycles[:5]]
    fatigue = [on_cycle_day(c, 24, "fatigue", "severe") for c in regular_cycles[:4]]
    return cramps + fatigue


def occurrences(*pairs: tuple[str, str]) -> list[SymptomOccurrence]:
    return [
        SymptomOccurrence(
            observation=make_symptom(TEST_START, tag, severity),
            cycle_index=0,
            cycle_day=1,
            cycle_length=28,
        )
        for tag, severity in pairs
    ]


class TestPhaseGeometry:
    def test_reference_cycle_is_unscaled(self, engine_config: EngineConfig) -> None:
        days = HormonalInferenceLayer(engine_config).scaled_phase_days(28)
        assert days["menstrual"] == {1, 2, 3, 4, 5}
        assert days["ovulatory"] == {14, 15, 16}
        assert days["luteal_late"] == set(range(22, 29))

    def test_long_cycle_scaling(self, engine_config: EngineConfig) -> None:
        days = HormonalInferenceLayer(engine_config).scaled_phase_days(35)
        assert days["menstrual"] == {1, 2, 3, 4, 5, 6}
        assert days["ovulatory"] == {17, 18, 19, 20}
        assert days["luteal_late"] == set(range(27, 36))

    def test_short_cycle_scaling_stays_within_length(self, engine_config: EngineConfig) -> None:
        days = HormonalInferenceLayer(engine_config).scaled_phase_days(21)
        assert days["luteal_late"] == {17, 18, 19, 20, 21}
        assert days["luteal_early"] == {13, 14, 15, 16}

    @pytest.mark.parametrize("length", [21, 28, 35, 42])
    def test_every_day_in_exactly_one_phase(self, engine_config: EngineConfig, length: int) -> None:
        layer = HormonalInferenceLayer(engine_config)
        days = layer.scaled_phase_days(length)
        for day in range(1, length + 1):
            assert sum(day in phase_days for phase_days in days.values()) == 1
            assert layer.phase_for_day(day, length) != "unknown"

    def test_long_cycles_keep_first_day_symptoms(self, engine_config: EngineConfig) -> None:
        cycles = build_cycles([42] * 5)
        symptoms = [on_cycle_day(c, 1, "cramps", "severe") for c in cycles[:5]]
        analysis = HormonalInferenceLayer(engine_config).analyze(cycles, symptoms)
        assert list(analysis.patterns) == ["menstrual"]
        assert analysis.total_occurrences == 5
        assert analysis.patterns["menstrual"].consistency == 83

    def test_phase_for_day(self, engine_config: EngineConfig) -> None:
        layer = HormonalInferenceLayer(engine_config)
        assert layer.phase_for_day(2, 28) == "menstrual"
        assert layer.phase_for_day(12, 28) == "follicular_late"
        assert layer.phase_for_day(29, 28) == "unknown"


class TestActivity:
    def test_single_driver_weighted_by_severity(self, engine_config: EngineConfig) -> None:
        profile = HormonalInferenceLayer(engine_config).hormonal_activity(
            occurrences(("fatigue", "severe"))
        )
        assert profile.progesterone == 3.0
        assert profile.estrogen == 0.0

    def test_normalized_by_symptom_count(self, engine_config: EngineConfig) -> None:
        profile = HormonalInferenceLayer(engine_config).hormonal_activity(
            occurrences(("mood-swings", "severe"), ("cramps", "mild"))
        )
        assert profile.estrogen == pytest.approx(1.5)
        assert profile.overall_intensity == pytest.approx(0.25)

    def test_multi_driver_splits_weight(self, engine_config: EngineConfig) -> None:
        profile = HormonalInferenceLayer(engine_config).hormonal_activity(
            occurrences(("brain-fog", "moderate"))
        )
        assert profile.estrogen == pytest.approx(1.0)
        assert profile.progesterone == pytest.approx(1.0)

    def test_unmapped_symptom_still_counts(self, engine_config: EngineConfig) -> None:
        profile = HormonalInferenceLayer(engine_config).hormonal_activity(
            occurrences(("fatigue", "severe"), ("dark-circles", "mild"))
        )
        assert profile.progesterone == pytest.approx(1.5)

    def test_intensity_and_correlation(self, engine_config: EngineConfig) -> None:
        layer = HormonalInferenceLayer(engine_config)
        occs = occurrences(("mood-swings", "severe"), ("cramps", "mild"))
        assert layer.intensity(occs) == pytest.approx(2.0)
        assert layer.correlation_score(occs, "ovulatory") == 50
        assert layer.correlation_score(occs, "luteal_late") == 0
        assert layer.correlation_score([], "ovulatory") == 0


class TestDominance:
    @pytest.mark.parametrize(
        "profile, hormone, tier",
        [
            (HormonalProfile(progesterone=2.5), "progesterone", "high"),
            (HormonalProfile(estrogen=1.6, progesterone=1.2), "estrogen", "medium"),
            (HormonalProfile(estrogen=1.2), "estrogen", "low"),
            (HormonalProfile(estrogen=1.0, progesterone=1.0), "estrogen", "low"),
            (HormonalProfile(estrogen=0.8, overall_intensity=3.0), "none", "none"),
        ],
    )
    def test_tiers(
        self, engine_config: EngineConfig, profile: HormonalProfile, hormone: str, tier: str
    ) -> None:
        dominant = HormonalInferenceLayer(engine_config).dominant_hormone(profile)
        assert dominant.hormone == hormone
        assert dominant.confidence == tier


class TestAnalyze:
    def test_phase_patterns(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        mixed_history: list[SymptomObservation],
    ) -> None:
        analysis = HormonalInferenceLayer(engine_config).analyze(regular_cycles, mixed_history)

        assert list(analysis.patterns) == ["menstrual", "luteal_late"]

        menstrual = analysis.patterns["menstrual"]
        assert menstrual.occurrences == 5
        assert menstrual.consistency == 83
        assert menstrual.average_intensity == pytest.approx(2.0)
        assert menstrual.average_correlation == 100
        assert menstrual.hormonal_profile.overall_intensity == pytest.approx(1.0)
        assert menstrual.dominant_hormone.hormone == "none"
        assert menstrual.common_symptoms[0].symptom_type == "cramps"
        assert menstrual.common_symptoms[0].percentage == 100

        luteal = analysis.patterns["luteal_late"]
        assert luteal.occurrences == 4
        assert luteal.consistency == 67
        assert luteal.dominant_hormone.hormone == "progesterone"
        assert luteal.dominant_hormone.level == pytest.approx(3.0)
        assert luteal.dominant_hormone.confidence == "high"

    def test_overall_confidence_and_profile(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        mixed_history: list[SymptomObservation],
    ) -> None:
        analysis = HormonalInferenceLayer(engine_config).analyze(regular_cycles, mixed_history)
        assert analysis.total_occurrences == 9
        assert analysis.mean_correlation == pytest.approx(100.0)
        assert analysis.confidence == "medium"
        assert analysis.overall_pattern == "moderate-sensitivity"
        assert analysis.dominant_phases == ["luteal_late", "menstrual"]
        assert analysis.table_version == "2024.1"

    def test_insights(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        mixed_history: list[SymptomObservation],
    ) -> None:
        insights = HormonalInferenceLayer(engine_config).analyze(regular_cycles, mixed_history).insights
        assert "Your menstrual symptoms are very consistent across cycles" in insights
        assert "progesterone appears dominant during your luteal late phase" in insights
        assert "You experience intense symptoms during the luteal late phase" in insights

    def test_recommendations(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        mixed_history: list[SymptomObservation],
    ) -> None:
        recs = HormonalInferenceLayer(engine_config).analyze(regular_cycles, mixed_history).recommendations

        assert [(r.kind, r.phase) for r in recs] == [
            ("general", None),
            ("phase-specific", "luteal_late"),
        ]
        general, luteal = recs
        assert general.priority == "high"
        assert general.title == "High Hormonal Sensitivity Detected"
        assert len(general.actions) == 4
        assert luteal.priority == "medium"
        assert luteal.title == "Optimize luteal late phase"
        assert luteal.actions[0] == "Prioritize stress management"

    def test_mild_history_has_no_recommendations(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        cramps_history: list[SymptomObservation],
    ) -> None:
        analysis = HormonalInferenceLayer(engine_config).analyze(regular_cycles, cramps_history)
        assert analysis.patterns["menstrual"].average_intensity == pytest.approx(2.0)
        assert analysis.recommendations == []

    def test_hormone_sensitivity(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        mixed_history: list[SymptomObservation],
    ) -> None:
        sensitivity = HormonalInferenceLayer(engine_config).analyze(
            regular_cycles, mixed_history
        ).hormone_sensitivity

        assert list(sensitivity) == ["estrogen", "progesterone", "fsh", "lh", "overall_intensity"]
        assert sensitivity["progesterone"] == [
            PhaseLevel("menstrual", 0.0),
            PhaseLevel("luteal_late", 3.0),
        ]
        assert sensitivity["overall_intensity"] == [
            PhaseLevel("menstrual", 1.0),
            PhaseLevel("luteal_late", 0.0),
        ]

    def test_high_confidence_with_rich_history(self, engine_config: EngineConfig) -> None:
        cycles = build_cycles([28] * 7)
        symptoms = [on_cycle_day(c, 2, "cramps") for c in cycles[:7]]
        symptoms += [on_cycle_day(c, 25, "irritability") for c in cycles[:7]]
        analysis = HormonalInferenceLayer(engine_config).analyze(cycles, symptoms)
        assert analysis.total_occurrences == 14
        assert analysis.confidence == "high"

    def test_single_cycle_is_low_confidence(self, engine_config: EngineConfig) -> None:
        cycle = make_cycle(TEST_START)
        analysis = HormonalInferenceLayer(engine_config).analyze(
            [cycle], [on_cycle_day(cycle, 2, "cramps")]
        )
        assert analysis.patterns == {}
        assert analysis.confidence == "low"

    def test_no_symptoms(self, engine_config: EngineConfig, regular_cycles: list[CycleRecord]) -> None:
        analysis = HormonalInferenceLayer(engine_config).analyze(regular_cycles, [])
        assert analysis.patterns == {}
        assert analysis.overall_pattern == "insufficient-data"

    def test_injected_table(self, engine_config: EngineConfig, regular_cycles: list[CycleRecord]) -> None:
        """A custom table can route a symptom to LH without code changes."""
        table = engine_config.hormone_map.with_entries(
            "custom", {"dark-circles": SymptomHormoneEntry("lh", ("luteal_late",))}
        )
        config = dataclasses.replace(engine_config, hormone_map=table)
        symptoms = [on_cycle_day(c, 24, "dark-circles", "severe") for c in regular_cycles[:3]]

        analysis = HormonalInferenceLayer(config).analyze(regular_cycles, symptoms)
        luteal = analysis.patterns["luteal_late"]
        assert luteal.hormonal_profile.lh == pytest.approx(3.0)
        assert luteal.dominant_hormone.hormone == "lh"
        assert luteal.average_correlation == 100
        assert analysis.table_version == "custom"

    def test_deterministic(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        mixed_history: list[SymptomObservation],
    ) -> None:
        layer = HormonalInferenceLayer(engine_config)
        assert layer.analyze(regular_cycles, mixed_history) == layer.analyze(
            regular_cycles, list(reversed(mixed_history))
        )


class TestExpectedPhase:
    def test_projects_phase_from_last_start(
        self,
        engine_config: EngineConfig,
        regular_cycles: list[CycleRecord],
        mixed_history: list[SymptomObservation],
    ) -> None:
        layer = HormonalInferenceLayer(engine_config)
        last_start = regular_cycles[-1].start_date

        projection = layer.expected_phase(last_start + timedelta(days=1), regular_cycles, mixed_history)
        assert projection.cycle_day == 2
        assert projection.phase == "menstrual"
        assert projection.confidence == 83
        assert projection.expected_symptoms[0].symptom_type == "cramps"

        later = layer.expected_phase(last_start + timedelta(days=23), regular_cycles, mixed_history)
        assert later.phase == "luteal_late"
        assert later.expected_activity.progesterone == pytest.approx(3.0)

    def test_wraps_at_average_length(
        self, engine_config: EngineConfig, regular_cycles: list[CycleRecord]
    ) -> None:
        layer = HormonalInferenceLayer(engine_config)
        last_start = regular_cycles[-1].start_date
        projection = layer.expected_phase(last_start + timedelta(days=30), regular_cycles)
        assert projection.cycle_day == 3
        assert projection.phase == "menstrual"
        assert projection.expected_activity is None

    def test_no_cycles(self, engine_config: EngineConfig) -> None:
        assert HormonalInferenceLayer(engine_config).expected_phase(TEST_START, []) is None
