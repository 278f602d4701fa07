"""Shared fixtures and record builders for cycle analytics engine tests."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, load_engine_config

# First period start used by the builders
TEST_START = date(2025, 1, 6)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_cycle(
    start: date,
    bleed_days: int | None = 5,
    flow: str = "medium",
    record_id: str | None = None,
) -> CycleRecord:
    end = start + timedelta(days=bleed_days - 1) if bleed_days else None
    return CycleRecord(
        id=record_id or f"cycle-{start.isoformat()}",
        start_date=start,
        end_date=end,
        flow_intensity=flow,
    )


def build_cycles(
    lengths: list[int],
    start: date = TEST_START,
    bleed_days: int = 5,
) -> list[CycleRecord]:
    """``len(lengths) + 1`` period starts separated by ``lengths`` days.

    Every period but the last has a logged end date.
    """
    cycles = []
    current = start
    for length in lengths:
        cycles.append(make_cycle(current, bleed_days))
        current += timedelta(days=length)
    cycles.append(make_cycle(current, bleed_days=None))
    return cycles


def make_symptom(
    day: date,
    symptom_type: str,
    severity: str = "mild",
) -> SymptomObservation:
    return SymptomObservation(
        id=f"{symptom_type}-{day.isoformat()}",
        symptom_type=symptom_type,
        date=day,
        severity=severity,
    )


def on_cycle_day(cycle: CycleRecord, cycle_day: int, symptom_type: str, severity: str = "mild"):
    """Symptom logged on the given 1-indexed day of ``cycle``."""
    return make_symptom(cycle.start_date + timedelta(days=cycle_day - 1), symptom_type, severity)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real engine config for tests."""
    return load_engine_config()


@pytest.fixture
def regular_cycles() -> list[CycleRecord]:
    """Six period starts exactly 28 days apart."""
    return build_cycles([28] * 5)


@pytest.fixture
def missed_period_cycles() -> list[CycleRecord]:
    """Cycle lengths 28, 28, 28, 45, 28, 28."""
    return build_cycles([28, 28, 28, 45, 28, 28])


@pytest.fixture
def cramps_history(regular_cycles: list[CycleRecord]) -> list[SymptomObservation]:
    """Cramps on cycle day 2 in five of the six cycles."""
    return [
        on_cycle_day(cycle, 2, "cramps", "moderate") for cycle in regular_cycles[:5]
    ]
