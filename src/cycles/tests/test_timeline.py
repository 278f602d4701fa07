"""Tests for cycle ordering, interval derivation, and cycle membership."""

from __future__ import annotations

from datetime import date, timedelta

from src.cycles.tests.conftest import TEST_START, build_cycles, make_cycle
from src.cycles.timeline import (
    actual_length,
    cycle_containing,
    cycle_day,
    cycle_intervals,
    cycle_lengths,
    sort_cycles,
)


class TestIntervals:
    def test_sort_cycles_reorders_without_mutating(self) -> None:
        cycles = build_cycles([28, 30])
        shuffled = [cycles[2], cycles[0], cycles[1]]
        assert sort_cycles(shuffled) == cycles
        assert shuffled[0] is cycles[2]

    def test_intervals_between_starts(self) -> None:
        assert cycle_intervals(build_cycles([28, 30, 27])) == [28, 30, 27]

    def test_implausible_intervals_dropped(self) -> None:
        cycles = [
            make_cycle(TEST_START),
            make_cycle(TEST_START + timedelta(days=5)),  # duplicate entry
            make_cycle(TEST_START + timedelta(days=33)),
            make_cycle(TEST_START + timedelta(days=183)),  # gap in logging
        ]
        assert cycle_intervals(cycles) == [28]

    def test_cycle_lengths_keep_index_and_start(self) -> None:
        cycles = build_cycles([28, 45])
        lengths = cycle_lengths(cycles)
        assert [(c.cycle_index, c.length) for c in lengths] == [(0, 28), (1, 45)]
        assert lengths[1].start_date == cycles[1].start_date

    def test_no_intervals_for_single_cycle(self) -> None:
        assert cycle_intervals([make_cycle(TEST_START)]) == []


class TestCycleContaining:
    def test_day_within_closed_cycle(self) -> None:
        cycles = build_cycles([28, 28])
        assert cycle_containing(TEST_START, cycles) == 0
        assert cycle_containing(TEST_START + timedelta(days=27), cycles) == 0
        assert cycle_containing(TEST_START + timedelta(days=28), cycles) == 1

    def test_day_before_first_cycle(self) -> None:
        cycles = build_cycles([28])
        assert cycle_containing(TEST_START - timedelta(days=1), cycles) is None

    def test_open_cycle_horizon(self) -> None:
        cycles = build_cycles([28])
        last_start = cycles[-1].start_date
        assert cycle_containing(last_start + timedelta(days=44), cycles) == 1
        assert cycle_containing(last_start + timedelta(days=45), cycles) is None

    def test_open_cycle_extends_through_end_date(self) -> None:
        last = make_cycle(date(2025, 3, 1), bleed_days=50)
        assert cycle_containing(date(2025, 4, 19), [last]) == 0
        assert cycle_containing(date(2025, 4, 20), [last]) is None

    def test_empty_history(self) -> None:
        assert cycle_containing(TEST_START, []) is None


class TestCycleDay:
    def test_first_day_is_one(self) -> None:
        cycle = make_cycle(TEST_START)
        assert cycle_day(TEST_START, cycle) == 1
        assert cycle_day(TEST_START + timedelta(days=13), cycle) == 14

    def test_actual_length(self) -> None:
        cycles = build_cycles([31])
        assert actual_length(cycles, 0) == 31
        assert actual_length(cycles, 1) == 28
        assert actual_length(cycles, 1, default=30) == 30
