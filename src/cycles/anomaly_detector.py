"""Cycle-length anomaly detection and risk assessment.

Deliberately uses the classical mean and standard deviation rather than the
robust estimator: the point here is to be sensitive to the outliers the
predictor is built to ignore.

Flags per cycle:
- unusual-length: |z| > 2 (high when |z| > 3)
- missed-period:  length of 45 days or more (always high)
- short-cycle:    length < 21 days (high when < 18)

A cycle can carry more than one flag.
"""

from __future__ import annotations

import calendar
import logging
import statistics
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from src.cycles.base import CycleRecord
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.robust_estimator import round_half_up
from src.cycles.timeline import CycleLength, cycle_lengths, sort_cycles

logger = logging.getLogger("cyclesense.cycles.anomaly_detector")

_RECOMMENDATIONS = {
    "missed-period": {
        "category": "medical",
        "priority": "high",
        "message": "Consider consulting a healthcare provider about missed periods.",
        "action": "Schedule appointment",
    },
    "short-cycle": {
        "category": "lifestyle",
        "priority": "medium",
        "message": "Consider stress management and adequate sleep.",
        "action": "Review lifestyle factors",
    },
    "unusual-length": {
        "category": "tracking",
        "priority": "medium",
        "message": "Continue tracking to monitor cycle length variations.",
        "action": "Monitor closely",
    },
}


@dataclass(frozen=True)
class AnomalyRecord:
    """One flagged cycle.

    Attributes:
        cycle_index: Index of the cycle in chronological order.
        kind:        'unusual-length', 'missed-period', or 'short-cycle'.
        length:      Cycle length in days.
        severity:    'moderate' or 'high'.
        date:        Start date of the flagged cycle.
        z_score:     |z| of the length against the history.
    """

    cycle_index: int
    kind: str
    length: int
    severity: str
    date: date
    z_score: float | None = None


@dataclass(frozen=True)
class Recommendation:
    """Follow-up suggestion for an anomaly kind."""

    kind: str
    category: str
    priority: str
    message: str
    action: str


@dataclass
class AnomalyReport:
    """Anomalies across a cycle history and the overall risk level.

    Attributes:
        anomalies:       Flags in chronological order.
        risk_level:      'low', 'moderate', 'high', or 'insufficient-data'.
        mean_length:     Classical mean cycle length.
        std_length:      Population standard deviation of cycle lengths.
        recommendations: One entry per anomaly kind present.
    """

    anomalies: list[AnomalyRecord] = field(default_factory=list)
    risk_level: str = "insufficient-data"
    mean_length: float | None = None
    std_length: float | None = None
    recommendations: list[Recommendation] = field(default_factory=list)

    @property
    def high_severity_count(self) -> int:
        return sum(1 for a in self.anomalies if a.severity == "high")


def _months_before(day: date, months: int) -> date:
    """Same calendar day ``months`` earlier, clamped to the month's end."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class AnomalyDetector:
    """Flag irregular, missed, or abnormally short cycles.

    Usage::

        detector = AnomalyDetector()
        report = detector.detect(cycles, as_of=date(2026, 3, 1))
        print(report.risk_level, len(report.anomalies))
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()

    @property
    def _ac(self):
        return self._config.anomaly

    def detect(
        self,
        cycles: Sequence[CycleRecord],
        as_of: date | None = None,
    ) -> AnomalyReport:
        """Detect anomalous cycle lengths.

        Args:
            cycles: Cycle records in any order.
            as_of:  Reference date for the "recent anomalies" window.  Defaults
                    to the latest period start so results never depend on the
                    clock.

        Returns:
            AnomalyReport; ``insufficient-data`` below the minimum history.
        """
        ac = self._ac
        ordered = sort_cycles(cycles)
        if len(ordered) < ac.min_cycles:
            logger.info(
                "Insufficient cycles for anomaly detection: %d (need %d)",
                len(ordered), ac.min_cycles,
            )
            return AnomalyReport()

        bounds = self._config.intervals
        lengths = cycle_lengths(ordered, bounds.min_plausible_days, bounds.max_plausible_days)
        if not lengths:
            return AnomalyReport()

        values = [c.length for c in lengths]
        mean = statistics.fmean(values)
        std = statistics.pstdev(values)

        anomalies: list[AnomalyRecord] = []
        for entry in lengths:
            anomalies.extend(self._flag(entry, mean, std))

        reference = as_of or ordered[-1].start_date
        report = AnomalyReport(
            anomalies=anomalies,
            risk_level=self.risk_level(anomalies, reference),
            mean_length=round_half_up(mean, 1),
            std_length=round_half_up(std, 1),
            recommendations=self.recommendations(anomalies),
        )
        if anomalies:
            logger.debug(
                "Flagged %d anomalies (%d high) → risk %s",
                len(anomalies), report.high_severity_count, report.risk_level,
            )
        return report

    def _flag(self, entry: CycleLength, mean: float, std: float) -> list[AnomalyRecord]:
        ac = self._ac
        flags: list[AnomalyRecord] = []
        z = abs(entry.length - mean) / std if std > 0 else None

        if z is not None and z > ac.z_score_threshold:
            flags.append(
                AnomalyRecord(
                    cycle_index=entry.cycle_index,
                    kind="unusual-length",
                    length=entry.length,
                    severity="high" if z > ac.z_score_high else "moderate",
                    date=entry.start_date,
                    z_score=round_half_up(z, 2),
                )
            )
        if entry.length >= ac.missed_period_days:
            flags.append(
                AnomalyRecord(
                    cycle_index=entry.cycle_index,
                    kind="missed-period",
                    length=entry.length,
                    severity="high",
                    date=entry.start_date,
                    z_score=round_half_up(z, 2) if z is not None else None,
                )
            )
        if entry.length < ac.short_cycle_days:
            flags.append(
                AnomalyRecord(
                    cycle_index=entry.cycle_index,
                    kind="short-cycle",
                    length=entry.length,
                    severity="high" if entry.length < ac.very_short_cycle_days else "moderate",
                    date=entry.start_date,
                    z_score=round_half_up(z, 2) if z is not None else None,
                )
            )
        return flags

    def risk_level(self, anomalies: Sequence[AnomalyRecord], reference: date) -> str:
        """Overall risk from severity counts and how recent the flags are."""
        ac = self._ac
        window_start = _months_before(reference, ac.recent_window_months)
        high = sum(1 for a in anomalies if a.severity == "high")
        recent = sum(1 for a in anomalies if a.date >= window_start)

        if high >= ac.high_risk_high_severity or recent >= ac.high_risk_recent:
            return "high"
        if high >= ac.moderate_risk_high_severity or recent >= ac.moderate_risk_recent:
            return "moderate"
        return "low"

    @staticmethod
    def recommendations(anomalies: Sequence[AnomalyRecord]) -> list[Recommendation]:
        """One recommendation per distinct anomaly kind, in first-seen order."""
        seen: list[str] = []
        for anomaly in anomalies:
            if anomaly.kind not in seen:
                seen.append(anomaly.kind)
        return [Recommendation(kind=kind, **_RECOMMENDATIONS[kind]) for kind in seen]

