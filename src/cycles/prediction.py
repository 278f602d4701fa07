"""Next-period, ovulation, and fertility-window prediction.

Builds on RobustEstimator:
- Next period:  last period start + robust center length
- Ovulation:    next period − luteal length (13/14/15 days bucketed by
                center length; the luteal phase varies far less than the
                follicular phase, so it is not fitted from data)
- Fertile window: ovulation − 5 days … ovulation + 1 day
- Confidence:   rewards low robust sigma and more recorded intervals
- Probability curve: discretized Gaussian over ±5 days around the
  predicted date, width taken from the estimator spread
- Historical accuracy: walk-forward backtest re-running the prediction on
  every history prefix

Nothing here reads the clock.  "Is the current period still going" needs a
reference date and is only evaluated when ``as_of`` is passed in.
"""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass, field
from datetime import date, timedelta
from statistics import NormalDist
from typing import Sequence

from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.robust_estimator import RobustEstimate, RobustEstimator, clamp, round_half_up
from src.cycles.symptom_correlator import CorrelationAnalyzer
from src.cycles.timeline import cycle_intervals, sort_cycles

logger = logging.getLogger("cyclesense.cycles.prediction")


@dataclass
class PredictionConfidence:
    """Confidence (0–100) in the next-period and ovulation dates."""

    next_period: int = 0
    ovulation: int = 0


@dataclass
class FertilityWindow:
    start: date | None = None
    end: date | None = None


@dataclass
class PredictionRange:
    earliest: date | None = None
    latest: date | None = None


@dataclass(frozen=True)
class ProbabilityPoint:
    """Probability that the period starts ``offset_days`` from the prediction."""

    offset_days: int
    probability: float
    date: date | None = None


@dataclass(frozen=True)
class SymptomForecast:
    """A recurring symptom projected onto the next cycle.

    Attributes:
        symptom_type:      Symptom tag.
        predicted_date:    Expected date in the next cycle.
        cycle_day:         Typical cycle day the symptom appears on.
        probability:       Share of past cycles it appeared in (0–100).
        expected_severity: Most frequently logged severity.
    """

    symptom_type: str
    predicted_date: date
    cycle_day: int
    probability: int
    expected_severity: str


@dataclass
class PredictionResult:
    """Prediction for the user's next cycle.

    Attributes:
        next_period_date:      Best estimate for the next period start.
        predicted_length:      Robust center cycle length in days.
        confidence:            Next-period and ovulation confidence (0–100).
        ovulation_date:        Estimated ovulation in the upcoming cycle.
        fertility_window:      Estimated fertile days around ovulation.
        cycle_length_variance: Std dev (days) of cleaned intervals around
                               the predicted length.
        spread:                Estimator spread driving the curve width.
        probability_curve:     11 points, offsets −5..+5, summing to 1.
        historical_accuracy:   Walk-forward hit rate (0–100) or None.
        prediction_range:      Predicted date ± spread (rounded up).
        luteal_phase_length:   Luteal days used for the ovulation estimate.
        typical_bleed_length:  Median logged bleed length (2–8 days).
        cycle_in_progress:     The latest period appears to be still going.
        cycles_used:           Cycle records considered.
        intervals_used:        Plausible intervals fed to the estimator.
        insufficient_data:     No usable interval; length is the default.
        symptom_forecast:      Recurring symptoms expected next cycle.
    """

    next_period_date: date | None = None
    predicted_length: int = 28
    confidence: PredictionConfidence = field(default_factory=PredictionConfidence)
    ovulation_date: date | None = None
    fertility_window: FertilityWindow = field(default_factory=FertilityWindow)
    cycle_length_variance: float = 0.0
    spread: float = 0.0
    probability_curve: list[ProbabilityPoint] = field(default_factory=list)
    historical_accuracy: int | None = None
    prediction_range: PredictionRange = field(default_factory=PredictionRange)
    luteal_phase_length: int | None = None
    typical_bleed_length: int | None = None
    cycle_in_progress: bool = False
    cycles_used: int = 0
    intervals_used: int = 0
    insufficient_data: bool = True
    symptom_forecast: list[SymptomForecast] = field(default_factory=list)


class PredictionEngine:
    """Predict the next period from logged period starts.

    Usage::

        engine = PredictionEngine()
        result = engine.predict(cycles, symptoms, as_of=date(2026, 3, 2))
        print(result.next_period_date, result.confidence.next_period)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()
        self._estimator = RobustEstimator(self._config)

    @property
    def _pc(self):
        return self._config.prediction

    def predict(
        self,
        cycles: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation] | None = None,
        as_of: date | None = None,
    ) -> PredictionResult:
        """Generate a prediction from historical cycle records.

        Args:
            cycles:   Cycle records in any order.
            symptoms: Symptom observations, used only for the symptom forecast.
            as_of:    Reference date for the "period still in progress" check.

        Returns:
            PredictionResult.  Empty input yields null dates, zero confidence
            and no accuracy instead of an error.
        """
        pc = self._pc
        ordered = sort_cycles(cycles)
        result = PredictionResult(cycles_used=len(ordered))
        result.probability_curve = self.probability_curve(0.0, None)

        if not ordered:
            logger.info("No cycles recorded; returning empty prediction")
            result.predicted_length = self._config.robust_estimator.default_cycle_length
            return result

        intervals = self._intervals(ordered)
        estimate = self._estimator.estimate(intervals)
        result.intervals_used = len(intervals)
        result.insufficient_data = estimate.insufficient_data
        result.predicted_length = estimate.center_length
        result.spread = estimate.spread
        result.cycle_length_variance = self._variance(estimate)

        last = ordered[-1]
        next_period = last.start_date + timedelta(days=estimate.center_length)
        result.next_period_date = next_period

        luteal = self.luteal_phase_length(estimate.center_length)
        ovulation = next_period - timedelta(days=luteal)
        result.luteal_phase_length = luteal
        result.ovulation_date = ovulation
        result.fertility_window = FertilityWindow(
            start=ovulation - timedelta(days=pc.fertile_days_before_ovulation),
            end=ovulation + timedelta(days=pc.fertile_days_after_ovulation),
        )

        bleed = self.typical_bleed_length(ordered)
        result.typical_bleed_length = bleed
        if as_of is not None and last.end_date is None:
            days_since_start = (as_of - last.start_date).days
            result.cycle_in_progress = 0 <= days_since_start <= bleed + pc.ongoing_grace_days

        result.confidence = self._confidence(estimate)

        range_days = math.ceil(estimate.spread)
        result.prediction_range = PredictionRange(
            earliest=next_period - timedelta(days=range_days),
            latest=next_period + timedelta(days=range_days),
        )
        result.probability_curve = self.probability_curve(estimate.spread, next_period)
        result.historical_accuracy = self.historical_accuracy(ordered)

        if symptoms:
            result.symptom_forecast = self._forecast_symptoms(ordered, symptoms, next_period)

        return result

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def _intervals(self, ordered: Sequence[CycleRecord]) -> list[int]:
        bounds = self._config.intervals
        return cycle_intervals(ordered, bounds.min_plausible_days, bounds.max_plausible_days)

    def _next_start(self, ordered: Sequence[CycleRecord]) -> date | None:
        """Predicted next start for an already sorted history (dates only)."""
        if not ordered:
            return None
        estimate = self._estimator.estimate(self._intervals(ordered))
        return ordered[-1].start_date + timedelta(days=estimate.center_length)

    @staticmethod
    def _variance(estimate: RobustEstimate) -> float:
        if not estimate.cleaned:
            return 0.0
        center = estimate.center_length
        var = statistics.fmean((v - center) ** 2 for v in estimate.cleaned)
        return round_half_up(math.sqrt(var), 1)

    def luteal_phase_length(self, center_length: int) -> int:
        """Luteal phase days for a cycle of ``center_length`` days."""
        pc = self._pc
        if center_length >= pc.long_cycle_threshold:
            return pc.long_luteal_days
        if center_length <= pc.short_cycle_threshold:
            return pc.short_luteal_days
        return pc.default_luteal_days

    def typical_bleed_length(self, cycles: Sequence[CycleRecord]) -> int:
        """Median logged bleed length, clamped to the configured range."""
        pc = self._pc
        lengths = [c.bleed_length for c in cycles if c.bleed_length is not None]
        if not lengths:
            return pc.default_bleed_days
        med = statistics.median(lengths)
        return int(round_half_up(clamp(med, pc.min_bleed_days, pc.max_bleed_days)))

    def _confidence(self, estimate: RobustEstimate) -> PredictionConfidence:
        pc = self._pc
        if estimate.insufficient_data:
            return PredictionConfidence(
                next_period=int(pc.no_history_confidence),
                ovulation=int(pc.no_history_ovulation_confidence),
            )

        variability_bonus = clamp(
            pc.max_variability_bonus - estimate.robust_sigma * pc.sigma_penalty_per_day,
            0,
            pc.max_variability_bonus,
        )
        volume_bonus = clamp(
            estimate.interval_count * pc.volume_bonus_per_interval, 0, pc.max_volume_bonus
        )
        next_period = clamp(
            pc.confidence_base + variability_bonus + volume_bonus,
            pc.confidence_base,
            pc.confidence_max,
        )
        ovulation = min(pc.ovulation_confidence_max, next_period - pc.ovulation_confidence_offset)
        return PredictionConfidence(
            next_period=int(round_half_up(next_period)),
            ovulation=int(round_half_up(max(0.0, ovulation))),
        )

    def probability_curve(
        self, spread: float, anchor: date | None = None
    ) -> list[ProbabilityPoint]:
        """Discretized Gaussian over the days around the predicted start.

        Args:
            spread: Estimator spread in days; floored at the minimum sigma.
            anchor: Predicted date, used to attach calendar dates to points.

        Returns:
            ``2 * curve_offset_days + 1`` points whose probabilities sum to 1.
        """
        pc = self._pc
        sigma = max(pc.curve_min_sigma, spread)
        dist = NormalDist(mu=0.0, sigma=sigma)
        offsets = range(-pc.curve_offset_days, pc.curve_offset_days + 1)
        weights = [dist.pdf(offset) for offset in offsets]
        total = sum(weights)
        return [
            ProbabilityPoint(
                offset_days=offset,
                probability=weight / total,
                date=anchor + timedelta(days=offset) if anchor else None,
            )
            for offset, weight in zip(offsets, weights)
        ]

    def historical_accuracy(self, cycles: Sequence[CycleRecord]) -> int | None:
        """Walk-forward backtest of the predictor against logged starts.

        For every ``i`` from 2 to ``n − 1`` the prediction is rebuilt from
        ``cycles[:i]`` and counted correct when it lands within the tolerance
        of ``cycles[i]``.

        Returns:
            Percentage of correct predictions, or None below the minimum
            history.
        """
        pc = self._pc
        ordered = sort_cycles(cycles)
        if len(ordered) < pc.backtest_min_cycles:
            return None

        correct = 0
        attempts = 0
        for i in range(2, len(ordered)):
            predicted = self._next_start(ordered[:i])
            if predicted is None:
                continue
            attempts += 1
            if abs((ordered[i].start_date - predicted).days) <= pc.backtest_tolerance_days:
                correct += 1

        if attempts == 0:
            return None
        accuracy = int(round_half_up(correct / attempts * 100))
        logger.debug("Backtest: %d/%d predictions within tolerance", correct, attempts)
        return accuracy

    def _forecast_symptoms(
        self,
        ordered: Sequence[CycleRecord],
        symptoms: Sequence[SymptomObservation],
        next_period: date,
    ) -> list[SymptomForecast]:
        analyzer = CorrelationAnalyzer(self._config)
        report = analyzer.analyze(ordered, symptoms)
        forecasts = []
        for corr in report.predictable:
            day = max(1, int(round_half_up(corr.average_cycle_day)))
            forecasts.append(
                SymptomForecast(
                    symptom_type=corr.symptom_type,
                    predicted_date=next_period + timedelta(days=day - 1),
                    cycle_day=day,
                    probability=int(round_half_up(corr.frequency / report.cycle_count * 100)),
                    expected_severity=corr.typical_severity,
                )
            )
        forecasts.sort(key=lambda f: (f.predicted_date, f.symptom_type))
        return forecasts
