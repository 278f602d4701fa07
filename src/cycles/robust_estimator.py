"""Outlier-resistant cycle-length estimation.

Algorithm:
1. Median and median absolute deviation (MAD) of the intervals.  MAD × 1.4826
   approximates a standard deviation ("robust sigma"); a zero MAD falls back
   to a 2.5-day floor.
2. Tukey fences: drop intervals outside [Q1 − 1.5·IQR, Q3 + 1.5·IQR].
3. Exponentially-weighted moving average (α = 0.5) over the cleaned series,
   so the most recent cycles dominate.
4. Clamp to the physiologic range [21, 45] and round.
5. Spread = robust sigma + half the IQR, the width used for confidence and
   the probability curve.

A single forgotten log (a 56-day "cycle" that was really two) therefore moves
the estimate far less than it would move a plain mean.
"""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass, field
from typing import Sequence

from src.cycles.config_loader import EngineConfig, get_engine_config

logger = logging.getLogger("cyclesense.cycles.robust_estimator")


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with ties away from zero for positives (2.5 → 3, not 2)."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def quantile(values: Sequence[float], q: float) -> float:
    """Linear-interpolation quantile of ``values`` (``0 <= q <= 1``)."""
    ordered = sorted(values)
    if not ordered:
        raise ValueError("quantile of empty sequence")
    pos = (len(ordered) - 1) * q
    lower = math.floor(pos)
    upper = math.ceil(pos)
    if lower == upper:
        return float(ordered[lower])
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (pos - lower)


def median_absolute_deviation(values: Sequence[float]) -> float:
    center = statistics.median(values)
    return statistics.median(abs(v - center) for v in values)


@dataclass(frozen=True)
class RobustEstimate:
    """Center-of-mass cycle length and its spread.

    Attributes:
        center_length:     Predicted cycle length in days, within [21, 45].
        spread:            Robust sigma plus half the IQR, one decimal.
        robust_sigma:      1.4826 × MAD, or the sigma floor.
        median:            Median interval.
        q1:                First quartile.
        q3:                Third quartile.
        interval_count:    Intervals supplied.
        cleaned:           Intervals surviving the IQR fence, oldest first.
        insufficient_data: True when no intervals were supplied.
    """

    center_length: int
    spread: float
    robust_sigma: float = 0.0
    median: float | None = None
    q1: float | None = None
    q3: float | None = None
    interval_count: int = 0
    cleaned: tuple[int, ...] = field(default_factory=tuple)
    insufficient_data: bool = False


class RobustEstimator:
    """Estimate a personal cycle length from historical intervals.

    Usage::

        estimator = RobustEstimator()
        estimate = estimator.estimate([28, 29, 27, 56, 28])
        estimate.center_length   # 28
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()

    def estimate(self, intervals: Sequence[int]) -> RobustEstimate:
        """Estimate center length and spread.

        Args:
            intervals: Days between consecutive period starts, oldest first,
                       already restricted to the plausible raw range.

        Returns:
            RobustEstimate; ``insufficient_data`` is set for empty input.
        """
        cfg = self._config.robust_estimator

        if not intervals:
            return RobustEstimate(
                center_length=cfg.default_cycle_length,
                spread=0.0,
                insufficient_data=True,
            )

        values = list(intervals)
        med = statistics.median(values)
        mad = median_absolute_deviation(values)
        robust_sigma = mad * cfg.mad_scale if mad > 0 else cfg.sigma_floor

        q1 = quantile(values, 0.25)
        q3 = quantile(values, 0.75)
        iqr = q3 - q1
        low_fence = q1 - cfg.iqr_fence * iqr
        high_fence = q3 + cfg.iqr_fence * iqr
        cleaned = [v for v in values if low_fence <= v <= high_fence]
        if len(cleaned) < len(values):
            logger.debug(
                "IQR fence [%.1f, %.1f] removed %d of %d intervals",
                low_fence, high_fence, len(values) - len(cleaned), len(values),
            )

        smoothed = float(cleaned[0]) if cleaned else float(med)
        for value in cleaned[1:]:
            smoothed = cfg.ewma_alpha * value + (1 - cfg.ewma_alpha) * smoothed

        center = int(round_half_up(clamp(smoothed, cfg.min_cycle_days, cfg.max_cycle_days)))
        spread = round_half_up(robust_sigma + max(0.0, iqr / 2), 1)

        return RobustEstimate(
            center_length=center,
            spread=spread,
            robust_sigma=robust_sigma,
            median=float(med),
            q1=q1,
            q3=q3,
            interval_count=len(values),
            cleaned=tuple(cleaned),
        )
