"""Cyclesense Cycle Analytics Engine.

Pure, deterministic computations over a user's logged periods and symptom
observations: next-period and ovulation prediction, cycle-length anomaly
detection, symptom-to-phase correlation, hormonal-phase inference, and a
cycle health score.

Core modules:
    base               CycleRecord and SymptomObservation input records
    timeline           Cycle ordering, intervals, and cycle membership
    robust_estimator   Median/MAD/IQR/EWMA cycle-length estimator
    prediction         Next period, ovulation, fertile window, backtest
    anomaly_detector   Z-score anomaly flags and risk level
    symptom_correlator Symptom timing and phase correlation
    hormonal_patterns  Per-phase hormonal inference
    health_score       Health score, cycle variability, flow consistency
    analysis           CycleAnalysisEngine facade
    ingest             Validate raw rows into records
    config_loader      Load/validate/hot-reload engine_config.yaml
"""

from src.cycles.analysis import CycleAnalysis, CycleAnalysisEngine
from src.cycles.anomaly_detector import AnomalyDetector, AnomalyRecord, AnomalyReport
from src.cycles.base import CycleRecord, SymptomObservation
from src.cycles.config_loader import EngineConfig, get_engine_config, reload_engine_config
from src.cycles.health_score import HealthScore, HealthScoreAggregator
from src.cycles.hormonal_patterns import (
    HormonalAnalysis,
    HormonalInferenceLayer,
    HormonalPhasePattern,
    HormonalRecommendation,
)
from src.cycles.ingest import parse_cycle_records, parse_symptom_observations
from src.cycles.prediction import PredictionEngine, PredictionResult
from src.cycles.robust_estimator import RobustEstimate, RobustEstimator
from src.cycles.symptom_correlator import CorrelationAnalyzer, SymptomCorrelation
from src.cycles.timeline import cycle_containing

__all__ = [
    "CycleRecord",
    "SymptomObservation",
    "EngineConfig",
    "get_engine_config",
    "reload_engine_config",
    "RobustEstimator",
    "RobustEstimate",
    "PredictionEngine",
    "PredictionResult",
    "AnomalyDetector",
    "AnomalyRecord",
    "AnomalyReport",
    "CorrelationAnalyzer",
    "SymptomCorrelation",
    "HormonalInferenceLayer",
    "HormonalAnalysis",
    "HormonalPhasePattern",
    "HormonalRecommendation",
    "HealthScoreAggregator",
    "HealthScore",
    "CycleAnalysisEngine",
    "CycleAnalysis",
    "parse_cycle_records",
    "parse_symptom_observations",
    "cycle_containing",
]
