"""
Risk Scoring Module

Estimate weather, industry, health and incident-history sub-scores and
combine them into a composite occupational risk level.
"""

from .estimators import (
    HealthThresholds,
    SubScore,
    WeatherEvidence,
    WeatherThresholds,
    default_sub_score,
    estimate_health_risk,
    estimate_historical_risk,
    estimate_industry_risk,
    estimate_weather_risk,
)
from .risk_scorer import RiskAnalysis, RiskResult, RiskScorer, merge_recommendations
from .alerts import build_high_risk_alert, build_prediction_record, should_alert

__all__ = [
    "RiskScorer",
    "RiskResult",
    "RiskAnalysis",
    "SubScore",
    "WeatherEvidence",
    "WeatherThresholds",
    "HealthThresholds",
    "default_sub_score",
    "estimate_weather_risk",
    "estimate_industry_risk",
    "estimate_health_risk",
    "estimate_historical_risk",
    "merge_recommendations",
    "build_high_risk_alert",
    "build_prediction_record",
    "should_alert",
]
