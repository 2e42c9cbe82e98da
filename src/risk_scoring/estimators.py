"""
Sub-score Estimators

Map raw evidence (weather readings, health samples, incident reports, the
worker's industry sector) to integer 1-5 sub-scores for the composite scorer.

Every estimator takes its evidence as an explicit argument. When evidence is
missing the estimator returns the conservative default score instead of
raising.
"""

import pandas as pd
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


MIN_SCORE = 1
MAX_SCORE = 5
DEFAULT_SCORE = 2

INSUFFICIENT_DATA = "insufficient data"


@dataclass(frozen=True)
class SubScore:
    """One of the four 1-5 risk components feeding the composite score"""

    name: str
    score: int
    factors: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    available: bool = True
    message: Optional[str] = None
    details: Mapping = field(default_factory=dict)

    def __post_init__(self):
        # Callers may pass lists/dicts; store read-only copies
        object.__setattr__(self, "factors", tuple(self.factors))
        object.__setattr__(self, "recommendations", tuple(self.recommendations))
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_dict(self) -> Dict:
        data = {
            "name": self.name,
            "score": self.score,
            "factors": list(self.factors),
            "recommendations": list(self.recommendations),
            "available": self.available,
            "details": dict(self.details),
        }
        if self.message:
            data["message"] = self.message
        return data


def default_sub_score(name: str, message: str = INSUFFICIENT_DATA) -> SubScore:
    """Safe default used whenever a sub-score cannot be derived from evidence"""
    return SubScore(name=name, score=DEFAULT_SCORE, available=False, message=message)


def clamp_score(value: float) -> int:
    return int(min(max(int(value), MIN_SCORE), MAX_SCORE))


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WeatherEvidence:
    """Current weather readings for a work site"""

    temperature: float          # degrees C
    humidity: float = 0.0       # percent
    wind_speed: float = 0.0     # m/s
    precipitation: float = 0.0  # mm
    uv_index: float = 0.0


@dataclass(frozen=True)
class WeatherThresholds:
    heat_warning: float = 35.0
    heat_advisory: float = 32.0
    humidity: float = 80.0
    wind_warning: float = 15.0
    wind_advisory: float = 10.0
    rain_warning: float = 30.0
    rain_advisory: float = 10.0
    uv: float = 10.0


HEAT_FACTORS = ("heat warning", "heat advisory")
WIND_FACTORS = ("strong wind warning", "strong wind advisory")
RAIN_FACTORS = ("heavy rain warning", "heavy rain advisory")

WEATHER_RECOMMENDATIONS = {
    HEAT_FACTORS: ("Drink plenty of water", "Rest in the shade", "Shorten working hours"),
    WIND_FACTORS: ("Stop outdoor work", "Move to a safe place"),
    RAIN_FACTORS: ("Switch to indoor work", "Inspect drainage", "Check electrical safety"),
}


def estimate_weather_risk(
    evidence: Optional[WeatherEvidence],
    thresholds: WeatherThresholds = WeatherThresholds()
) -> SubScore:
    """
    Calculate weather risk score (1-5) from current readings

    Each triggered threshold adds to the score and appends a factor label.
    """

    if evidence is None:
        return default_sub_score("weather", "insufficient weather data")

    score = MIN_SCORE
    factors = []

    if evidence.temperature > thresholds.heat_warning:
        score += 2
        factors.append("heat warning")
    elif evidence.temperature > thresholds.heat_advisory:
        score += 1
        factors.append("heat advisory")

    if evidence.humidity > thresholds.humidity:
        score += 1
        factors.append("high humidity")

    if evidence.wind_speed > thresholds.wind_warning:
        score += 2
        factors.append("strong wind warning")
    elif evidence.wind_speed > thresholds.wind_advisory:
        score += 1
        factors.append("strong wind advisory")

    if evidence.precipitation > thresholds.rain_warning:
        score += 2
        factors.append("heavy rain warning")
    elif evidence.precipitation > thresholds.rain_advisory:
        score += 1
        factors.append("heavy rain advisory")

    if evidence.uv_index > thresholds.uv:
        score += 1
        factors.append("extreme UV")

    return SubScore(
        name="weather",
        score=clamp_score(score),
        factors=factors,
        recommendations=weather_recommendations(factors),
        details={
            "temperature": evidence.temperature,
            "humidity": evidence.humidity,
            "wind_speed": evidence.wind_speed,
            "precipitation": evidence.precipitation,
            "uv_index": evidence.uv_index,
        },
    )


def weather_recommendations(factors: List[str]) -> List[str]:
    recommendations = []
    for group, actions in WEATHER_RECOMMENDATIONS.items():
        if any(factor in group for factor in factors):
            recommendations.extend(actions)
    return recommendations


# ---------------------------------------------------------------------------
# Industry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IndustryProfile:
    base_risk: int
    seasonal_factors: tuple
    equipment_risks: tuple
    recommendations: tuple


INDUSTRY_PROFILES = {
    "agriculture": IndustryProfile(
        base_risk=3,
        seasonal_factors=("heat wave", "drought", "pests"),
        equipment_risks=("farm machinery accidents", "chemical exposure"),
        recommendations=("Take regular breaks", "Wear protective equipment", "Inspect farm machinery"),
    ),
    "fishery": IndustryProfile(
        base_risk=4,
        seasonal_factors=("typhoons", "rough seas", "tidal currents"),
        equipment_risks=("vessel accidents", "fishing gear accidents", "drowning"),
        recommendations=("Check the marine forecast", "Wear a life jacket", "Inspect communication equipment"),
    ),
    "construction": IndustryProfile(
        base_risk=4,
        seasonal_factors=("heat wave", "strong wind", "icing"),
        equipment_risks=("falls", "heavy equipment accidents", "electric shock"),
        recommendations=("Wear a hard hat", "Wear a safety harness", "Inspect equipment"),
    ),
    "manufacturing": IndustryProfile(
        base_risk=3,
        seasonal_factors=("power outages", "fire"),
        equipment_risks=("machinery accidents", "chemical exposure", "fire"),
        recommendations=("Wear protective equipment", "Perform regular inspections", "Review the emergency plan"),
    ),
}

FALLBACK_INDUSTRY = "agriculture"


def estimate_industry_risk(industry: Optional[str]) -> SubScore:
    """Look up the sector's base risk; unknown sectors use the agriculture profile"""

    if not industry:
        return default_sub_score("industry", "industry sector not provided")

    sector = industry.strip().lower()
    message = None
    profile = INDUSTRY_PROFILES.get(sector)

    if profile is None:
        logger.warning(f"Unknown industry sector '{industry}', using {FALLBACK_INDUSTRY} profile")
        message = f"unknown industry sector, using {FALLBACK_INDUSTRY} profile"
        sector = FALLBACK_INDUSTRY
        profile = INDUSTRY_PROFILES[FALLBACK_INDUSTRY]

    return SubScore(
        name="industry",
        score=clamp_score(profile.base_risk),
        factors=list(profile.seasonal_factors),
        recommendations=list(profile.recommendations),
        message=message,
        details={
            "sector": sector,
            "seasonal_risks": list(profile.seasonal_factors),
            "equipment_risks": list(profile.equipment_risks),
        },
    )


# ---------------------------------------------------------------------------
# Personal health
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthThresholds:
    heart_rate: float = 100.0
    systolic_pressure: float = 140.0
    stress_level: float = 7.0
    fatigue_level: float = 7.0


HEALTH_RECOMMENDATIONS = {
    "high heart rate": ("Get sufficient rest", "Consult medical staff"),
    "hypertension": ("Limit salt intake", "Measure blood pressure regularly", "Consult medical staff"),
    "high stress": ("Manage stress", "Get enough sleep", "Secure rest time"),
}


def estimate_health_risk(
    samples: Optional[pd.DataFrame],
    thresholds: HealthThresholds = HealthThresholds()
) -> SubScore:
    """
    Calculate personal health risk score (1-5) from wearable/self-reported samples

    Only the most recent sample (by ``recorded_at`` when present, otherwise
    the first row) is scored.
    """

    if samples is None or samples.empty:
        return default_sub_score("health", "insufficient health data")

    if "recorded_at" in samples.columns:
        ordered = samples.assign(
            recorded_at=pd.to_datetime(samples["recorded_at"], utc=True, errors="coerce")
        ).sort_values("recorded_at", ascending=False, na_position="last")
        latest = ordered.iloc[0]
    else:
        latest = samples.iloc[0]

    score = MIN_SCORE
    factors = []

    if _reading(latest, "heart_rate") > thresholds.heart_rate:
        score += 1
        factors.append("high heart rate")

    if _reading(latest, "blood_pressure_systolic") > thresholds.systolic_pressure:
        score += 2
        factors.append("hypertension")

    if _reading(latest, "stress_level") > thresholds.stress_level:
        score += 1
        factors.append("high stress")

    if _reading(latest, "fatigue_level") > thresholds.fatigue_level:
        score += 1
        factors.append("high fatigue")

    recommendations = []
    for factor in factors:
        recommendations.extend(HEALTH_RECOMMENDATIONS.get(factor, ()))

    return SubScore(
        name="health",
        score=clamp_score(score),
        factors=factors,
        recommendations=recommendations,
        details={"samples": len(samples)},
    )


def _reading(row: pd.Series, column: str) -> float:
    # Missing or non-numeric readings count as normal
    value = row.get(column)
    if value is None:
        return 0.0
    value = pd.to_numeric(value, errors="coerce")
    if pd.isna(value):
        return 0.0
    return float(value)


# ---------------------------------------------------------------------------
# Historical incidents
# ---------------------------------------------------------------------------

HISTORY_WINDOW_DAYS = 90
TREND_WINDOW_DAYS = 30
INCIDENTS_PER_LEVEL = 5


def estimate_historical_risk(
    incidents: Optional[pd.DataFrame],
    now: Optional[datetime] = None,
    lookback_days: int = HISTORY_WINDOW_DAYS
) -> SubScore:
    """
    Calculate historical incident risk score (1-5)

    Based on the number of incident reports inside the lookback window:
    one level per five incidents, starting at 1.
    """

    if incidents is None or incidents.empty or "created_at" not in incidents.columns:
        return default_sub_score("historical")

    now = _as_utc(now or datetime.now(timezone.utc))
    created = pd.to_datetime(incidents["created_at"], utc=True, errors="coerce")
    cutoff = now - timedelta(days=lookback_days)
    in_window = (created >= cutoff) & (created <= now)
    recent = incidents.loc[in_window].assign(created_at=created.loc[in_window])

    if recent.empty:
        return default_sub_score("historical")

    total = len(recent)
    score = min(total // INCIDENTS_PER_LEVEL + 1, MAX_SCORE)

    average_severity = None
    if "severity_level" in recent.columns:
        severity = pd.to_numeric(recent["severity_level"], errors="coerce").dropna()
        if not severity.empty:
            average_severity = round(float(severity.mean()), 2)

    by_type = {}
    if "emergency_type" in recent.columns:
        by_type = {
            str(kind): int(count)
            for kind, count in recent["emergency_type"].value_counts().sort_index().items()
        }

    return SubScore(
        name="historical",
        score=clamp_score(score),
        details={
            "total_incidents": total,
            "average_severity": average_severity,
            "incidents_by_type": by_type,
            "trend": incident_trend(recent["created_at"], now),
        },
    )


def incident_trend(created_at: pd.Series, now: datetime) -> str:
    """Compare incidents in the last 30 days with the rest of the window"""

    if len(created_at) < 2:
        return INSUFFICIENT_DATA

    boundary = _as_utc(now) - timedelta(days=TREND_WINDOW_DAYS)
    recent = int((created_at > boundary).sum())
    older = len(created_at) - recent

    if recent > older:
        return "increasing"
    elif recent < older:
        return "decreasing"
    return "stable"


def _as_utc(moment: datetime) -> pd.Timestamp:
    stamp = pd.Timestamp(moment)
    if stamp.tzinfo is None:
        return stamp.tz_localize("UTC")
    return stamp.tz_convert("UTC")
