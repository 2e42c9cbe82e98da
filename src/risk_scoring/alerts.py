"""
Alerting and persistence payloads built from a RiskResult

The scorer only exposes the overall level; these helpers turn a result into
the rows the data store expects.
"""

from datetime import date
from typing import Dict, Optional

from .risk_scorer import RiskResult


ALERT_THRESHOLD = 4
ALERT_PRIORITY = 5
ALERT_TYPE = "safety_alert"

ALERT_MESSAGES = {
    5: "Critical risk detected. Stop work immediately and move to a safe place.",
    4: "High risk detected. Take safety measures right away.",
}


def should_alert(result: RiskResult) -> bool:
    return result.overall_risk >= ALERT_THRESHOLD


def build_high_risk_alert(user_id: str, result: RiskResult) -> Optional[Dict]:
    """
    Build the notification queue row for a high-risk result

    Returns None when the overall level is below the alert threshold.
    """
    if not should_alert(result):
        return None

    level = result.overall_risk
    content = ALERT_MESSAGES.get(level, ALERT_MESSAGES[ALERT_THRESHOLD])

    return {
        "recipient_id": user_id,
        "notification_type": ALERT_TYPE,
        "priority": ALERT_PRIORITY,
        "title": f"High risk detected (level {level})",
        "content": content,
        "metadata": {
            "risk_level": level,
            "primary_factors": list(result.analysis.primary_risk_factors),
            "urgent_actions": list(result.analysis.urgent_actions),
        },
    }


def build_prediction_record(
    user_id: str,
    region: str,
    industry: str,
    timeframe: str,
    result: RiskResult,
    prediction_date: Optional[date] = None
) -> Dict:
    """Row persisted to the risk predictions table"""
    prediction_date = prediction_date or date.today()

    return {
        "user_id": user_id,
        "prediction_date": prediction_date.isoformat(),
        "risk_level": result.overall_risk,
        "risk_factors": {
            "weather": result.weather_risk,
            "industry": result.industry_risk,
            "health": result.health_risk,
            "historical": result.historical_risk,
        },
        "recommendations": list(result.recommendations),
        "confidence_score": result.confidence,
        "region": region,
        "industry_sector": industry,
        "timeframe": timeframe,
    }
