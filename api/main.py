"""
FastAPI REST API for the SafeBridge risk service

Provides RESTful endpoints for composite occupational risk prediction.
"""

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Callable, List, Optional, Dict
from datetime import datetime, timezone
import pandas as pd
import logging
import sys
import os

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.api_connectors import OpenWeatherConnector, SupabaseConnector
from src.risk_scoring import (
    RiskScorer,
    SubScore,
    WeatherEvidence,
    build_high_risk_alert,
    build_prediction_record,
    default_sub_score,
    estimate_health_risk,
    estimate_historical_risk,
    estimate_industry_risk,
    estimate_weather_risk,
)
from src.risk_scoring.estimators import HISTORY_WINDOW_DAYS

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SafeBridge Risk Prediction API",
    description="Composite occupational risk assessment for agricultural and fishery workers",
    version="1.0.0"
)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize connectors
weather_connector = OpenWeatherConnector()
data_store = SupabaseConnector()
risk_scorer = RiskScorer()


# Pydantic models
class WeatherInput(BaseModel):
    temperature: float = Field(..., ge=-60, le=60, description="Air temperature (°C)")
    humidity: float = Field(0.0, ge=0, le=100, description="Relative humidity (%)")
    wind_speed: float = Field(0.0, ge=0, description="Wind speed (m/s)")
    precipitation: float = Field(0.0, ge=0, description="Precipitation (mm)")
    uv_index: float = Field(0.0, ge=0, description="UV index")


class HealthSampleInput(BaseModel):
    heart_rate: Optional[float] = Field(None, gt=0, description="Beats per minute")
    blood_pressure_systolic: Optional[float] = Field(None, gt=0, description="Systolic pressure (mmHg)")
    stress_level: Optional[float] = Field(None, ge=0, le=10, description="Self-reported stress (0-10)")
    fatigue_level: Optional[float] = Field(None, ge=0, le=10, description="Self-reported fatigue (0-10)")


class RiskPredictionRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    region: str = Field(..., min_length=1, description="City or region name")
    industry: str = Field(..., min_length=1, description="agriculture, fishery, construction, manufacturing")
    timeframe: str = Field("daily", pattern="^(daily|weekly|monthly)$")
    include_health_data: bool = False
    weather: Optional[WeatherInput] = Field(None, description="Readings to use instead of the weather API")
    health_sample: Optional[HealthSampleInput] = Field(None, description="Sample to use instead of stored data")
    persist: bool = True


class SubScoreInput(BaseModel):
    weather: int = Field(..., ge=1, le=5)
    industry: int = Field(..., ge=1, le=5)
    health: int = Field(..., ge=1, le=5)
    historical: int = Field(..., ge=1, le=5)


class AnalysisOut(BaseModel):
    primary_risk_factors: List[str]
    urgent_actions: List[str]
    preventive_measures: List[str]


class RiskResultOut(BaseModel):
    overall_risk: int
    weather_risk: int
    industry_risk: int
    health_risk: int
    historical_risk: int
    confidence: float
    recommendations: List[str]
    analysis: AnalysisOut


class PredictionResponse(BaseModel):
    success: bool
    prediction: Dict
    risk_analysis: RiskResultOut
    sub_scores: Dict[str, Dict]
    alert_queued: bool
    timestamp: datetime


def _safe_estimate(name: str, estimate: Callable[[], SubScore]) -> SubScore:
    """
    Fetch evidence and run an estimator

    Any failure, in the fetch or the estimator, counts as insufficient data
    for that sub-score.
    """
    try:
        return estimate()
    except Exception as e:
        logger.error(f"{name} risk analysis failed, using default score: {e}")
        return default_sub_score(name, f"{name} analysis error")


def _weather_evidence(request: RiskPredictionRequest) -> Optional[WeatherEvidence]:
    if request.weather is not None:
        return WeatherEvidence(**request.weather.model_dump())
    return weather_connector.get_weather_evidence(request.region)


def _health_samples(request: RiskPredictionRequest) -> pd.DataFrame:
    if request.health_sample is not None:
        return pd.DataFrame([request.health_sample.model_dump()])
    return data_store.get_recent_health_data(request.user_id)


# API Endpoints

@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "message": "SafeBridge Risk Prediction API",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "risk_prediction": "/api/v1/risk/predict",
            "risk_score": "/api/v1/risk/score",
            "prediction_history": "/api/v1/risk/history/{user_id}"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "weather_api": "configured" if weather_connector.is_configured else "not configured",
            "data_store": "configured" if data_store.is_configured else "not configured"
        }
    }


@app.post("/api/v1/risk/predict", response_model=PredictionResponse)
async def predict_risk(request: RiskPredictionRequest):
    """
    Predict a worker's composite risk

    Collects weather, industry, health and incident-history evidence,
    persists the prediction and queues a safety alert for high risk.
    """
    try:
        now = datetime.now(timezone.utc)

        weather = _safe_estimate(
            "weather",
            lambda: estimate_weather_risk(_weather_evidence(request))
        )
        industry = _safe_estimate(
            "industry",
            lambda: estimate_industry_risk(request.industry)
        )

        if request.include_health_data or request.health_sample is not None:
            health = _safe_estimate(
                "health",
                lambda: estimate_health_risk(_health_samples(request))
            )
        else:
            health = default_sub_score("health", "health data not requested")

        historical = _safe_estimate(
            "historical",
            lambda: estimate_historical_risk(
                data_store.get_recent_incidents(days=HISTORY_WINDOW_DAYS, now=now),
                now=now
            )
        )

        result = risk_scorer.compute(weather, industry, health, historical)

        prediction = build_prediction_record(
            request.user_id,
            request.region,
            request.industry,
            request.timeframe,
            result,
            prediction_date=now.date()
        )

        if request.persist and data_store.is_configured:
            prediction = data_store.save_prediction(prediction) or prediction
        elif request.persist:
            logger.warning("Data store not configured, prediction not persisted")

        alert_queued = False
        alert = build_high_risk_alert(request.user_id, result)
        if alert is not None and data_store.is_configured:
            alert_queued = bool(data_store.queue_notification(alert))

        return PredictionResponse(
            success=True,
            prediction=prediction,
            risk_analysis=RiskResultOut(**result.to_dict()),
            sub_scores={
                sub.name: sub.to_dict()
                for sub in (weather, industry, health, historical)
            },
            alert_queued=alert_queued,
            timestamp=now
        )

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error predicting risk: {str(e)}")


@app.post("/api/v1/risk/score", response_model=RiskResultOut)
async def score_risk(scores: SubScoreInput):
    """Combine four known 1-5 sub-scores without touching any data source"""
    result = risk_scorer.compute(
        scores.weather,
        scores.industry,
        scores.health,
        scores.historical
    )
    return RiskResultOut(**result.to_dict())


@app.get("/api/v1/risk/history/{user_id}")
async def get_prediction_history(
    user_id: str,
    limit: int = Query(30, ge=1, le=365)
):
    """Get persisted risk predictions for a worker"""
    if not data_store.is_configured:
        raise HTTPException(status_code=503, detail="Data store not configured")

    try:
        predictions = data_store.get_prediction_history(user_id, limit=limit)
        return {
            "count": len(predictions),
            "predictions": predictions
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
