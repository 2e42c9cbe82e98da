from datetime import timedelta

import pandas as pd
import pytest
import requests
from fastapi.testclient import TestClient

import api.main as api_main
from api.main import app


class FakeWeather:
    is_configured = True

    def __init__(self, evidence=None):
        self.evidence = evidence
        self.regions = []

    def get_weather_evidence(self, region):
        self.regions.append(region)
        return self.evidence


class FakeStore:
    def __init__(self, configured=True, incident_count=0, incidents=None, save_error=None):
        self.is_configured = configured
        self.incident_count = incident_count
        self.incidents = incidents
        self.save_error = save_error
        self.saved = []
        self.notifications = []

    def get_recent_health_data(self, user_id, limit=10):
        return pd.DataFrame()

    def get_recent_incidents(self, days=90, now=None):
        if self.incidents is not None:
            return self.incidents
        return pd.DataFrame(
            {
                "created_at": [now - timedelta(days=1)] * self.incident_count,
                "emergency_type": ["injury"] * self.incident_count,
                "severity_level": [3] * self.incident_count,
            }
        )

    def save_prediction(self, record):
        if self.save_error is not None:
            raise self.save_error
        self.saved.append(record)
        return {"id": len(self.saved), **record}

    def queue_notification(self, payload):
        self.notifications.append(payload)
        return {"id": len(self.notifications), **payload}

    def get_prediction_history(self, user_id, limit=30):
        return [record for record in self.saved if record["user_id"] == user_id][:limit]


@pytest.fixture
def store(monkeypatch):
    fake = FakeStore()
    monkeypatch.setattr(api_main, "data_store", fake)
    monkeypatch.setattr(api_main, "weather_connector", FakeWeather())
    return fake


HIGH_RISK_REQUEST = {
    "user_id": "worker-7",
    "region": "Tongyeong",
    "industry": "fishery",
    "include_health_data": True,
    "weather": {
        "temperature": 36,
        "humidity": 85,
        "wind_speed": 16,
        "precipitation": 35,
        "uv_index": 11,
    },
    "health_sample": {
        "heart_rate": 110,
        "blood_pressure_systolic": 150,
        "stress_level": 8,
        "fatigue_level": 8,
    },
}


def test_root_and_health_endpoints(store) -> None:
    client = TestClient(app)
    assert "risk_prediction" in client.get("/").json()["endpoints"]

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["services"]["data_store"] == "configured"


def test_high_risk_prediction_is_saved_and_alerted(store) -> None:
    store.incident_count = 25
    client = TestClient(app)

    response = client.post("/api/v1/risk/predict", json=HIGH_RISK_REQUEST)

    assert response.status_code == 200
    body = response.json()
    analysis = body["risk_analysis"]
    assert analysis["overall_risk"] == 5
    assert analysis["confidence"] == 1.0
    assert analysis["analysis"]["urgent_actions"][0] == "Stop work immediately"
    assert body["sub_scores"]["industry"]["score"] == 4
    assert body["sub_scores"]["historical"]["details"]["total_incidents"] == 25
    assert body["alert_queued"] is True
    assert body["prediction"]["id"] == 1

    assert store.saved[0]["risk_level"] == 5
    assert store.notifications[0]["priority"] == 5
    assert store.notifications[0]["recipient_id"] == "worker-7"


def test_low_risk_prediction_without_health_data(store) -> None:
    client = TestClient(app)
    response = client.post(
        "/api/v1/risk/predict",
        json={
            "user_id": "worker-8",
            "region": "Gimje",
            "industry": "agriculture",
            "weather": {"temperature": 20, "humidity": 40},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["risk_analysis"]["overall_risk"] == 2
    assert body["risk_analysis"]["confidence"] == pytest.approx(0.85)
    assert body["sub_scores"]["health"]["available"] is False
    assert body["alert_queued"] is False
    assert store.notifications == []


def test_prediction_uses_weather_connector_when_no_readings_given(store) -> None:
    client = TestClient(app)
    response = client.post(
        "/api/v1/risk/predict",
        json={"user_id": "worker-9", "region": "Jeju", "industry": "construction"},
    )

    assert response.status_code == 200
    assert api_main.weather_connector.regions == ["Jeju"]
    weather = response.json()["sub_scores"]["weather"]
    assert weather["score"] == 2
    assert "insufficient" in weather["message"]


class BrokenWeather(FakeWeather):
    def get_weather_evidence(self, region):
        raise KeyError("temp")


class BrokenStore(FakeStore):
    def get_recent_health_data(self, user_id, limit=10):
        raise ValueError("could not convert string to float: 'n/a'")

    def get_recent_incidents(self, days=90, now=None):
        raise ValueError("malformed incident row")


def test_failing_evidence_fetch_falls_back_to_default(monkeypatch) -> None:
    fake = BrokenStore()
    monkeypatch.setattr(api_main, "data_store", fake)
    monkeypatch.setattr(api_main, "weather_connector", BrokenWeather())
    client = TestClient(app)

    response = client.post(
        "/api/v1/risk/predict",
        json={"user_id": "worker-9", "region": "Jeju", "industry": "construction", "include_health_data": True},
    )

    assert response.status_code == 200
    sub_scores = response.json()["sub_scores"]
    for name in ("weather", "health", "historical"):
        assert sub_scores[name]["score"] == 2
        assert sub_scores[name]["available"] is False
        assert sub_scores[name]["message"] == f"{name} analysis error"
    assert sub_scores["industry"]["score"] == 4
    assert len(fake.saved) == 1


def test_incidents_without_timestamps_count_as_no_history(store) -> None:
    store.incidents = pd.DataFrame({"emergency_type": ["injury"]})
    client = TestClient(app)
    response = client.post(
        "/api/v1/risk/predict",
        json={"user_id": "worker-9", "region": "Jeju", "industry": "construction"},
    )

    assert response.status_code == 200
    historical = response.json()["sub_scores"]["historical"]
    assert historical["score"] == 2
    assert historical["available"] is False


def test_alert_not_reported_when_queue_returns_nothing(store, monkeypatch) -> None:
    monkeypatch.setattr(store, "queue_notification", lambda payload: None)
    client = TestClient(app)

    response = client.post("/api/v1/risk/predict", json=HIGH_RISK_REQUEST)

    assert response.status_code == 200
    assert response.json()["alert_queued"] is False


def test_save_failure_returns_500(store) -> None:
    store.save_error = requests.HTTPError("insert rejected")
    client = TestClient(app)
    response = client.post("/api/v1/risk/predict", json=HIGH_RISK_REQUEST)

    assert response.status_code == 500
    assert "insert rejected" in response.json()["detail"]


def test_unconfigured_store_skips_persistence(monkeypatch) -> None:
    fake = FakeStore(configured=False)
    monkeypatch.setattr(api_main, "data_store", fake)
    monkeypatch.setattr(api_main, "weather_connector", FakeWeather())
    client = TestClient(app)

    response = client.post("/api/v1/risk/predict", json=HIGH_RISK_REQUEST)

    assert response.status_code == 200
    body = response.json()
    assert "id" not in body["prediction"]
    assert body["prediction"]["user_id"] == "worker-7"
    assert body["alert_queued"] is False
    assert fake.saved == []


def test_prediction_rejects_invalid_timeframe(store) -> None:
    client = TestClient(app)
    response = client.post(
        "/api/v1/risk/predict",
        json={"user_id": "w", "region": "Jeju", "industry": "fishery", "timeframe": "yearly"},
    )
    assert response.status_code == 422


def test_score_endpoint(store) -> None:
    client = TestClient(app)

    response = client.post(
        "/api/v1/risk/score",
        json={"weather": 5, "industry": 1, "health": 1, "historical": 1},
    )
    assert response.status_code == 200
    assert response.json()["overall_risk"] == 2

    invalid = client.post(
        "/api/v1/risk/score",
        json={"weather": 6, "industry": 1, "health": 1, "historical": 1},
    )
    assert invalid.status_code == 422


def test_history_endpoint(store) -> None:
    client = TestClient(app)
    client.post("/api/v1/risk/predict", json=HIGH_RISK_REQUEST)

    response = client.get("/api/v1/risk/history/worker-7", params={"limit": 5})
    assert response.status_code == 200
    assert response.json()["count"] == 1


def test_history_requires_configured_store(monkeypatch) -> None:
    monkeypatch.setattr(api_main, "data_store", FakeStore(configured=False))
    client = TestClient(app)
    response = client.get("/api/v1/risk/history/worker-7")
    assert response.status_code == 503
