"""
Supabase Data Store Connector

Reads health samples and incident reports from, and writes risk predictions
and notification queue rows to, the SafeBridge backend-as-a-service through
its PostgREST interface.
API Documentation: https://postgrest.org/en/stable/references/api.html
"""

import requests
import pandas as pd
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, List
import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SupabaseConnector:
    """Connector for the SafeBridge Supabase tables"""

    REST_PATH = "/rest/v1"

    # Table names can be overridden through SAFEBRIDGE_<NAME>_TABLE
    DEFAULT_TABLES = {
        "health_data": "health_data",
        "emergency_reports": "emergency_reports",
        "risk_predictions": "risk_predictions",
        "notification_queue": "notification_queue",
    }

    def __init__(self, url: Optional[str] = None, service_key: Optional[str] = None):
        """
        Initialize Supabase connector

        Args:
            url: Project URL. If None, reads SUPABASE_URL.
            service_key: Service role key. If None, reads SUPABASE_SERVICE_ROLE_KEY.
        """
        self.url = (url or os.getenv("SUPABASE_URL", "")).rstrip("/")
        self.service_key = service_key or os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
        self.tables = {
            name: os.getenv(f"SAFEBRIDGE_{name.upper()}_TABLE", default)
            for name, default in self.DEFAULT_TABLES.items()
        }

        if not self.is_configured:
            logger.warning("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set - data store disabled")

        self.session = requests.Session()
        self.session.headers.update({
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json"
        })

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.service_key)

    def _table_url(self, name: str) -> str:
        return f"{self.url}{self.REST_PATH}/{self.tables[name]}"

    def _select(self, name: str, params: Dict) -> pd.DataFrame:
        if not self.is_configured:
            return pd.DataFrame()

        try:
            response = self.session.get(self._table_url(name), params=params, timeout=30)
            response.raise_for_status()
            rows = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error reading {self.tables[name]}: {e}")
            return pd.DataFrame()

        if not rows:
            return pd.DataFrame()

        return pd.DataFrame(rows)

    def _insert(self, name: str, row: Dict) -> Optional[Dict]:
        """Created row, or None when the store returned no representation"""
        response = self.session.post(
            self._table_url(name),
            json=row,
            headers={"Prefer": "return=representation"},
            timeout=30
        )
        response.raise_for_status()
        created = response.json()
        if isinstance(created, list):
            created = created[0] if created else None
        return created or None

    def get_recent_health_data(self, user_id: str, limit: int = 10) -> pd.DataFrame:
        """
        Get the latest health samples for a worker, newest first

        Returns:
            DataFrame with heart_rate, blood_pressure_systolic, stress_level,
            fatigue_level and recorded_at columns
        """
        params = {
            "select": "*",
            "user_id": f"eq.{user_id}",
            "order": "recorded_at.desc",
            "limit": limit
        }
        logger.info(f"Fetching last {limit} health samples for user {user_id}")
        df = self._select("health_data", params)

        if not df.empty and "recorded_at" in df.columns:
            df["recorded_at"] = pd.to_datetime(df["recorded_at"], utc=True, errors="coerce")

        return df

    def get_recent_incidents(self, days: int = 90, now: Optional[datetime] = None) -> pd.DataFrame:
        """Get emergency reports created in the last `days` days, newest first"""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days)
        params = {
            "select": "*",
            "created_at": f"gte.{cutoff.isoformat()}",
            "order": "created_at.desc"
        }
        logger.info(f"Fetching incident reports since {cutoff.date()}")
        df = self._select("emergency_reports", params)

        if not df.empty and "created_at" in df.columns:
            df["created_at"] = pd.to_datetime(df["created_at"], utc=True, errors="coerce")

        logger.info(f"Retrieved {len(df)} incident reports")
        return df

    def get_prediction_history(self, user_id: str, limit: int = 30) -> List[Dict]:
        """Get persisted risk predictions for a worker, newest first"""
        params = {
            "select": "*",
            "user_id": f"eq.{user_id}",
            "order": "prediction_date.desc",
            "limit": limit
        }
        df = self._select("risk_predictions", params)

        if df.empty:
            return []

        # NaN is not valid JSON
        df = df.astype(object).where(pd.notna(df), None)
        return df.to_dict(orient="records")

    def save_prediction(self, record: Dict) -> Optional[Dict]:
        """
        Persist a risk prediction row

        Raises:
            requests.exceptions.RequestException: if the insert fails
        """
        try:
            saved = self._insert("risk_predictions", record)
            logger.info(f"Saved risk prediction for user {record.get('user_id')}")
            return saved
        except requests.exceptions.RequestException as e:
            logger.error(f"Error saving risk prediction: {e}")
            raise

    def queue_notification(self, payload: Dict) -> Optional[Dict]:
        """Insert a row into the notification queue; dispatch happens elsewhere"""
        try:
            queued = self._insert("notification_queue", payload)
            logger.info(f"Queued {payload.get('notification_type')} for {payload.get('recipient_id')}")
            return queued
        except requests.exceptions.RequestException as e:
            logger.error(f"Error queueing notification: {e}")
            return None
