"""
OpenWeatherMap API Connector

Fetches current conditions for a work region and converts them into
WeatherEvidence for the weather risk estimator.
API Documentation: https://openweathermap.org/current
"""

import requests
from typing import Optional, Dict
import logging
import os

from src.risk_scoring.estimators import WeatherEvidence

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class OpenWeatherConnector:
    """Connector for the OpenWeatherMap current weather and One Call APIs"""

    BASE_URL = "https://api.openweathermap.org/data"

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize OpenWeatherMap connector

        Args:
            api_key: OpenWeatherMap API key. If None, reads OPENWEATHER_API_KEY.
        """
        self.api_key = api_key or os.getenv("OPENWEATHER_API_KEY", "")

        if not self.api_key:
            logger.warning("OPENWEATHER_API_KEY not set - weather risk will fall back to insufficient data")

        self.session = requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def get_current_conditions(self, region: str) -> Optional[Dict]:
        """Raw current-weather payload for a city/region name"""

        if not self.is_configured:
            return None

        url = f"{self.BASE_URL}/2.5/weather"
        params = {"q": region, "appid": self.api_key, "units": "metric"}

        try:
            logger.info(f"Fetching current weather for {region}")
            response = self.session.get(url, params=params, timeout=10)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching current weather: {e}")
            return None

    def get_uv_index(self, latitude: float, longitude: float) -> Optional[float]:
        """Current UV index for a point (One Call API)"""

        if not self.is_configured:
            return None

        url = f"{self.BASE_URL}/3.0/onecall"
        params = {
            "lat": latitude,
            "lon": longitude,
            "exclude": "minutely,hourly,daily,alerts",
            "appid": self.api_key,
            "units": "metric"
        }

        try:
            response = self.session.get(url, params=params, timeout=10)
            response.raise_for_status()
            uvi = response.json().get("current", {}).get("uvi")
            return float(uvi) if uvi is not None else None
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching UV index: {e}")
            return None

    def get_weather_evidence(self, region: str) -> Optional[WeatherEvidence]:
        """
        Get current weather readings for a region

        Returns:
            WeatherEvidence, or None when the API is unconfigured or unreachable
        """

        data = self.get_current_conditions(region)

        if not data or "main" not in data:
            return None

        main = data["main"]
        wind = data.get("wind", {})

        uv_index = None
        coord = data.get("coord")
        if coord:
            uv_index = self.get_uv_index(coord["lat"], coord["lon"])

        evidence = WeatherEvidence(
            temperature=float(main["temp"]),
            humidity=float(main.get("humidity", 0.0)),
            wind_speed=float(wind.get("speed", 0.0)),
            precipitation=self._precipitation(data),
            uv_index=uv_index if uv_index is not None else 0.0
        )
        logger.info(f"Weather for {region}: {evidence}")

        return evidence

    @staticmethod
    def _precipitation(data: Dict) -> float:
        """Rain plus snow volume in mm over the latest reported period"""
        total = 0.0
        for key in ("rain", "snow"):
            volume = data.get(key) or {}
            total += float(volume.get("1h", volume.get("3h", 0.0)))
        return total


if __name__ == "__main__":
    # Test the connector
    print("\n" + "="*60)
    print("OPENWEATHERMAP CONNECTOR TEST")
    print("="*60 + "\n")

    connector = OpenWeatherConnector()

    for region in ["Gimje", "Tongyeong", "Jeju"]:
        evidence = connector.get_weather_evidence(region)
        if evidence:
            print(f"✓ {region}: {evidence.temperature:.1f}°C, humidity {evidence.humidity:.0f}%, "
                  f"wind {evidence.wind_speed:.1f} m/s, UV {evidence.uv_index:.1f}")
        else:
            print(f"✗ {region}: no weather data")

    print("\n" + "="*60)
    print("TEST COMPLETE")
    print("="*60)
