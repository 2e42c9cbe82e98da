"""
API Connectors for the SafeBridge risk service

This package contains connectors for the external collaborators:
- OpenWeatherMap: current weather readings for a work region
- Supabase: health samples, incident reports, predictions, notification queue
"""

from .openweather_connector import OpenWeatherConnector
from .supabase_connector import SupabaseConnector

__all__ = [
    "OpenWeatherConnector",
    "SupabaseConnector",
]
