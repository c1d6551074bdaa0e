from typing import Any, Dict, List, Optional

import requests
from loguru import logger

DEFAULT_URL = "https://nominatim.openstreetmap.org"
DEFAULT_USER_AGENT = "suraksha-jal/0.1"


def coordinates_label(lat: float, lon: float) -> str:
    return f"Lat: {lat:.4f}, Lon: {lon:.4f}"


class Geocoder:
    """Thin Nominatim client; lookups that fail return None"""

    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
        timeout: float = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()
        self.headers = {"User-Agent": user_agent, "Accept": "application/json"}
        self.timeout = timeout

    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Any]:
        try:
            resp = self.http.get(
                f"{self.base_url}/{path}",
                params={**params, "format": "json"},
                headers=self.headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except (ValueError, requests.exceptions.RequestException) as e:
            logger.warning("Geocoder {} failed: {}", path, e)
            return None

    def search(self, query: str, limit: int = 5) -> Optional[List[Dict[str, Any]]]:
        data = self._get("search", {"q": query, "limit": limit})
        if not isinstance(data, list):
            return None
        try:
            return [
                {"display_name": item.get("display_name", ""), "lat": float(item["lat"]), "lon": float(item["lon"])}
                for item in data
                if "lat" in item and "lon" in item
            ]
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Geocoder search returned unusable results: {}", e)
            return None

    def reverse(self, lat: float, lon: float) -> Optional[str]:
        data = self._get("reverse", {"lat": lat, "lon": lon})
        if not isinstance(data, dict):
            return None
        return data.get("display_name") or None

    def describe(self, lat: float, lon: float) -> str:
        """Address for a position, or a coordinates label when lookup fails"""
        return self.reverse(lat, lon) or coordinates_label(lat, lon)
