import logging
from urllib.parse import quote

from app.errors import ConfigurationError, UpstreamError
from app.integrations.http import HttpFailure, request_json


class MapboxGeocoder:
    base_url = "https://api.mapbox.com/geocoding/v5/mapbox.places"

    def __init__(self, token, timeout=8, logger=None):
        self.token = token
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    @property
    def is_configured(self):
        return bool(self.token)

    def _fetch(self, path, params):
        if not self.is_configured:
            self.logger.error("Mapbox token not configured")
            raise ConfigurationError("Mapbox token not configured")
        query = {"access_token": self.token, "language": "en"}
        query.update(params)
        try:
            status, payload = request_json("GET", f"{self.base_url}/{path}.json", params=query, timeout=self.timeout)
        except HttpFailure as exc:
            self.logger.error("Mapbox request failed: %s", exc)
            raise UpstreamError("Failed to geocode location") from exc
        if not 200 <= status < 300 or payload is None:
            self.logger.error("Mapbox API error %s: %s", status, payload)
            raise UpstreamError("Failed to geocode location")
        return payload.get("features") or []

    def reverse(self, latitude, longitude):
        return self._fetch(
            f"{longitude},{latitude}",
            {"types": "address,neighborhood,locality,place,district,region"},
        )

    def search(self, query, country="in", limit=10):
        return self._fetch(
            quote(query, safe=""),
            {"country": country, "types": "place,locality,neighborhood,district", "limit": limit},
        )
