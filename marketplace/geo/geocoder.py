import logging
from abc import ABC, abstractmethod
from typing import Tuple

import httpx

logger = logging.getLogger(__name__)

Coordinates = Tuple[float, float]
DEFAULT_COORDINATES: Coordinates = (0.0, 0.0)


class AbstractGeocoder(ABC):

    @abstractmethod
    async def geocode(self, address: str) -> Coordinates:
        """Retourne (latitude, longitude), ou (0, 0) si l'adresse n'a pas pu être localisée."""
        raise NotImplementedError


class GoogleGeocoder(AbstractGeocoder):
    """Géocodage via l'API Google Geocoding. Ne lève jamais d'exception."""

    def __init__(self, api_key: str, api_url: str, timeout: float = 5.0):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout

    async def geocode(self, address: str) -> Coordinates:
        if not self.api_key:
            logger.warning("[GoogleGeocoder] GOOGLE_MAPS_API_KEY non défini, géocodage ignoré.")
            return DEFAULT_COORDINATES

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                response = await client.get(self.api_url, params={"address": address, "key": self.api_key})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[GoogleGeocoder] Échec du géocodage de '{address}': {e}")
            return DEFAULT_COORDINATES

        if data.get("status") != "OK" or not data.get("results"):
            logger.warning(f"[GoogleGeocoder] Aucun résultat pour '{address}' (statut: {data.get('status')}).")
            return DEFAULT_COORDINATES

        location = data["results"][0]["geometry"]["location"]
        return float(location["lat"]), float(location["lng"])
