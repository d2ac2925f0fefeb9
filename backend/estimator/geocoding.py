"""Free-text address search against a Nominatim instance."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from .settings import settings

logger = logging.getLogger(__name__)

MAX_RESULTS = 10


class GeocodingUnavailable(RuntimeError):
    pass


class Place(BaseModel):
    latitude: float
    longitude: float
    display_name: str


def _parse_place(item: dict[str, Any]) -> Place | None:
    try:
        return Place(
            latitude=float(item["lat"]),
            longitude=float(item["lon"]),
            display_name=str(item.get("display_name") or ""),
        )
    except (KeyError, TypeError, ValueError, ValidationError):
        return None


class NominatimGeocoder:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        user_agent: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.GEOCODER_BASE_URL).rstrip("/")
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout = timeout if timeout is not None else settings.GEOCODER_TIMEOUT_SECONDS
        self._client = http_client
        self._owns_client = http_client is None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def search(self, query: str, limit: int = 5) -> list[Place]:
        """Return up to `limit` places matching `query`; blank queries return []."""
        query = (query or "").strip()
        if not query:
            return []
        limit = max(1, min(limit, MAX_RESULTS))

        client = await self._get_client()
        params = {"q": query, "format": "json", "addressdetails": "1", "limit": str(limit)}
        try:
            response = await client.get(
                f"{self.base_url}/search",
                params=params,
                headers={"User-Agent": self.user_agent},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Geocoding request failed: %s", exc)
            raise GeocodingUnavailable(f"Geocoding request failed: {exc}") from exc
        except ValueError as exc:
            raise GeocodingUnavailable("Invalid JSON from geocoder") from exc

        if not isinstance(data, list):
            raise GeocodingUnavailable("Unexpected geocoder payload")
        places = [place for place in map(_parse_place, data) if place is not None]
        return places[:limit]

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


_geocoder: NominatimGeocoder | None = None


def get_geocoder() -> NominatimGeocoder:
    global _geocoder
    if _geocoder is None:
        _geocoder = NominatimGeocoder()
    return _geocoder


async def close_geocoder() -> None:
    global _geocoder
    if _geocoder is not None:
        await _geocoder.aclose()
        _geocoder = None


__all__ = ["GeocodingUnavailable", "NominatimGeocoder", "Place", "close_geocoder", "get_geocoder"]
