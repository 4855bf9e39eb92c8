"""Nominatim-compatible forward and reverse geocoding over HTTP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.config.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


class GeocodingError(RuntimeError):
    """Raised when the geocoding provider cannot be reached or answers badly."""


class NominatimGeocoder:
    """Look up coordinates for addresses and addresses for coordinates.

    No-match answers are returned as ``None``; transport and decoding
    problems raise :class:`GeocodingError`.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        user_agent: str | None = None,
        country_codes: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.geocoding.base_url).rstrip("/")
        self._user_agent = user_agent or settings.geocoding.user_agent
        self._country_codes = country_codes or settings.geocoding.country_codes
        self._timeout = timeout
        self._transport = transport

    async def forward(self, query: str) -> GeoPoint | None:
        params: dict[str, Any] = {"q": query, "format": "jsonv2", "limit": 1}
        if self._country_codes:
            params["countrycodes"] = self._country_codes
        data = await self._get("/search", params)
        if not isinstance(data, list) or not data:
            return None
        first = data[0]
        try:
            return GeoPoint(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError(f"Unexpected search payload: {first!r}") from exc

    async def reverse(self, latitude: float, longitude: float) -> str | None:
        data = await self._get(
            "/reverse",
            {"lat": latitude, "lon": longitude, "format": "jsonv2"},
        )
        if not isinstance(data, dict) or data.get("error"):
            return None
        display_name = data.get("display_name")
        if isinstance(display_name, str) and display_name.strip():
            return display_name.strip()
        return None

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": self._user_agent},
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(path, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                raise GeocodingError(
                    f"Geocoding provider answered {e.response.status_code}"
                ) from e
            except httpx.RequestError as e:
                raise GeocodingError(f"Unable to reach geocoding provider: {e}") from e
            except ValueError as e:
                raise GeocodingError(f"Invalid geocoding response: {e}") from e


__all__ = ["GeoPoint", "GeocodingError", "NominatimGeocoder"]
