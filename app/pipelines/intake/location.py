"""Location enrichment applied to every extracted record."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

from app.config.settings import settings
from app.services.geocoding import GeocodingError

from .types import EmergencyRecord, GeoPoint

logger = logging.getLogger("app.services.intake_pipeline")


class Geocoder(Protocol):
    async def forward(self, query: str) -> Optional[GeoPoint]: ...

    async def reverse(self, latitude: float, longitude: float) -> Optional[str]: ...


class LocationResolver:
    """Fill in coordinates or a place name for a record.

    Lookups are cached per resolver (one resolver per call), so repeating
    the same location across turns does not hit the provider again and the
    enriched record stays stable for change detection.
    """

    def __init__(self, geocoder: Geocoder, *, timeout_seconds: float | None = None) -> None:
        self._geocoder = geocoder
        self._timeout_seconds = (
            settings.intake.geocoding_timeout_seconds
            if timeout_seconds is None
            else timeout_seconds
        )
        self._forward_cache: dict[str, Optional[GeoPoint]] = {}
        self._reverse_cache: dict[tuple[float, float], Optional[str]] = {}

    async def resolve_text(self, query: str) -> Optional[GeoPoint]:
        key = _normalize_place(query)
        if not key:
            return None
        if key in self._forward_cache:
            return self._forward_cache[key]
        ok, point = await self._lookup(self._geocoder.forward(query))
        if ok:
            self._forward_cache[key] = point
        return point

    async def resolve_coordinates(self, latitude: float, longitude: float) -> Optional[str]:
        key = (round(latitude, 5), round(longitude, 5))
        if key in self._reverse_cache:
            return self._reverse_cache[key]
        ok, place = await self._lookup(self._geocoder.reverse(latitude, longitude))
        if ok:
            self._reverse_cache[key] = place
        return place

    async def enrich(
        self,
        record: Optional[EmergencyRecord],
        hint: Optional[GeoPoint] = None,
        previous: Optional[EmergencyRecord] = None,
    ) -> Optional[EmergencyRecord]:
        """Fill coordinates or a place name into ``record``.

        ``previous`` is the record currently held for the call. When the
        caller has moved the location but the coordinates were carried over
        unchanged from ``previous``, those coordinates are discarded and the
        new location text is geocoded instead.
        """

        if record is None:
            return None

        updates: dict[str, object] = {}
        if hint is not None:
            if (record.latitude, record.longitude) != (hint.latitude, hint.longitude):
                updates.update(latitude=hint.latitude, longitude=hint.longitude)
        elif record.location:
            stale = _carries_stale_coordinates(record, previous)
            if stale:
                updates.update(latitude=None, longitude=None)
            if stale or not record.has_coordinates:
                point = await self.resolve_text(record.location)
                if point is not None:
                    updates.update(latitude=point.latitude, longitude=point.longitude)

        latitude = updates.get("latitude", record.latitude)
        longitude = updates.get("longitude", record.longitude)
        if not record.location and latitude is not None and longitude is not None:
            place = await self.resolve_coordinates(latitude, longitude)
            if place:
                updates["location"] = place

        if not updates:
            return record
        return record.model_copy(update=updates)

    async def _lookup(self, lookup) -> tuple[bool, Any]:
        # Failed lookups are not cached so the next turn can retry.
        try:
            return True, await asyncio.wait_for(lookup, timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Geocoding timed out after %.1fs", self._timeout_seconds)
        except GeocodingError as exc:
            logger.warning("Geocoding failed: %s", exc)
        return False, None


def _normalize_place(text: Optional[str]) -> str:
    return " ".join((text or "").lower().split())


def _carries_stale_coordinates(
    record: EmergencyRecord, previous: Optional[EmergencyRecord]
) -> bool:
    if previous is None or not record.has_coordinates:
        return False
    if _normalize_place(record.location) == _normalize_place(previous.location):
        return False
    return (record.latitude, record.longitude) == (previous.latitude, previous.longitude)


__all__ = ["Geocoder", "LocationResolver"]
