"""Geocoder collaborator and the fan-out that turns locations into markers."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Protocol

from loguru import logger

from .errors import GeocodeError
from .types import GeoPoint, Marker, ParsedLocation, location_marker, user_marker


class Geocoder(Protocol):
    """Maps an address to a coordinate, failing per address."""

    async def geocode(self, address: str) -> GeoPoint: ...


class MappingGeocoder:
    """Geocoder over a fixed address table."""

    def __init__(self, table: Mapping[str, GeoPoint] | None = None) -> None:
        self._table = {key.strip().lower(): value for key, value in (table or {}).items()}

    async def geocode(self, address: str) -> GeoPoint:
        point = self._table.get(address.strip().lower())
        if point is None:
            raise GeocodeError(address)
        return point


async def _locate(geocoder: Geocoder, location: ParsedLocation) -> Marker | None:
    try:
        location.coordinates = await geocoder.geocode(location.address)
    except GeocodeError as exc:
        logger.warning("geocoding.failed address={} error={}", location.address, exc)
        return None
    except Exception:
        logger.exception("geocoding.error address={}", location.address)
        return None
    return location_marker(location)


async def resolve_markers(
    locations: Sequence[ParsedLocation],
    geocoder: Geocoder,
    user_position: GeoPoint,
) -> list[Marker]:
    """Geocode every location concurrently; failed lookups are left out.

    The user marker always comes first, followed by the resolved locations in
    discovery order.
    """
    results = await asyncio.gather(*(_locate(geocoder, location) for location in locations))
    markers = [user_marker(user_position)]
    markers.extend(marker for marker in results if marker is not None)
    logger.info("geocoding.resolved requested={} resolved={}", len(locations), len(markers) - 1)
    return markers
