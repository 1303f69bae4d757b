"""Map presentation state driven by extracted locations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .types import GeoPoint, Marker


@dataclass(frozen=True)
class Bounds:
    southwest: GeoPoint
    northeast: GeoPoint

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(
            (self.southwest.latitude + self.northeast.latitude) / 2,
            (self.southwest.longitude + self.northeast.longitude) / 2,
        )


def marker_bounds(markers: Sequence[Marker]) -> Bounds | None:
    """Smallest box containing every marker, for fitting the camera."""
    if not markers:
        return None
    latitudes = [marker.position.latitude for marker in markers]
    longitudes = [marker.position.longitude for marker in markers]
    return Bounds(
        southwest=GeoPoint(min(latitudes), min(longitudes)),
        northeast=GeoPoint(max(latitudes), max(longitudes)),
    )


class MapState:
    """Toggle, visibility and the marker set for the latest query.

    ``generation`` changes every time the state is cleared, so results computed
    for an earlier query can be recognised and dropped.
    """

    def __init__(self) -> None:
        self.show_toggle = False
        self.visible = False
        self._markers: tuple[Marker, ...] = ()
        self.generation = 0

    @property
    def markers(self) -> tuple[Marker, ...]:
        return self._markers

    def replace_markers(self, markers: Iterable[Marker]) -> tuple[Marker, ...]:
        self._markers = tuple(markers)
        return self._markers

    def clear(self) -> None:
        self.show_toggle = False
        self.visible = False
        self._markers = ()
        self.generation += 1

    def toggle(self) -> Bounds | None:
        """Flip visibility; returns the bounds to fit when the map is shown."""
        self.visible = not self.visible
        if self.visible:
            return marker_bounds(self._markers)
        return None
