"""Drag-rectangle region selection with a geodesic side-length cap."""

import logging
from enum import Enum
from typing import Callable, List, Optional

from geopy.distance import geodesic

from .constants import MAX_SIDE_M, MIN_REGION_SPAN
from .models import BoundingBox, GeoPoint

logger = logging.getLogger(__name__)


def _default_resolver(pointer) -> Optional[GeoPoint]:
    if pointer is None:
        return None
    if isinstance(pointer, GeoPoint):
        return pointer
    lon, lat = pointer
    return GeoPoint(lon=float(lon), lat=float(lat))


def clamp_region(a: GeoPoint, b: GeoPoint, max_side: float = MAX_SIDE_M) -> BoundingBox:
    """Rectangle spanned by anchor ``a`` and point ``b``, each side ≤ ``max_side`` m.

    East-west distance is measured along latitude ``a.lat`` and north-south
    distance along longitude ``a.lon``, both on the WGS-84 ellipsoid.  An
    axis over the limit has its offset from ``a`` scaled down so that side
    is ``max_side`` long; the other axis keeps ``b``'s value.
    """
    dx = geodesic((a.lat, a.lon), (a.lat, b.lon)).meters
    dy = geodesic((a.lat, a.lon), (b.lat, a.lon)).meters

    lon, lat = b.lon, b.lat
    if dx > max_side:
        lon = a.lon + (b.lon - a.lon) * (max_side / dx)
    if dy > max_side:
        lat = a.lat + (b.lat - a.lat) * (max_side / dy)

    west, east = min(a.lon, lon), max(a.lon, lon)
    south, north = min(a.lat, lat), max(a.lat, lat)
    if east - west < MIN_REGION_SPAN:
        east = west + MIN_REGION_SPAN
    if north - south < MIN_REGION_SPAN:
        north = south + MIN_REGION_SPAN
    return BoundingBox(west=west, south=south, east=east, north=north)


class SelectorState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class RegionSelector:
    """Track a drag gesture and emit a clamped bounding region.

    ``resolver`` maps a pointer position to a :class:`GeoPoint` (or None when
    the pointer is off the map).  ``on_panning`` is told whether map panning
    should be enabled; panning is suspended for the whole drag.
    """

    def __init__(self, resolver: Callable = _default_resolver,
                 max_side: float = MAX_SIDE_M,
                 on_panning: Optional[Callable[[bool], None]] = None):
        self.resolver = resolver
        self.max_side = max_side
        self.on_panning = on_panning
        self.state = SelectorState.IDLE
        self.anchor: Optional[GeoPoint] = None
        self.live: Optional[GeoPoint] = None
        self.finalized: Optional[BoundingBox] = None
        self._listeners: List[Callable[[BoundingBox], None]] = []

    @property
    def dragging(self) -> bool:
        return self.state is SelectorState.DRAGGING

    def subscribe(self, listener: Callable[[BoundingBox], None]) -> None:
        self._listeners.append(listener)

    def drag_start(self, pointer) -> bool:
        point = self.resolver(pointer)
        if point is None:
            return False
        self.anchor = self.live = point
        self.state = SelectorState.DRAGGING
        self._set_panning(False)
        return True

    def drag_move(self, pointer) -> Optional[BoundingBox]:
        if not self.dragging:
            return None
        point = self.resolver(pointer)
        if point is not None:
            self.live = point
        return self.preview()

    def preview(self) -> Optional[BoundingBox]:
        """Clamped rectangle for the current drag, without finalizing."""
        if self.anchor is None or self.live is None:
            return None
        return clamp_region(self.anchor, self.live, self.max_side)

    def drag_end(self, pointer=None) -> Optional[BoundingBox]:
        if not self.dragging:
            return None
        if pointer is not None:
            point = self.resolver(pointer)
            if point is not None:
                self.live = point
        region = clamp_region(self.anchor, self.live, self.max_side)
        self.state = SelectorState.IDLE
        self.anchor = self.live = None
        self.finalized = region
        self._set_panning(True)

        logger.info(f"Selected region {region}")
        for listener in self._listeners:
            listener(region)
        return region

    def _set_panning(self, enabled: bool) -> None:
        if self.on_panning is not None:
            self.on_panning(enabled)
