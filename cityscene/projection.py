"""Local equirectangular projection of lon/lat into scene units.

The bounding region is stretched onto a fixed square of side
``2 * HALF_EXTENT`` whatever its real-world size, so distances are not
preserved.  Good enough for the small regions the selector allows; not a
geodesic projection.
"""

import numpy as np

from .constants import HALF_EXTENT, SPAN_EPSILON
from .models import BoundingBox


class Projector:
    """Project geographic coordinates inside ``region`` onto the scene plane."""

    def __init__(self, region: BoundingBox, half_extent: float = HALF_EXTENT):
        self.region = region
        self.half_extent = half_extent
        self.cx, self.cy = region.center
        self.span_lon = max(region.east - region.west, SPAN_EPSILON)
        self.span_lat = max(region.north - region.south, SPAN_EPSILON)

    def project(self, lon: float, lat: float) -> tuple:
        nx = (lon - self.cx) / self.span_lon
        ny = (lat - self.cy) / self.span_lat
        return (nx * 2.0 * self.half_extent, ny * 2.0 * self.half_extent)

    def project_ring(self, coords) -> np.ndarray:
        """Project a sequence of (lon, lat[, ...]) pairs to an (N, 2) array."""
        pts = np.asarray(coords, dtype=np.float64)
        if pts.size == 0:
            return np.empty((0, 2), dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] < 2:
            raise ValueError(f"Expected (N, 2+) coordinates, got shape {pts.shape}")
        pts = pts[:, :2]
        scale = 2.0 * self.half_extent
        out = np.empty_like(pts)
        out[:, 0] = (pts[:, 0] - self.cx) / self.span_lon * scale
        out[:, 1] = (pts[:, 1] - self.cy) / self.span_lat * scale
        return out


def project(lon: float, lat: float, region: BoundingBox,
            half_extent: float = HALF_EXTENT) -> tuple:
    """Project a single point; see :class:`Projector`."""
    return Projector(region, half_extent).project(lon, lat)
