"""Data classes and path management."""

import math
import pathlib
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple

from shapely.geometry import Polygon, box

from .constants import OUTPUT_DIR
from .errors import DegenerateRegionError

Coordinate = Tuple[float, float]


class PathManager:
    """Manage output paths."""

    @staticmethod
    def get_output_path(filename: str) -> pathlib.Path:
        """Get the output file path, creating the output directory."""
        path = pathlib.Path(filename)
        if path.is_absolute() or path.parent != pathlib.Path('.'):
            path.parent.mkdir(parents=True, exist_ok=True)
            return path
        OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        return OUTPUT_DIR / filename


@dataclass(frozen=True)
class GeoPoint:
    lon: float
    lat: float


@dataclass(frozen=True)
class BoundingBox:
    """Geographic bounding region in degrees.

    Edges are normalized with min/max so ``west < east`` and
    ``south < north`` always hold.  Zero-width, zero-height and non-finite
    regions are rejected with :class:`DegenerateRegionError`.
    """
    west: float
    south: float
    east: float
    north: float

    def __post_init__(self):
        edges = (self.west, self.south, self.east, self.north)
        if not all(math.isfinite(float(v)) for v in edges):
            raise DegenerateRegionError(f"Non-finite bounding region: {edges}")
        west, east = sorted((float(self.west), float(self.east)))
        south, north = sorted((float(self.south), float(self.north)))
        if west == east or south == north:
            raise DegenerateRegionError(
                f"Degenerate bounding region (zero width or height): {edges}")
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, 'west', west)
        object.__setattr__(self, 'east', east)
        object.__setattr__(self, 'south', south)
        object.__setattr__(self, 'north', north)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "BoundingBox":
        """Build from ``[west, south, east, north]``."""
        if len(values) != 4:
            raise DegenerateRegionError(
                f"Expected [west, south, east, north], got {list(values)}")
        west, south, east, north = values
        return cls(west=west, south=south, east=east, north=north)

    @property
    def center(self) -> Coordinate:
        return ((self.west + self.east) / 2.0, (self.south + self.north) / 2.0)

    @property
    def span(self) -> Coordinate:
        return (self.east - self.west, self.north - self.south)

    def as_list(self) -> list:
        return [self.west, self.south, self.east, self.north]

    def to_polygon(self) -> Polygon:
        """Convert bounding box to shapely polygon."""
        return box(self.west, self.south, self.east, self.north)

    def __str__(self) -> str:
        return (f"[{self.west:.5f}, {self.south:.5f}, "
                f"{self.east:.5f}, {self.north:.5f}]")


class GeometryKind(str, Enum):
    POINT = "Point"
    LINE_STRING = "LineString"
    POLYGON = "Polygon"
    MULTI_POLYGON = "MultiPolygon"
    MULTI_LINE_STRING = "MultiLineString"

    @property
    def is_line(self) -> bool:
        return self in (GeometryKind.LINE_STRING, GeometryKind.MULTI_LINE_STRING)

    @property
    def is_polygon(self) -> bool:
        return self in (GeometryKind.POLYGON, GeometryKind.MULTI_POLYGON)


@dataclass(frozen=True)
class FeatureGeometry:
    """Tagged geometry variant.

    ``coordinates`` follows the GeoJSON nesting for ``kind``:
    Point → (lon, lat); LineString → [pt, ...]; Polygon → [ring, ...];
    MultiLineString → [line, ...]; MultiPolygon → [polygon, ...].
    """
    kind: GeometryKind
    coordinates: tuple

    def outer_rings(self) -> list:
        """Outer ring of each polygon part.  Inner rings (holes) are dropped."""
        kind = self.kind
        if kind is GeometryKind.POLYGON:
            return [self.coordinates[0]] if self.coordinates else []
        if kind is GeometryKind.MULTI_POLYGON:
            return [poly[0] for poly in self.coordinates if poly]
        if kind in (GeometryKind.POINT, GeometryKind.LINE_STRING,
                    GeometryKind.MULTI_LINE_STRING):
            return []
        raise ValueError(f"Unhandled geometry kind: {kind!r}")

    def line_strings(self) -> list:
        """Each independent line string of a line-shaped geometry."""
        kind = self.kind
        if kind is GeometryKind.LINE_STRING:
            return [self.coordinates]
        if kind is GeometryKind.MULTI_LINE_STRING:
            return list(self.coordinates)
        if kind in (GeometryKind.POINT, GeometryKind.POLYGON,
                    GeometryKind.MULTI_POLYGON):
            return []
        raise ValueError(f"Unhandled geometry kind: {kind!r}")


@dataclass(frozen=True)
class VectorFeature:
    geometry: FeatureGeometry
    properties: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        props = {str(k): str(v) for k, v in dict(self.properties).items()
                 if v is not None}
        object.__setattr__(self, 'properties', MappingProxyType(props))

    def tag(self, key: str) -> Optional[str]:
        """Non-empty tag value, or None."""
        value = self.properties.get(key)
        return value if value else None


class Layer(str, Enum):
    STRUCTURES = "structures"
    TRANSPORT = "transport"
    GREEN = "green"
    WATER = "water"


@dataclass(frozen=True)
class ClassifiedFeature:
    feature: VectorFeature
    layer: Layer
    index: int                      # position in the input collection
    height: Optional[float] = None  # meters, structures only
