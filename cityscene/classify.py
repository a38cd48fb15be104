"""Feature classification and building height estimation."""

import logging
import math
from typing import Iterable, List, Optional

from .constants import (DEFAULT_HEIGHT, DEPTH_DIVISOR, MAX_DEPTH, MIN_DEPTH,
                        METERS_PER_LEVEL)
from .models import ClassifiedFeature, Layer, VectorFeature

logger = logging.getLogger(__name__)

STRUCTURE_TAGS = ('building', 'building:part', 'building:use')
HEIGHT_TAGS = ('height', 'building:height')
LEVEL_TAGS = ('levels', 'building:levels')


def classify_feature(feature: VectorFeature) -> Optional[Layer]:
    """Assign ``feature`` to a layer, or None when it is not rendered.

    Rules are checked in order: highways (lines), buildings (polygons),
    parks/grass (polygons), water (polygons).  Only the outer ring of a
    polygon is ever used downstream; holes are ignored.
    """
    kind = feature.geometry.kind

    if feature.tag('highway') and kind.is_line:
        return Layer.TRANSPORT
    if not kind.is_polygon:
        return None
    if any(feature.tag(t) for t in STRUCTURE_TAGS):
        return Layer.STRUCTURES
    if feature.tag('leisure') == 'park' or feature.tag('landuse') == 'grass':
        return Layer.GREEN
    if feature.tag('natural') == 'water' or feature.tag('waterway') == 'riverbank':
        return Layer.WATER
    return None


def _parse_meters(value) -> Optional[float]:
    """Parse a height tag like ``"15"`` or ``"12.5 m"``; None if unusable."""
    if value is None:
        return None
    try:
        h = float(str(value).strip().removesuffix('m').strip())
    except ValueError:
        return None
    if not math.isfinite(h):
        return None
    return h


def estimate_height(properties) -> float:
    """Building height in meters.

    ``height`` → ``building:height`` → levels × 3 m → 10 m.  Tags that do not
    parse fall through to the next source.
    """
    for tag in HEIGHT_TAGS:
        h = _parse_meters(properties.get(tag))
        if h is not None:
            return h
    for tag in LEVEL_TAGS:
        levels = _parse_meters(properties.get(tag))
        if levels is not None:
            return levels * METERS_PER_LEVEL
    return DEFAULT_HEIGHT


def extrusion_depth(height: float) -> float:
    """Compress a height in meters into scene units (2..30)."""
    return min(MAX_DEPTH, max(MIN_DEPTH, height / DEPTH_DIVISOR))


def classify_features(features: Iterable[VectorFeature]) -> List[ClassifiedFeature]:
    """Classify a collection, dropping unrendered features.

    Structures carry their estimated height.  Input order is kept.
    """
    result = []
    dropped = 0
    for index, feature in enumerate(features):
        layer = classify_feature(feature)
        if layer is None:
            dropped += 1
            continue
        height = estimate_height(feature.properties) if layer is Layer.STRUCTURES else None
        result.append(ClassifiedFeature(feature=feature, layer=layer,
                                        index=index, height=height))
    if dropped:
        logger.debug(f"Dropped {dropped} unclassified features")
    return result


def select_structures(classified: Iterable[ClassifiedFeature],
                      limit: int) -> List[ClassifiedFeature]:
    """Tallest ``limit`` structures by raw height, ties in input order."""
    structures = [c for c in classified if c.layer is Layer.STRUCTURES]
    # sorted() is stable, also with reverse=True
    ranked = sorted(structures, key=lambda c: c.height, reverse=True)
    if len(ranked) > limit:
        logger.info(f"Capping structures: keeping {limit} of {len(ranked)} tallest")
    return ranked[:limit]
