"""Decoding GeoJSON into :class:`VectorFeature` collections."""

import json
import logging
from pathlib import Path
from typing import List

from .models import FeatureGeometry, GeometryKind, VectorFeature

logger = logging.getLogger(__name__)

_KINDS = {k.value: k for k in GeometryKind}


def _freeze(coords):
    """Nested lists → nested tuples, so features stay immutable."""
    if isinstance(coords, (list, tuple)):
        return tuple(_freeze(c) for c in coords)
    return coords


def feature_from_geojson(geometry: dict, properties: dict = None):
    """One ``VectorFeature``, or None for unsupported/empty geometry."""
    if not geometry:
        return None
    kind = _KINDS.get(geometry.get("type"))
    if kind is None:
        logger.debug(f"Skipping unsupported geometry type {geometry.get('type')!r}")
        return None
    coords = geometry.get("coordinates")
    if not coords:
        return None
    return VectorFeature(geometry=FeatureGeometry(kind=kind, coordinates=_freeze(coords)),
                         properties=properties or {})


def load_features(geojson) -> List[VectorFeature]:
    """Decode a FeatureCollection, Feature or bare geometry.

    Parameters
    ----------
    geojson : str, Path or dict
        File path or parsed GeoJSON object.

    Returns
    -------
    list of VectorFeature
        In input order.  Unsupported geometry types (e.g. MultiPoint,
        GeometryCollection members) and null geometries are skipped.
    """
    if isinstance(geojson, (str, Path)):
        path = Path(geojson)
        if not path.exists():
            raise FileNotFoundError(f"GeoJSON file not found: {path}")
        with open(path) as f:
            geojson = json.load(f)

    if not isinstance(geojson, dict):
        raise TypeError(f"Expected dict, str, or Path, got {type(geojson)}")

    gtype = geojson.get("type")
    if gtype == "FeatureCollection":
        results = []
        for feature in geojson.get("features") or []:
            results.extend(load_features(feature))
        return results

    if gtype == "Feature":
        feature = feature_from_geojson(geojson.get("geometry"),
                                       geojson.get("properties") or {})
        return [feature] if feature is not None else []

    if gtype in _KINDS:
        feature = feature_from_geojson(geojson)
        return [feature] if feature is not None else []

    if gtype in ("MultiPoint", "GeometryCollection"):
        logger.debug(f"Skipping unsupported GeoJSON type {gtype!r}")
        return []

    raise ValueError(f"Unsupported GeoJSON type: {gtype}")
