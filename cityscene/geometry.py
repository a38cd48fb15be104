"""Footprint polygons, extrusion, flat shapes and polylines in scene space.

Projected features live on the (x, y) plane.  Scene output is Y-up (the
glTF convention), so every primitive is rotated -90° about X:
(x, y, z) → (x, z, -y).  Extrusion therefore grows along +Y.
"""

import math
import logging
from typing import Optional

import numpy as np
import shapely
import trimesh
from shapely.geometry import Polygon
from shapely.geometry.polygon import orient
from trimesh.path import Path3D
from trimesh.path.entities import Line
from trimesh.visual.material import PBRMaterial

from .constants import LAYER_STYLES

logger = logging.getLogger(__name__)

Y_UP = trimesh.transformations.rotation_matrix(-math.pi / 2.0, [1, 0, 0])


# ── Footprints ───────────────────────────────────────────────────────────

def footprint_polygon(points) -> Optional[Polygon]:
    """Shapely polygon from an (N, 2) projected outer ring.

    Self-intersecting rings are repaired with a zero buffer; if that splits
    the ring the largest piece is kept.
    """
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 3 or np.isnan(pts).any():
        return None

    try:
        polygon = Polygon(pts)
        if not polygon.is_valid:
            polygon = polygon.buffer(0)
    except Exception as e:
        logger.debug(f"Unusable footprint ring: {e}")
        return None

    if polygon.geom_type == 'MultiPolygon':
        polygon = max(polygon.geoms, key=lambda p: p.area)
    if polygon.geom_type != 'Polygon' or polygon.is_empty or polygon.area <= 0:
        return None
    # outer ring only
    return orient(Polygon(polygon.exterior.coords))


# ── Meshes ───────────────────────────────────────────────────────────────

def triangulate(polygon: Polygon):
    """Constrained Delaunay triangulation of ``polygon``.

    Returns ``(vertices, faces)``: unique (N, 2) points and (M, 3) indices,
    every triangle wound counter-clockwise.  Concave outlines stay inside
    their footprint.
    """
    triangles = shapely.constrained_delaunay_triangles(polygon)
    corners = [np.asarray(t.exterior.coords)[:3] for t in triangles.geoms]
    if not corners:
        return np.empty((0, 2)), np.empty((0, 3), dtype=np.int64)

    points = np.vstack(corners)
    vertices, inverse = np.unique(points, axis=0, return_inverse=True)
    faces = inverse.reshape(-1, 3).astype(np.int64)

    a, b, c = vertices[faces[:, 0]], vertices[faces[:, 1]], vertices[faces[:, 2]]
    cross = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (c[:, 0] - a[:, 0])
    faces[cross < 0] = faces[cross < 0][:, ::-1]
    return vertices, faces[cross != 0]


def extrude_footprint(polygon: Polygon, depth: float) -> Optional[trimesh.Trimesh]:
    """Extrude ``polygon`` by ``depth`` scene units, returned Y-up."""
    try:
        verts_2d, faces = triangulate(polygon)
        if len(faces) == 0:
            return None
        mesh = trimesh.creation.extrude_triangulation(verts_2d, faces, height=depth)
    except Exception as e:
        logger.warning(f"Footprint extrusion failed: {e}")
        return None
    mesh.apply_transform(Y_UP)
    return mesh


def flat_shape(polygon: Polygon) -> Optional[trimesh.Trimesh]:
    """Triangulated, non-extruded polygon lying on the ground plane."""
    try:
        verts_2d, faces = triangulate(polygon)
    except Exception as e:
        logger.warning(f"Polygon triangulation failed: {e}")
        return None
    if len(faces) == 0:
        return None

    verts = np.column_stack([verts_2d, np.zeros(len(verts_2d))])
    mesh = trimesh.Trimesh(vertices=verts, faces=faces, process=False)
    mesh.apply_transform(Y_UP)
    return mesh


def polyline(points) -> Optional[Path3D]:
    """Open polyline through (N, 2) projected points, order preserved."""
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 2:
        return None
    verts = trimesh.transform_points(
        np.column_stack([pts[:, :2], np.zeros(len(pts))]), Y_UP)
    return Path3D(entities=[Line(points=np.arange(len(verts)))],
                  vertices=verts, process=False)


def make_material(style_name: str) -> PBRMaterial:
    """PBR material for a layer style in ``LAYER_STYLES``."""
    style = LAYER_STYLES[style_name]
    return PBRMaterial(
        name=style_name,
        baseColorFactor=style['color'],
        metallicFactor=style['metallic'],
        roughnessFactor=style['roughness'],
        doubleSided=True,
    )


def polyline_points(path: Path3D) -> np.ndarray:
    """Vertices of a single-entity polyline in drawing order."""
    return np.asarray(path.vertices)[path.entities[0].points]
