"""Scene building: classified features → four centered geometry groups."""

import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import trimesh
from trimesh.visual import TextureVisuals

from .classify import classify_features, extrusion_depth, select_structures
from .constants import (CAMERA_DISTANCE_FACTOR, FALLBACK_CAMERA_DISTANCE,
                        MAX_STRUCTURES)
from .geometry import (extrude_footprint, flat_shape, footprint_polygon,
                       make_material, polyline)
from .models import BoundingBox, Layer, VectorFeature
from .obj import export_obj
from .projection import Projector
from .resources import Handle, ResourceArena

logger = logging.getLogger(__name__)


@dataclass
class Primitive:
    """One renderable item: a geometry plus its material, both arena-owned."""
    kind: str                   # 'volume', 'polyline', 'shape'
    geometry: object            # trimesh.Trimesh or trimesh.path.Path3D
    geometry_handle: Handle
    material_handle: Handle
    feature_index: int


class GeometryGroup:
    """All primitives of one layer for one scene generation."""

    def __init__(self, layer: Layer, generation: int, arena: ResourceArena):
        self.layer = layer
        self.generation = generation
        self.arena = arena
        self.primitives: List[Primitive] = []
        self.offset = np.zeros(3)
        self.disposed = False

    def __len__(self):
        return len(self.primitives)

    def add(self, kind: str, geometry, feature_index: int) -> Primitive:
        material = make_material(self.layer.value)
        if isinstance(geometry, trimesh.Trimesh):
            geometry.visual = TextureVisuals(material=material)
        prim = Primitive(
            kind=kind,
            geometry=geometry,
            geometry_handle=self.arena.allocate(self.generation, 'geometry', geometry),
            material_handle=self.arena.allocate(self.generation, 'material', material),
            feature_index=feature_index,
        )
        self.primitives.append(prim)
        return prim

    def translate(self, offset) -> None:
        offset = np.asarray(offset, dtype=np.float64)
        for prim in self.primitives:
            prim.geometry.apply_translation(offset)
        self.offset = self.offset + offset

    def bounds(self) -> Optional[np.ndarray]:
        """(2, 3) bounds of all primitives, None when empty."""
        if not self.primitives:
            return None
        corners = np.vstack([p.geometry.bounds for p in self.primitives])
        return np.array([corners.min(axis=0), corners.max(axis=0)])

    def dispose(self) -> None:
        """Release every geometry/material handle.  Safe to call twice."""
        if self.disposed:
            return
        for prim in self.primitives:
            for handle in (prim.geometry_handle, prim.material_handle):
                if self.arena.is_live(handle):
                    self.arena.release(handle)
        self.primitives = []
        self.disposed = True


@dataclass
class SceneBounds:
    min: np.ndarray
    max: np.ndarray

    @classmethod
    def from_points(cls, points) -> "SceneBounds":
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        return cls(min=pts.min(axis=0), max=pts.max(axis=0))

    @property
    def center(self) -> np.ndarray:
        return (self.min + self.max) / 2.0

    @property
    def size(self) -> np.ndarray:
        return self.max - self.min


@dataclass
class SceneFrame:
    """Result of a successful build: bounds and camera framing."""
    generation: int
    bounds: SceneBounds         # recentered, around the origin
    origin: np.ndarray          # pre-centering bounds center (translation is -origin)
    camera_distance: float
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def camera_position(self) -> np.ndarray:
        d = self.camera_distance
        return np.array([d, d, d])

    @property
    def camera_target(self) -> np.ndarray:
        return np.zeros(3)


def _project(projector: Projector, coords) -> np.ndarray:
    """Projected ring, or an empty array for malformed coordinates."""
    try:
        return projector.project_ring(coords)
    except (TypeError, ValueError) as e:
        logger.debug(f"Skipping malformed coordinates: {e}")
        return np.empty((0, 2))


def _parts(item, getter: str) -> list:
    """Rings or line strings of a feature; [] when its nesting is malformed."""
    try:
        return list(getattr(item.feature.geometry, getter)())
    except (TypeError, IndexError) as e:
        logger.debug(f"Skipping feature {item.index} with malformed coordinates: {e}")
        return []


def camera_distance(bounds: SceneBounds) -> float:
    max_dim = float(np.max(bounds.size))
    if not np.isfinite(max_dim) or max_dim <= 0:
        return FALLBACK_CAMERA_DISTANCE
    return max_dim * CAMERA_DISTANCE_FACTOR


class SceneBuilder:
    """Owns the live scene generation and rebuilds it per region request.

    A build either installs a complete new generation (the old one is
    disposed first) or, when it produces no structures, leaves the live
    scene exactly as it was.
    """

    def __init__(self, arena: Optional[ResourceArena] = None,
                 max_structures: int = MAX_STRUCTURES):
        self.arena = arena or ResourceArena()
        self.max_structures = max_structures
        self.groups: Dict[Layer, GeometryGroup] = {}
        self.frame: Optional[SceneFrame] = None

    @property
    def generation(self) -> Optional[int]:
        return self.frame.generation if self.frame else None

    def build(self, region: BoundingBox,
              features: Sequence[VectorFeature]) -> Optional[SceneFrame]:
        """Build a scene for ``features`` inside ``region``.

        Returns the new :class:`SceneFrame`, or None when nothing was built.
        """
        _t0 = time.perf_counter()
        features = list(features or [])
        if not features:
            logger.info(f"No features for region {region}; scene unchanged")
            return None

        classified = classify_features(features)
        structures = select_structures(classified, self.max_structures)
        projector = Projector(region)

        generation = self.arena.begin_generation()
        try:
            groups, corners = self._build_groups(generation, projector,
                                                 structures, classified)
            if corners:
                bounds = SceneBounds.from_points(corners)
                for group in groups.values():
                    group.translate(-bounds.center)
        except Exception:
            self.arena.release_generation(generation)
            raise

        if not corners:
            released = self.arena.release_generation(generation)
            logger.info(f"No structure geometry in region {region}; scene unchanged "
                        f"(discarded {released} handles)")
            return None

        frame = SceneFrame(
            generation=generation,
            bounds=SceneBounds(min=bounds.min - bounds.center,
                               max=bounds.max - bounds.center),
            origin=bounds.center,
            camera_distance=camera_distance(bounds),
            counts={layer.value: len(group) for layer, group in groups.items()},
        )

        # old generation out before the new one goes in
        self.clear()
        self.groups = groups
        self.frame = frame

        logger.info(f"Built scene generation {generation} for region {region}: "
                    + ", ".join(f"{k}={v}" for k, v in frame.counts.items())
                    + f" in {time.perf_counter() - _t0:.2f}s")
        return frame

    def _build_groups(self, generation: int, projector: Projector,
                      structures, classified):
        """Fill one group per layer for ``generation``; returns (groups, corners)."""
        groups = {layer: GeometryGroup(layer, generation, self.arena) for layer in Layer}
        corners = []

        # ── Structures ──
        for item in structures:
            depth = extrusion_depth(item.height)
            for ring in _parts(item, 'outer_rings'):
                polygon = footprint_polygon(_project(projector, ring))
                if polygon is None:
                    continue
                mesh = extrude_footprint(polygon, depth)
                if mesh is None:
                    continue
                groups[Layer.STRUCTURES].add('volume', mesh, item.index)
                corners.extend(mesh.bounds)

        # ── Transport, green, water ──
        for item in classified:
            if item.layer is Layer.TRANSPORT:
                for line in _parts(item, 'line_strings'):
                    path = polyline(_project(projector, line))
                    if path is not None:
                        groups[Layer.TRANSPORT].add('polyline', path, item.index)
            elif item.layer in (Layer.GREEN, Layer.WATER):
                for ring in _parts(item, 'outer_rings'):
                    polygon = footprint_polygon(_project(projector, ring))
                    if polygon is None:
                        continue
                    mesh = flat_shape(polygon)
                    if mesh is not None:
                        groups[item.layer].add('shape', mesh, item.index)

        return groups, corners

    def clear(self) -> None:
        """Dispose the live generation, if any."""
        if not self.frame:
            return
        for group in self.groups.values():
            group.dispose()
        leaked = self.arena.release_generation(self.frame.generation)
        if leaked:
            logger.warning(f"Released {leaked} orphaned handles of generation "
                           f"{self.frame.generation}")
        self.groups = {}
        self.frame = None

    def to_trimesh_scene(self) -> trimesh.Scene:
        """Assemble the live groups into a ``trimesh.Scene``."""
        scene = trimesh.Scene()
        for layer, group in self.groups.items():
            for i, prim in enumerate(group.primitives):
                scene.add_geometry(prim.geometry, geom_name=f"{layer.value}_{i}")
        return scene

    def combined_mesh(self) -> trimesh.Trimesh:
        """Volumes and flat shapes of the live scene merged into one mesh."""
        verts, faces, offset = [], [], 0
        for group in self.groups.values():
            for prim in group.primitives:
                if not isinstance(prim.geometry, trimesh.Trimesh):
                    continue
                verts.append(np.asarray(prim.geometry.vertices))
                faces.append(np.asarray(prim.geometry.faces) + offset)
                offset += len(prim.geometry.vertices)
        if not verts:
            raise ValueError("No scene to export")
        return trimesh.Trimesh(vertices=np.vstack(verts), faces=np.vstack(faces),
                               process=False)

    def export(self, output_path, file_type: Optional[str] = None) -> str:
        """Write the live scene as GLB or OBJ (type from suffix by default).

        OBJ output holds volumes and shapes only; polylines are GLB-only.
        """
        if not self.frame:
            raise ValueError("No scene to export")
        if file_type is None:
            file_type = pathlib.Path(output_path).suffix.lstrip('.').lower() or 'glb'
        if file_type == 'obj':
            pathlib.Path(output_path).write_text(export_obj(self.combined_mesh()))
        else:
            self.to_trimesh_scene().export(str(output_path), file_type=file_type)
        logger.info(f"Scene exported: {output_path}")
        return str(output_path)
