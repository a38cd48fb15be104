"""Interactive mesh viewer state: one active mesh, its pose and the camera.

States::

    EMPTY ──load_mesh──▶ LOADED ──load_mesh / set_rotation / center_and_ground──▶ LOADED
      │                    │
      └──────dispose───────┴──▶ DISPOSED (terminal)

Every transition that changes the mesh pose recomputes the world-space
bounds and reframes the camera from them.  Near/far planes scale with the
mesh so both tiny and very large imports stay inside the clip range.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np
import trimesh
from trimesh.visual import TextureVisuals

from .constants import (REQUEST_TIMEOUT, VIEWER_DEFAULT_DISTANCE,
                        VIEWER_DISTANCE_FACTOR, VIEWER_FOV, VIEWER_MIN_FAR,
                        VIEWER_MIN_NEAR)
from .errors import InputError, MeshParseError, ViewerDisposedError
from .geometry import make_material
from .obj import create_indexed_mesh, parse_obj
from .resources import Handle, ResourceArena

logger = logging.getLogger(__name__)


class ViewerState(str, Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    DISPOSED = "disposed"


class ViewPreset(str, Enum):
    DEFAULT = "default"
    TOP = "top"
    FRONT = "front"


@dataclass
class Camera:
    position: np.ndarray = field(default_factory=lambda: np.array([100.0, 100.0, 100.0]))
    target: np.ndarray = field(default_factory=lambda: np.zeros(3))
    up: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))
    fov: float = VIEWER_FOV
    near: float = 0.1
    far: float = 10000.0

    def look_at(self) -> np.ndarray:
        """4x4 camera-to-world transform (camera looks down its -Z)."""
        forward = self.target - self.position
        norm = np.linalg.norm(forward)
        if norm == 0:
            return np.eye(4)
        z = -forward / norm
        x = np.cross(self.up, z)
        if np.linalg.norm(x) < 1e-12:
            # looking straight along up: pick any perpendicular
            x = np.cross([0.0, 0.0, -1.0], z)
        x = x / np.linalg.norm(x)
        y = np.cross(z, x)
        matrix = np.eye(4)
        matrix[:3, 0], matrix[:3, 1], matrix[:3, 2] = x, y, z
        matrix[:3, 3] = self.position
        return matrix


@dataclass
class Framing:
    center: np.ndarray
    distance: float
    near: float
    far: float
    bounds: np.ndarray      # (2, 3) world-space bounds


def rotation_matrix(rotation_deg) -> np.ndarray:
    """Euler XYZ rotation (degrees) as a 4x4 matrix, R = Rx · Ry · Rz."""
    rx, ry, rz = (math.radians(float(a)) for a in rotation_deg)
    return trimesh.transformations.euler_matrix(rx, ry, rz, 'rxyz')


def frame_bounds(bounds: np.ndarray) -> Framing:
    """Camera framing for world-space ``bounds``."""
    size = bounds[1] - bounds[0]
    max_dim = float(np.max(size)) if np.all(np.isfinite(size)) else 0.0
    max_dim = max_dim or 1.0
    return Framing(
        center=(bounds[0] + bounds[1]) / 2.0,
        distance=max_dim * VIEWER_DISTANCE_FACTOR,
        near=max(VIEWER_MIN_NEAR, max_dim / 1000.0),
        far=max(VIEWER_MIN_FAR, max_dim * 20.0),
        bounds=bounds,
    )


def snapshot_frame(text: str) -> Framing:
    """Framing for a one-off snapshot render of OBJ ``text``.

    The snapshot path converts Z-up models to Y-up by rotating -90° about X;
    no viewer state is touched.
    """
    mesh = create_indexed_mesh(parse_obj(text))
    world = trimesh.transform_points(mesh.vertices, rotation_matrix((-90.0, 0.0, 0.0)))
    return frame_bounds(np.array([world.min(axis=0), world.max(axis=0)]))


@dataclass
class _ActiveMesh:
    mesh: trimesh.Trimesh
    source_text: str
    generation: int
    geometry_handle: Handle
    material_handle: Handle
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))


class MeshViewer:
    """Single-mesh viewer state machine."""

    def __init__(self, arena: Optional[ResourceArena] = None):
        self.arena = arena or ResourceArena()
        self.state = ViewerState.EMPTY
        self.rotation = np.zeros(3)             # degrees
        self.view_center = np.zeros(3)
        self.view_distance = VIEWER_DEFAULT_DISTANCE
        self.camera = Camera()
        self._active: Optional[_ActiveMesh] = None

        # camera controls and renderer live for the viewer's whole lifetime
        self._session = self.arena.begin_generation()
        self._controls = self.arena.allocate(self._session, 'controls', self.camera)
        self._renderer = self.arena.allocate(self._session, 'renderer', None)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def mesh(self) -> Optional[trimesh.Trimesh]:
        return self._active.mesh if self._active else None

    @property
    def position(self) -> np.ndarray:
        return self._active.position.copy() if self._active else np.zeros(3)

    @property
    def generation(self) -> Optional[int]:
        return self._active.generation if self._active else None

    def world_matrix(self) -> np.ndarray:
        matrix = rotation_matrix(self.rotation)
        if self._active is not None:
            matrix[:3, 3] += self._active.position
        return matrix

    def world_vertices(self) -> np.ndarray:
        self._require_loaded()
        return trimesh.transform_points(self._active.mesh.vertices, self.world_matrix())

    def world_bounds(self) -> np.ndarray:
        verts = self.world_vertices()
        return np.array([verts.min(axis=0), verts.max(axis=0)])

    def export_text(self) -> str:
        """The OBJ text the active mesh was loaded from, verbatim."""
        self._require_loaded()
        return self._active.source_text

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def load_mesh(self, text: str) -> Framing:
        """Replace the active mesh with one parsed from OBJ ``text``.

        Parsing happens first; on failure the current mesh and camera are
        left untouched.
        """
        self._check_alive()
        mesh = create_indexed_mesh(parse_obj(text))

        self._release_active()

        generation = self.arena.begin_generation()
        material = make_material('mesh')
        mesh.visual = TextureVisuals(material=material)
        self._active = _ActiveMesh(
            mesh=mesh,
            source_text=text,
            generation=generation,
            geometry_handle=self.arena.allocate(generation, 'geometry', mesh),
            material_handle=self.arena.allocate(generation, 'material', material),
        )
        self.state = ViewerState.LOADED
        logger.info(f"Loaded mesh: {len(mesh.vertices)} vertices, "
                    f"{len(mesh.faces)} triangles")
        return self._reframe()

    def set_rotation(self, x: float, y: float, z: float) -> Optional[Framing]:
        """Set the mesh rotation in degrees.

        Without a mesh only the stored rotation changes; it is applied to
        the next load.
        """
        self._check_alive()
        self.rotation = np.array([x, y, z], dtype=np.float64)
        if self.state is not ViewerState.LOADED:
            return None
        return self._reframe()

    def center_and_ground(self) -> Optional[Framing]:
        """Move the mesh onto the origin horizontally and onto y = 0."""
        self._check_alive()
        if self.state is not ViewerState.LOADED:
            return None
        lo, hi = self.world_bounds()
        center = (lo + hi) / 2.0
        self._active.position = self._active.position + np.array(
            [-center[0], -lo[1], -center[2]])
        return self._reframe()

    def apply_view_preset(self, kind) -> Camera:
        """Move the camera around the current view center; the mesh stays."""
        self._check_alive()
        kind = ViewPreset(kind)
        c = self.view_center.copy()
        d = self.view_distance or VIEWER_DEFAULT_DISTANCE
        if kind is ViewPreset.TOP:
            offset = np.array([0.0, d, 0.0])
        elif kind is ViewPreset.FRONT:
            offset = np.array([0.0, 0.0, d])
        else:
            offset = np.array([d, d, d])
        self.camera.up = np.array([0.0, 1.0, 0.0])
        self.camera.position = c + offset
        self.camera.target = c
        return self.camera

    def dispose(self) -> None:
        """Release mesh, controls and renderer.  The viewer is unusable after."""
        if self.state is ViewerState.DISPOSED:
            return
        self._release_active()
        self.arena.release_generation(self._session)
        self.state = ViewerState.DISPOSED
        logger.debug("Viewer disposed")

    # ------------------------------------------------------------------
    # Supplementary
    # ------------------------------------------------------------------

    async def load_from_channel(self, channel, timeout: float = REQUEST_TIMEOUT):
        """Ask ``channel`` for OBJ text and load it.

        Returns the :class:`Framing` on success, or None when the responder
        reported a failure or did not answer in time.
        """
        self._check_alive()
        response = await channel.request({'format': 'obj'}, timeout=timeout)
        if not response.ok:
            logger.warning(f"Mesh export request {response.request_id} failed: "
                           f"{response.error}")
            return None
        text = response.payload
        if not isinstance(text, str) or not text.strip():
            raise MeshParseError("Mesh export returned no OBJ text")
        return self.load_mesh(text)

    def to_trimesh_scene(self) -> trimesh.Scene:
        """Scene holding the posed mesh and the current camera."""
        self._require_loaded()
        scene = trimesh.Scene(
            camera=trimesh.scene.Camera(
                fov=(self.camera.fov, self.camera.fov),
                z_near=self.camera.near, z_far=self.camera.far),
            camera_transform=self.camera.look_at(),
        )
        scene.add_geometry(self._active.mesh, geom_name='mesh',
                           transform=self.world_matrix())
        return scene

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reframe(self) -> Framing:
        framing = frame_bounds(self.world_bounds())
        d = framing.distance
        self.view_center = framing.center
        self.view_distance = d
        self.camera.near = framing.near
        self.camera.far = framing.far
        self.camera.position = framing.center + np.array([d, d, d])
        self.camera.target = framing.center.copy()
        return framing

    def _release_active(self) -> None:
        if self._active is None:
            return
        self.arena.release_generation(self._active.generation)
        self._active = None
        self.state = ViewerState.EMPTY

    def _check_alive(self) -> None:
        if self.state is ViewerState.DISPOSED:
            raise ViewerDisposedError("Viewer has been disposed")

    def _require_loaded(self) -> None:
        self._check_alive()
        if self._active is None:
            raise InputError("No mesh loaded")
