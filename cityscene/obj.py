"""Wavefront OBJ text parsing into indexed triangle meshes.

Only vertex positions (``v``) and faces (``f``) are read.  Texture and
normal sub-indices (``f 1/2/3``) are discarded, as are ``vt``, ``vn``,
materials, groups and every other record type.  Polygonal faces are fan
triangulated around their first vertex.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List

import numpy as np
import trimesh

from .errors import MeshInputError, MeshParseError

logger = logging.getLogger(__name__)


@dataclass
class ParsedMesh:
    vertices: List[float] = field(default_factory=list)  # x0, y0, z0, x1, ...
    faces: List[int] = field(default_factory=list)       # i0, i1, i2, i3, ...

    @property
    def vertex_count(self) -> int:
        return len(self.vertices) // 3

    @property
    def triangle_count(self) -> int:
        return len(self.faces) // 3


def _to_float(token) -> float:
    try:
        return float(token)
    except (TypeError, ValueError):
        return math.nan


def parse_obj(text: str) -> ParsedMesh:
    """Parse OBJ text into flat vertex and triangle-index lists.

    Raises
    ------
    MeshInputError
        If ``text`` is empty.
    MeshParseError
        If no vertices or no faces were found.
    """
    if not text or not str(text).strip():
        raise MeshInputError("Mesh text is empty")

    parsed = ParsedMesh()
    skipped_faces = 0

    for line in str(text).splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue

        parts = line.split()
        if parts[0] == 'v':
            # Unparsable coordinates become NaN and travel on downstream
            coords = parts[1:4] + [None] * (3 - len(parts[1:4]))
            parsed.vertices.extend(_to_float(c) for c in coords)

        elif parts[0] == 'f':
            # Handle v, v/vt, v/vt/vn and v//vn tokens
            face = []
            try:
                for p in parts[1:]:
                    idx = int(p.split('/')[0])
                    # 1-based; negative indices count back from the last vertex
                    face.append(parsed.vertex_count + idx if idx < 0 else idx - 1)
            except ValueError:
                skipped_faces += 1
                continue

            # Fan: [a, b, c, d, e] → (a, b, c), (a, c, d), (a, d, e)
            for i in range(1, len(face) - 1):
                parsed.faces.extend((face[0], face[i], face[i + 1]))

    if skipped_faces:
        logger.debug(f"Skipped {skipped_faces} faces with malformed indices")
    if not parsed.vertices or not parsed.faces:
        raise MeshParseError("OBJ contains no usable geometry (no vertices/faces)")
    return parsed


def create_indexed_mesh(parsed: ParsedMesh) -> trimesh.Trimesh:
    """Indexed triangle mesh with vertex normals and bounds computed.

    Vertices are kept exactly as parsed (no merging or reordering).
    """
    vertices = np.asarray(parsed.vertices, dtype=np.float64).reshape(-1, 3)
    faces = np.asarray(parsed.faces, dtype=np.int64).reshape(-1, 3)
    if len(vertices) == 0 or len(faces) == 0:
        raise MeshParseError("OBJ contains no usable geometry (no vertices/faces)")
    if faces.min() < 0 or faces.max() >= len(vertices):
        raise MeshParseError(
            f"Face index out of range for {len(vertices)} vertices")

    mesh = trimesh.Trimesh(vertices=vertices, faces=faces, process=False)
    # populate trimesh's cache so later bounds/normals reads are free
    mesh.vertex_normals
    mesh.bounds
    return mesh


def load_mesh_text(text: str) -> trimesh.Trimesh:
    """``parse_obj`` followed by ``create_indexed_mesh``."""
    return create_indexed_mesh(parse_obj(text))


def geometry_info(mesh: trimesh.Trimesh) -> dict:
    """Vertex/face counts and the axis-aligned bounds of ``mesh``."""
    lo, hi = np.asarray(mesh.vertices).min(axis=0), np.asarray(mesh.vertices).max(axis=0)
    return {
        'vertices': len(mesh.vertices),
        'faces': len(mesh.faces),
        'bounds': {
            'min': lo,
            'max': hi,
            'size': hi - lo,
            'center': (lo + hi) / 2.0,
        },
    }


def export_obj(mesh: trimesh.Trimesh, header: str = "cityscene") -> str:
    """Serialize vertices and triangles to OBJ text readable by ``parse_obj``."""
    lines = [f"# {header}"] if header else []
    lines.extend(f"v {x:.8g} {y:.8g} {z:.8g}" for x, y, z in np.asarray(mesh.vertices))
    lines.extend(f"f {a + 1} {b + 1} {c + 1}" for a, b, c in np.asarray(mesh.faces))
    return "\n".join(lines) + "\n"
