"""cityscene: camera-ready 3D scenes from map features and OBJ meshes.

Import constants FIRST so .env settings and logging are in place before
any other module reads them.
"""

from cityscene import constants as _constants  # noqa: F401

from cityscene.builder import SceneSession
from cityscene.models import BoundingBox, GeoPoint, VectorFeature
from cityscene.obj import create_indexed_mesh, parse_obj
from cityscene.projection import Projector, project
from cityscene.scene import SceneBuilder
from cityscene.selection import RegionSelector, clamp_region
from cityscene.viewer import MeshViewer

__version__ = "0.1.0"
