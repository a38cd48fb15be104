"""Configuration constants, paths, layer styles and logging setup."""

import os
import pathlib
import logging

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ── Projection ──────────────────────────────────────────────────────────
# The bounding region is mapped onto a square of side 2 * HALF_EXTENT.
HALF_EXTENT = 50.0
SPAN_EPSILON = 1e-6

# ── Height estimation ───────────────────────────────────────────────────
METERS_PER_LEVEL = 3.0
DEFAULT_HEIGHT = 10.0           # meters, when no height tag parses
DEPTH_DIVISOR = 12.0            # meters per scene unit of extrusion
MIN_DEPTH = 2.0                 # scene units
MAX_DEPTH = 30.0                # scene units

# ── Scene building ──────────────────────────────────────────────────────
MAX_STRUCTURES = int(os.environ.get("CITYSCENE_MAX_STRUCTURES", "3000"))
CAMERA_DISTANCE_FACTOR = 1.8
FALLBACK_CAMERA_DISTANCE = 20.0

# ── Mesh viewer ─────────────────────────────────────────────────────────
VIEWER_DISTANCE_FACTOR = 2.0
VIEWER_DEFAULT_DISTANCE = 50.0
VIEWER_FOV = 75.0
VIEWER_MIN_NEAR = 0.01
VIEWER_MIN_FAR = 10000.0

# ── Region selection ────────────────────────────────────────────────────
MAX_SIDE_M = float(os.environ.get("CITYSCENE_MAX_SIDE_M", "10000"))
MIN_REGION_SPAN = 1e-6          # degrees

# ── Timeouts (seconds) ──────────────────────────────────────────────────
FETCH_TIMEOUT = float(os.environ.get("CITYSCENE_FETCH_TIMEOUT", "30"))
REQUEST_TIMEOUT = float(os.environ.get("CITYSCENE_REQUEST_TIMEOUT", "3"))

# Layer styling.  Colors are RGBA 0-1 PBR base colors.
LAYER_STYLES = {
    'structures': {
        'color': [0.69, 0.69, 0.69, 1.0],
        'metallic': 0.1,
        'roughness': 0.8,
    },
    'transport': {
        'color': [0.67, 0.67, 0.67, 1.0],
        'metallic': 0.0,
        'roughness': 1.0,
    },
    'green': {
        'color': [0.40, 0.67, 0.40, 1.0],
        'metallic': 0.0,
        'roughness': 0.9,
    },
    'water': {
        'color': [0.29, 0.48, 0.82, 1.0],
        'metallic': 0.1,
        'roughness': 0.8,
    },
    'mesh': {
        'color': [0.30, 0.69, 0.31, 1.0],   # imported meshes
        'metallic': 0.0,
        'roughness': 0.6,
    },
}

# Configure base paths
BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()
OUTPUT_DIR = pathlib.Path(os.environ.get("CITYSCENE_OUTPUT_DIR", BASE_DIR / "output"))

# Configure logging
logging.basicConfig(
    level=os.environ.get("CITYSCENE_LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)
