"""Tests for the mesh viewer state machine."""

import asyncio

import numpy as np
import pytest

from cityscene.channel import RequestChannel
from cityscene.errors import (InputError, MeshInputError, MeshParseError,
                              ViewerDisposedError)
from cityscene.resources import ResourceArena
from cityscene.viewer import (MeshViewer, ViewerState, frame_bounds,
                              snapshot_frame)


# ---------------------------------------------------------------------------
# Loading and framing
# ---------------------------------------------------------------------------

class TestLoadMesh:
    def test_cube_framing(self, cube_obj):
        viewer = MeshViewer()
        framing = viewer.load_mesh(cube_obj)

        assert viewer.state is ViewerState.LOADED
        assert framing.distance == pytest.approx(4.0)
        assert framing.near == pytest.approx(0.01)
        assert framing.far == pytest.approx(10000.0)
        assert np.allclose(viewer.camera.position, [4, 4, 4])
        assert np.allclose(viewer.camera.target, [0, 0, 0])

    def test_large_mesh_clip_planes(self, make_box_obj):
        viewer = MeshViewer()
        framing = viewer.load_mesh(make_box_obj(100000, 10, 10))
        assert framing.near == pytest.approx(100.0)
        assert framing.far == pytest.approx(2_000_000.0)
        assert viewer.camera.near == framing.near

    def test_second_load_replaces_first(self, cube_obj, make_box_obj):
        arena = ResourceArena()
        viewer = MeshViewer(arena=arena)
        viewer.load_mesh(cube_obj)
        first = viewer.generation
        viewer.load_mesh(make_box_obj(1, 2, 3))

        assert viewer.generation != first
        assert arena.live_count(first) == 0
        assert arena.live_count(viewer.generation, kind='geometry') == 1
        assert arena.live_count(viewer.generation, kind='material') == 1
        assert np.allclose(viewer.world_bounds(), [[0, 0, 0], [1, 2, 3]])

    def test_parse_failure_keeps_current_mesh(self, cube_obj):
        viewer = MeshViewer()
        viewer.load_mesh(cube_obj)
        generation, position = viewer.generation, viewer.camera.position.copy()

        with pytest.raises(MeshParseError):
            viewer.load_mesh("v 0 0 0\n")
        with pytest.raises(MeshInputError):
            viewer.load_mesh("")

        assert viewer.state is ViewerState.LOADED
        assert viewer.generation == generation
        assert np.allclose(viewer.camera.position, position)

    def test_export_text_is_verbatim(self, cube_obj):
        viewer = MeshViewer()
        viewer.load_mesh(cube_obj)
        assert viewer.export_text() == cube_obj

    def test_export_text_requires_mesh(self):
        with pytest.raises(InputError):
            MeshViewer().export_text()


# ---------------------------------------------------------------------------
# Pose
# ---------------------------------------------------------------------------

class TestPose:
    def test_rotation_about_x(self, make_box_obj):
        viewer = MeshViewer()
        viewer.load_mesh(make_box_obj(1, 2, 3))
        viewer.set_rotation(90, 0, 0)
        lo, hi = viewer.world_bounds()
        assert np.allclose([lo[1], hi[1]], [-3, 0])
        assert np.allclose([lo[2], hi[2]], [0, 2])

    def test_rotation_before_load_is_kept(self, make_box_obj):
        viewer = MeshViewer()
        assert viewer.set_rotation(90, 0, 0) is None
        assert viewer.state is ViewerState.EMPTY

        viewer.load_mesh(make_box_obj(1, 2, 3))
        lo, hi = viewer.world_bounds()
        assert np.allclose([lo[1], hi[1]], [-3, 0])

    def test_center_and_ground(self, make_box_obj):
        viewer = MeshViewer()
        viewer.load_mesh(make_box_obj(1, 2, 3))
        viewer.set_rotation(90, 0, 0)
        framing = viewer.center_and_ground()

        lo, hi = viewer.world_bounds()
        assert np.allclose(lo, [-0.5, 0, -1])
        assert np.allclose(hi, [0.5, 3, 1])
        assert np.allclose(viewer.position, [-0.5, 3, -1])
        assert np.allclose(framing.center, [0, 1.5, 0])

    def test_center_and_ground_without_mesh(self):
        assert MeshViewer().center_and_ground() is None


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

class TestViewPresets:
    @pytest.mark.parametrize("preset, offset", [
        ("top", [0, 4, 0]),
        ("front", [0, 0, 4]),
        ("default", [4, 4, 4]),
    ])
    def test_presets(self, cube_obj, preset, offset):
        viewer = MeshViewer()
        viewer.load_mesh(cube_obj)
        vertices = viewer.world_vertices()
        camera = viewer.apply_view_preset(preset)

        assert np.allclose(camera.position, offset)
        assert np.allclose(camera.target, [0, 0, 0])
        assert np.allclose(viewer.world_vertices(), vertices)

    def test_preset_without_mesh_uses_default_distance(self):
        camera = MeshViewer().apply_view_preset("top")
        assert np.allclose(camera.position, [0, 50, 0])

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            MeshViewer().apply_view_preset("side")


# ---------------------------------------------------------------------------
# Dispose
# ---------------------------------------------------------------------------

class TestDispose:
    def test_releases_everything(self, cube_obj):
        arena = ResourceArena()
        viewer = MeshViewer(arena=arena)
        viewer.load_mesh(cube_obj)
        assert arena.live_count(kind='controls') == 1

        viewer.dispose()
        viewer.dispose()
        assert viewer.state is ViewerState.DISPOSED
        assert arena.live_count() == 0

    def test_operations_after_dispose(self, cube_obj):
        viewer = MeshViewer()
        viewer.dispose()
        with pytest.raises(ViewerDisposedError):
            viewer.load_mesh(cube_obj)
        with pytest.raises(ViewerDisposedError):
            viewer.set_rotation(0, 0, 0)
        with pytest.raises(ViewerDisposedError):
            viewer.apply_view_preset("top")


# ---------------------------------------------------------------------------
# Framing helpers / scene / channel
# ---------------------------------------------------------------------------

class TestFraming:
    def test_flat_bounds_use_unit_size(self):
        framing = frame_bounds(np.array([[1.0, 1.0, 1.0], [1.0, 1.0, 1.0]]))
        assert framing.distance == pytest.approx(2.0)

    def test_snapshot_rotates_z_up(self, make_box_obj):
        framing = snapshot_frame(make_box_obj(1, 2, 3))
        # -90° about X maps z → y and y → -z
        assert np.allclose(framing.bounds, [[0, 0, -2], [1, 3, 0]])
        assert framing.distance == pytest.approx(6.0)


class TestTrimeshScene:
    def test_scene_has_posed_mesh_and_camera(self, make_box_obj):
        viewer = MeshViewer()
        viewer.load_mesh(make_box_obj(1, 2, 3))
        viewer.center_and_ground()
        scene = viewer.to_trimesh_scene()
        assert np.allclose(scene.bounds, viewer.world_bounds())
        assert np.allclose(scene.camera_transform[:3, 3], viewer.camera.position)


class TestLoadFromChannel:
    def test_loads_response(self, cube_obj):
        async def run():
            channel = RequestChannel()
            channel.responder = lambda rid, payload: channel.respond(rid, payload=cube_obj)
            viewer = MeshViewer()
            framing = await viewer.load_from_channel(channel, timeout=1.0)
            return viewer, framing

        viewer, framing = asyncio.run(run())
        assert viewer.state is ViewerState.LOADED
        assert framing.distance == pytest.approx(4.0)

    def test_timeout_leaves_viewer_empty(self):
        async def run():
            viewer = MeshViewer()
            result = await viewer.load_from_channel(RequestChannel(), timeout=0.01)
            return viewer, result

        viewer, result = asyncio.run(run())
        assert result is None
        assert viewer.state is ViewerState.EMPTY

    def test_empty_payload(self):
        async def run():
            channel = RequestChannel()
            channel.responder = lambda rid, payload: channel.respond(rid, payload="")
            await MeshViewer().load_from_channel(channel, timeout=1.0)

        with pytest.raises(MeshParseError):
            asyncio.run(run())
