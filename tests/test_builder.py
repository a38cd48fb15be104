"""Tests for SceneSession: fetch failures, timeouts and stale results."""

import asyncio

from cityscene.builder import SceneSession
from cityscene.models import (BoundingBox, FeatureGeometry, GeometryKind,
                              VectorFeature)
from cityscene.selection import RegionSelector


REGION = BoundingBox(west=0.0, south=0.0, east=0.01, north=0.01)
RING = ((0.004, 0.004), (0.006, 0.004), (0.006, 0.006), (0.004, 0.006), (0.004, 0.004))


def _building(height="10"):
    return VectorFeature(FeatureGeometry(GeometryKind.POLYGON, (RING,)),
                         {"building": "yes", "height": height})


class TestProcessRegion:
    def test_builds_scene(self):
        async def fetch(region):
            return [_building()]

        session = SceneSession(fetch)
        frame = asyncio.run(session.process_region(REGION))
        assert frame is not None
        assert session.scene.frame is frame

    def test_fetch_error_keeps_scene(self):
        calls = []

        async def fetch(region):
            calls.append(region)
            if len(calls) > 1:
                raise ConnectionError("overpass down")
            return [_building()]

        async def run():
            session = SceneSession(fetch)
            first = await session.process_region(REGION)
            second = await session.process_region(REGION)
            return session, first, second

        session, first, second = asyncio.run(run())
        assert second is None
        assert session.scene.frame is first

    def test_fetch_timeout(self):
        async def fetch(region):
            await asyncio.sleep(1.0)
            return [_building()]

        session = SceneSession(fetch, fetch_timeout=0.01)
        assert asyncio.run(session.process_region(REGION)) is None
        assert session.scene.frame is None

    def test_stale_result_discarded(self):
        async def run():
            release_first = asyncio.Event()

            async def fetch(region):
                if region.west == 0.0:
                    await release_first.wait()
                    return [_building(height="300")]
                return [_building(height="60")]

            session = SceneSession(fetch)
            slow = asyncio.ensure_future(session.process_region(REGION))
            await asyncio.sleep(0)
            newer = BoundingBox(west=0.001, south=0.0, east=0.011, north=0.01)
            fast = await session.process_region(newer)
            release_first.set()
            return session, await slow, fast

        session, slow, fast = asyncio.run(run())
        assert slow is None
        assert fast is not None
        assert session.scene.frame is fast


class TestAttach:
    def test_selector_drives_rebuild(self):
        regions = []

        async def fetch(region):
            regions.append(region)
            return [_building()]

        async def run():
            session = SceneSession(fetch)
            selector = RegionSelector()
            session.attach(selector)
            selector.drag_start((0.0, 0.0))
            selector.drag_end((0.01, 0.01))
            await asyncio.gather(*session._tasks)
            return session

        session = asyncio.run(run())
        assert regions == [BoundingBox(0.0, 0.0, 0.01, 0.01)]
        assert session.scene.frame is not None
