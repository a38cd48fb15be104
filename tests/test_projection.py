"""Tests for the local equirectangular projection."""

import numpy as np
import pytest

from cityscene.constants import HALF_EXTENT
from cityscene.errors import DegenerateRegionError
from cityscene.models import BoundingBox
from cityscene.projection import Projector, project


REGION = BoundingBox(west=10.0, south=20.0, east=12.0, north=21.0)


class TestProject:
    def test_center_maps_to_origin(self):
        assert project(11.0, 20.5, REGION) == pytest.approx((0.0, 0.0))

    def test_corners_map_to_square_corners(self):
        assert project(10.0, 20.0, REGION) == pytest.approx((-HALF_EXTENT, -HALF_EXTENT))
        assert project(12.0, 21.0, REGION) == pytest.approx((HALF_EXTENT, HALF_EXTENT))

    def test_non_square_region_fills_square(self):
        # 2° wide and 1° tall still map onto the same square
        assert project(12.0, 20.5, REGION) == pytest.approx((HALF_EXTENT, 0.0))
        assert project(11.0, 21.0, REGION) == pytest.approx((0.0, HALF_EXTENT))

    def test_custom_half_extent(self):
        assert project(12.0, 21.0, REGION, half_extent=5.0) == pytest.approx((5.0, 5.0))

    def test_degenerate_region_rejected_before_projection(self):
        with pytest.raises(DegenerateRegionError):
            project(0.0, 0.0, BoundingBox(west=1.0, south=0.0, east=1.0, north=1.0))


class TestProjectRing:
    def test_matches_scalar_projection(self):
        proj = Projector(REGION)
        ring = [(10.0, 20.0), (11.0, 20.5), (12.0, 21.0, 99.0)]
        out = proj.project_ring([p[:2] for p in ring])
        expected = np.array([proj.project(lon, lat) for lon, lat, *_ in ring])
        assert np.allclose(out, expected)

    def test_ignores_extra_dimensions(self):
        out = Projector(REGION).project_ring([(11.0, 20.5, 123.0), (12.0, 21.0, 0.0)])
        assert out.shape == (2, 2)
        assert np.allclose(out[0], [0.0, 0.0])

    def test_empty_ring(self):
        assert Projector(REGION).project_ring([]).shape == (0, 2)

    def test_malformed_ring_raises(self):
        with pytest.raises(ValueError):
            Projector(REGION).project_ring([1.0, 2.0])
