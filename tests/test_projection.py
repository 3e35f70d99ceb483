"""Tests for geographic to raster projection."""

import numpy as np
import pytest

from trackoverlay.errors import InsufficientDataError
from trackoverlay.models import GeoPoint
from trackoverlay.projection import BoundingBox, ProjectionMapper, bounding_box


class TestBoundingBox:
    def test_extent(self):
        box = bounding_box([GeoPoint(45.0, 7.0), GeoPoint(45.5, 7.2), GeoPoint(44.9, 7.1)])

        assert box == BoundingBox(min_lon=7.0, max_lon=7.2, min_lat=44.9, max_lat=45.5)
        assert box.lon_range == pytest.approx(0.2)
        assert box.lat_range == pytest.approx(0.6)

    def test_invalid_positions_ignored(self):
        box = bounding_box([GeoPoint(45.0, 7.0), GeoPoint(999.0, 7.0), GeoPoint(46.0, 8.0)])

        assert box.max_lat == 46.0

    def test_too_few_points(self):
        with pytest.raises(InsufficientDataError):
            bounding_box([GeoPoint(45.0, 7.0), GeoPoint(float("nan"), 7.0)])


class TestProjectionMapper:
    def test_square_box_fills_canvas(self):
        mapper = ProjectionMapper(BoundingBox(0.0, 1.0, 0.0, 1.0), 300, 300, 20.0)

        assert mapper.scale == pytest.approx(260.0)
        assert mapper.pixel(0.0, 1.0) == pytest.approx((20.0, 20.0))
        assert mapper.pixel(1.0, 0.0) == pytest.approx((280.0, 280.0))

    def test_north_is_up(self):
        mapper = ProjectionMapper(BoundingBox(0.0, 1.0, 0.0, 1.0), 300, 300, 20.0)

        _, y_north = mapper.pixel(0.5, 0.9)
        _, y_south = mapper.pixel(0.5, 0.1)
        assert y_north < y_south

    def test_scale_uses_tighter_axis(self):
        """A wide box is limited by the horizontal range."""
        mapper = ProjectionMapper(BoundingBox(0.0, 2.0, 0.0, 1.0), 300, 300, 20.0)

        assert mapper.scale == pytest.approx(130.0)

    def test_zero_latitude_range(self):
        """An east-west track still gets a scale from its longitude range."""
        mapper = ProjectionMapper(BoundingBox(0.0, 1.0, 5.0, 5.0), 300, 300, 20.0)

        assert mapper.scale == pytest.approx(260.0)
        assert mapper.pixel(1.0, 5.0) == pytest.approx((280.0, 20.0))

    def test_both_ranges_zero(self):
        mapper = ProjectionMapper(BoundingBox(1.0, 1.0, 5.0, 5.0), 300, 300, 20.0)

        assert mapper.scale == 0.0
        assert mapper.pixel(1.0, 5.0) == (20.0, 20.0)

    def test_all_points_inside_canvas(self, straight_track):
        mapper = ProjectionMapper.from_points(straight_track.points, 300, 300, 20.0)

        pixels = mapper.project_many(straight_track.points)

        assert pixels.shape == (11, 2)
        assert np.all(pixels >= 20.0 - 1e-9)
        assert np.all(pixels <= 280.0 + 1e-9)

    def test_project_many_matches_project(self, straight_track):
        mapper = ProjectionMapper.from_points(straight_track.points, 300, 300, 20.0)
        point = straight_track.points[4]

        assert tuple(mapper.project_many([point])[0]) == pytest.approx(mapper.project(point))

    def test_from_points_needs_two(self, make_point):
        with pytest.raises(InsufficientDataError):
            ProjectionMapper.from_points([make_point(0)], 300, 300, 20.0)
