"""Tests for polygon geometry."""

import pytest

from polygon_weather.coloring.geometry import (
    InvalidGeometry, bounding_box, centroid, close_ring, validate_ring
)

TRIANGLE = [(0.0, 0.0), (0.0, 3.0), (3.0, 0.0)]
L_SHAPE = [(0, 0), (0, 4), (1, 4), (1, 1), (4, 1), (4, 0)]


def test_square_centroid():
    lat, lng = centroid([(0, 0), (0, 2), (2, 2), (2, 0)])
    assert lat == pytest.approx(1.0)
    assert lng == pytest.approx(1.0)


def test_triangle_centroid():
    lat, lng = centroid(TRIANGLE)
    assert lat == pytest.approx(1.0)
    assert lng == pytest.approx(1.0)


def test_closed_and_open_rings_agree():
    for ring in (TRIANGLE, L_SHAPE):
        assert centroid(close_ring(ring)) == pytest.approx(centroid(ring))


def test_winding_order_does_not_matter():
    assert centroid(list(reversed(L_SHAPE))) == pytest.approx(centroid(L_SHAPE))


@pytest.mark.parametrize("ring", [
    TRIANGLE,
    L_SHAPE,
    [(52.50, 13.30), (52.55, 13.35), (52.53, 13.45), (52.48, 13.42), (52.47, 13.33)],
])
def test_centroid_inside_bounding_box(ring):
    (min_lat, min_lng), (max_lat, max_lng) = bounding_box(ring)
    lat, lng = centroid(ring)
    assert min_lat <= lat <= max_lat
    assert min_lng <= lng <= max_lng


def test_l_shape_is_area_weighted():
    # Area-weighted centroid differs from the vertex mean for concave shapes
    lat, lng = centroid(L_SHAPE)
    assert lat == pytest.approx(19 / 14)
    assert lng == pytest.approx(19 / 14)


def test_collinear_ring_falls_back_to_mean():
    ring = [(0, 0), (1, 1), (2, 2), (0, 0)]
    assert centroid(ring) == pytest.approx((1.0, 1.0))


def test_coincident_points_fall_back_to_mean():
    assert centroid([(5, 7), (5, 7), (5, 7)]) == pytest.approx((5.0, 7.0))


def test_single_point():
    assert centroid([(3.5, -2.0)]) == (3.5, -2.0)


def test_empty_ring_raises():
    with pytest.raises(InvalidGeometry):
        centroid([])


def test_bounding_box_empty():
    assert bounding_box([]) == ((0.0, 0.0), (0.0, 0.0))


def test_close_ring():
    assert close_ring(TRIANGLE) == TRIANGLE + [TRIANGLE[0]]
    closed = close_ring(TRIANGLE)
    assert close_ring(closed) == closed


def test_validate_ring_accepts_closed_triangle():
    validate_ring(close_ring(TRIANGLE))


@pytest.mark.parametrize("ring, message", [
    ([(0, 0), (1, 1)], "at least 3"),
    (TRIANGLE, "closed"),
    ([(0, 0), (1, 1), (0, 0), (0, 0)], "distinct"),
    (close_ring([(i, i * i) for i in range(13)]), "more than 12"),
])
def test_validate_ring_rejects(ring, message):
    with pytest.raises(InvalidGeometry, match=message):
        validate_ring(ring)


def test_validate_ring_allows_twelve_vertices():
    validate_ring(close_ring([(i, i * i) for i in range(12)]))
