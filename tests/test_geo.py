import pytest

from looproute.core.geo import GeoPoint, bearing_between, destination_point, haversine_m, midpoint


PARIS = GeoPoint(lat=48.8566, lon=2.3522)


@pytest.mark.parametrize("bearing", [0.0, 45.0, 90.0, 180.0, 271.5, 359.9])
@pytest.mark.parametrize(
    "origin",
    [PARIS, GeoPoint(lat=-33.8688, lon=151.2093), GeoPoint(lat=0.0, lon=0.0), GeoPoint(lat=64.1466, lon=-21.9426)],
)
def test_destination_point_with_zero_distance_is_origin(origin, bearing):
    out = destination_point(origin, bearing, 0)
    assert out.lat == pytest.approx(origin.lat, abs=1e-6)
    assert out.lon == pytest.approx(origin.lon, abs=1e-6)


def test_destination_point_travels_the_requested_distance():
    out = destination_point(PARIS, 37.0, 2.5)
    assert haversine_m(PARIS, out) == pytest.approx(2500, abs=0.5)
    assert bearing_between(PARIS, out) == pytest.approx(37.0, abs=0.05)


def test_destination_point_cardinal_directions():
    north = destination_point(PARIS, 0, 1)
    east = destination_point(PARIS, 90, 1)
    assert north.lat > PARIS.lat
    assert north.lon == pytest.approx(PARIS.lon, abs=1e-9)
    assert east.lon > PARIS.lon


def test_bearing_between_is_normalized_to_0_360():
    west = GeoPoint(lat=PARIS.lat, lon=PARIS.lon - 0.01)
    b = bearing_between(PARIS, west)
    assert 0 <= b < 360
    assert b == pytest.approx(270, abs=0.1)


@pytest.mark.parametrize(
    "b",
    [
        GeoPoint(lat=48.8600, lon=2.3600),
        GeoPoint(lat=48.8500, lon=2.3400),
        GeoPoint(lat=48.8566, lon=2.3700),
        GeoPoint(lat=48.8700, lon=2.3522),
    ],
)
def test_reciprocal_bearings_differ_by_180_for_nearby_points(b):
    forward = bearing_between(PARIS, b)
    backward = bearing_between(b, PARIS)
    diff = (backward - forward) % 360
    assert diff == pytest.approx(180, abs=0.05)


def test_midpoint_is_arithmetic_mean():
    b = GeoPoint(lat=48.8766, lon=2.3922)
    m = midpoint(PARIS, b)
    assert m == GeoPoint(lat=(PARIS.lat + b.lat) / 2, lon=(PARIS.lon + b.lon) / 2)


def test_haversine_known_distance():
    london = GeoPoint(lat=51.5074, lon=-0.1278)
    # Paris-London great-circle distance is roughly 344 km.
    assert haversine_m(PARIS, london) == pytest.approx(343_500, rel=0.01)
