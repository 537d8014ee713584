import math

import pytest

from core.errors import ValidationError
from geo.distance import distance_km, haversine_km
from geo.place import Place
from geo.region import SURREY_REGION, OperatingRegion


def test_distance_to_self_is_zero(pickup_location):
    assert distance_km(pickup_location, pickup_location) == 0.0


def test_distance_is_symmetric():
    london = (51.5074, -0.1278)
    guildford = (51.2362, -0.5704)
    assert distance_km(london, guildford) == distance_km(guildford, london)


def test_known_distance_london_to_paris():
    # ~343.5 km great-circle
    d = haversine_km(51.5074, -0.1278, 48.8566, 2.3522)
    assert 340 < d < 347


def test_one_degree_of_latitude_is_about_111_km():
    d = haversine_km(0.0, 0.0, 1.0, 0.0)
    assert math.isclose(d, 111.19, abs_tol=0.05)


def test_antipodal_points_do_not_blow_up():
    d = haversine_km(0.0, 0.0, 0.0, 180.0)
    assert math.isclose(d, math.pi * 6371.0, rel_tol=1e-9)


def test_region_contains_guildford_but_not_lahore(pickup_location):
    assert SURREY_REGION.contains(pickup_location)
    assert not SURREY_REGION.contains_point(31.5204, 74.3587)


def test_region_needs_three_vertices():
    with pytest.raises(ValueError):
        OperatingRegion.from_lon_lat("line", [(0, 0), (1, 1)])


def test_place_parse_accepts_both_key_styles():
    a = Place.parse({"lat": 51.1, "lng": -0.5, "address": "High St"}, "pickup")
    b = Place.parse({"latitude": "51.1", "longitude": "-0.5"}, "pickup")
    assert a.coordinates == b.coordinates
    assert a.address == "High St"
    assert b.address == ""


@pytest.mark.parametrize("value", [None, {}, {"lat": 91, "lng": 0}, {"lat": "x", "lng": 0}])
def test_place_parse_rejects_bad_input(value):
    with pytest.raises(ValidationError):
        Place.parse(value, "dropoff")
