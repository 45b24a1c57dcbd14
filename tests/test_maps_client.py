import httpx
import pytest

from ridehail.core.exceptions import MapsProviderError
from ridehail.maps.client import MapsClient, haversine_meters, is_valid_coordinate, validate_coordinates

ORIGIN = [-47.9466, -18.1661]
DESTINATION = [-47.9366, -18.1561]


def make_client(handler, **kwargs):
    return MapsClient(access_token="secret", transport=httpx.MockTransport(handler), **kwargs)


async def test_route_returns_geojson_feature():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"routes": [{
            "distance": 1520.4,
            "duration": 241.0,
            "geometry": {"type": "LineString", "coordinates": [ORIGIN, DESTINATION]},
        }]})

    client = make_client(handler)
    route = await client.route(ORIGIN, DESTINATION)
    await client.aclose()

    assert route.distance == 1520.4
    assert route.duration == 241.0
    feature = route.to_feature()
    assert feature["type"] == "Feature"
    assert feature["properties"] == {"distance": 1520.4, "duration": 241.0}
    assert feature["geometry"]["type"] == "LineString"

    request = seen[0]
    assert request.url.path == "/directions/v5/mapbox/driving/-47.9466,-18.1661;-47.9366,-18.1561"
    assert request.url.params["geometries"] == "geojson"
    assert request.url.params["access_token"] == "secret"


async def test_route_without_results_raises():
    client = make_client(lambda request: httpx.Response(200, json={"routes": []}))

    with pytest.raises(MapsProviderError):
        await client.route(ORIGIN, DESTINATION)
    await client.aclose()


async def test_provider_http_error_maps_to_domain_error():
    client = make_client(lambda request: httpx.Response(503, json={"message": "down"}))

    with pytest.raises(MapsProviderError) as exc_info:
        await client.reverse_geocode(ORIGIN)
    await client.aclose()

    assert exc_info.value.status_code == 502
    assert exc_info.value.details == {"status": 503}


async def test_reverse_geocode_reads_first_feature():
    def handler(request):
        assert request.url.path == "/geocoding/v5/mapbox.places/-47.9466,-18.1661.json"
        assert request.url.params["country"] == "BR"
        return httpx.Response(200, json={"features": [
            {"place_name": "Praça Getúlio Vargas, Catalão - GO", "center": ORIGIN},
            {"place_name": "Somewhere else", "center": DESTINATION},
        ]})

    client = make_client(handler)
    result = await client.reverse_geocode(ORIGIN)
    await client.aclose()

    assert result.place_name == "Praça Getúlio Vargas, Catalão - GO"
    assert result.coordinates == ORIGIN


async def test_geocode_address_is_biased_to_region():
    def handler(request):
        assert request.url.params["proximity"] == "-47.9466,-18.1661"
        assert request.url.params["bbox"] == "-48.5,-18.7,-47.4,-17.6"
        return httpx.Response(200, json={"features": [
            {"place_name": "Rua 1, Catalão - GO", "center": DESTINATION},
        ]})

    client = make_client(handler, proximity=ORIGIN, bbox=[-48.5, -18.7, -47.4, -17.6])
    result = await client.geocode_address("Rua 1")
    await client.aclose()

    assert result.coordinates == DESTINATION


async def test_geocode_without_matches_raises():
    client = make_client(lambda request: httpx.Response(200, json={"features": []}))

    with pytest.raises(MapsProviderError):
        await client.geocode_address("nowhere")
    await client.aclose()


async def test_invalid_coordinates_are_rejected_before_any_request():
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(handler)
    with pytest.raises(ValueError):
        await client.route([200.0, 0.0], DESTINATION)
    with pytest.raises(ValueError):
        await client.reverse_geocode([0.0])
    await client.aclose()


async def test_calculate_distance_returns_none_on_failure():
    client = make_client(lambda request: httpx.Response(500))

    assert await client.calculate_distance(ORIGIN, DESTINATION) is None
    await client.aclose()


async def test_estimate_trip_falls_back_to_straight_line():
    client = make_client(lambda request: httpx.Response(500))

    trip = await client.estimate_trip(ORIGIN, DESTINATION)
    await client.aclose()

    expected = haversine_meters(ORIGIN, DESTINATION)
    assert trip["distance"] == pytest.approx(expected)
    # 30 km/h
    assert trip["duration"] == pytest.approx(expected / (30 / 3.6))


def test_haversine_known_distance():
    # One degree of latitude is about 111.2 km
    assert haversine_meters([0.0, 0.0], [0.0, 1.0]) == pytest.approx(111195, rel=1e-3)
    assert haversine_meters(ORIGIN, ORIGIN) == 0


def test_coordinate_validation():
    assert is_valid_coordinate(-47.9, -18.1)
    assert not is_valid_coordinate(-181, 0)
    assert not is_valid_coordinate(0, 91)
    assert not is_valid_coordinate(True, 0)
    assert not is_valid_coordinate(float("nan"), 0)
    assert validate_coordinates([1, 2]) == (1.0, 2.0)
    with pytest.raises(ValueError):
        validate_coordinates(None)
