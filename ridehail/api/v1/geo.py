"""
Geocoding and routing endpoints backed by the maps provider.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from ridehail.maps.client import MapsClient, is_valid_coordinate
from ridehail.api.v1.deps import get_maps_client
from ridehail.api.v1.schemas import GeocodeResponse, RouteResponse

logger = logging.getLogger(__name__)
router = APIRouter()

def _require_point(longitude: float, latitude: float) -> list:
    if not is_valid_coordinate(longitude, latitude):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid coordinates"
        )
    return [longitude, latitude]

@router.get("/reverse", response_model=GeocodeResponse)
async def reverse_geocode(
    longitude: float,
    latitude: float,
    maps: MapsClient = Depends(get_maps_client)
):
    """Nearest address for a point."""

    result = await maps.reverse_geocode(_require_point(longitude, latitude))
    return GeocodeResponse(
        place_name=result.place_name,
        address=result.address,
        coordinates=result.coordinates
    )

@router.get("/search", response_model=GeocodeResponse)
async def search_address(
    q: str = Query(..., min_length=1, description="Free-text address"),
    maps: MapsClient = Depends(get_maps_client)
):
    """Best match for an address, biased towards the service region."""

    if not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query must not be empty"
        )

    result = await maps.geocode_address(q)
    return GeocodeResponse(
        place_name=result.place_name,
        address=result.address,
        coordinates=result.coordinates
    )

@router.get("/route", response_model=RouteResponse)
async def get_route(
    origin_lng: float,
    origin_lat: float,
    destination_lng: float,
    destination_lat: float,
    maps: MapsClient = Depends(get_maps_client)
):
    """Driving route as a GeoJSON feature with distance (m) and duration (s)."""

    route = await maps.route(
        _require_point(origin_lng, origin_lat),
        _require_point(destination_lng, destination_lat)
    )
    return route.to_feature()
