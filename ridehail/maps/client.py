"""
HTTP client for the maps provider (Mapbox geocoding and directions APIs).
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from ridehail.core.config import settings
from ridehail.core.exceptions import MapsProviderError

logger = logging.getLogger(__name__)

Coordinates = Sequence[float]  # [longitude, latitude]


@dataclass
class GeocodeResult:
    place_name: str
    address: str
    coordinates: List[float]


@dataclass
class Route:
    distance: float  # meters
    duration: float  # seconds
    geometry: Dict[str, Any] = field(default_factory=dict)

    def to_feature(self) -> Dict[str, Any]:
        """GeoJSON Feature with distance and duration in its properties."""
        return {
            "type": "Feature",
            "properties": {"distance": self.distance, "duration": self.duration},
            "geometry": self.geometry,
        }


def is_valid_coordinate(lng: Any, lat: Any) -> bool:
    if isinstance(lng, bool) or isinstance(lat, bool):
        return False
    if not isinstance(lng, (int, float)) or not isinstance(lat, (int, float)):
        return False
    if math.isnan(lng) or math.isnan(lat):
        return False
    return -180 <= lng <= 180 and -90 <= lat <= 90


def validate_coordinates(coordinates: Optional[Coordinates]) -> Tuple[float, float]:
    if not coordinates or len(coordinates) != 2 or not is_valid_coordinate(*coordinates):
        raise ValueError(f"Invalid coordinates: {coordinates!r}")
    return float(coordinates[0]), float(coordinates[1])


def haversine_meters(start: Coordinates, end: Coordinates) -> float:
    """Great-circle distance between two [lng, lat] points."""
    R = 6371000  # Earth's radius in meters

    lon1, lat1 = start
    lon2, lat2 = end
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat/2)**2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon/2)**2)

    c = 2 * math.asin(math.sqrt(a))
    return R * c


class MapsClient:
    """Async wrapper around the maps provider's REST endpoints."""

    def __init__(
        self,
        access_token: str = "",
        base_url: str = "https://api.mapbox.com",
        timeout: float = 5.0,
        country: str = "BR",
        proximity: Optional[Coordinates] = None,
        bbox: Optional[Sequence[float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.country = country
        self.proximity = proximity
        self.bbox = bbox
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "MapsClient":
        return cls(
            access_token=settings.MAPBOX_TOKEN,
            base_url=settings.MAPBOX_BASE_URL,
            timeout=settings.MAPS_TIMEOUT_SECONDS,
            country=settings.MAPS_COUNTRY,
            proximity=settings.default_coordinates,
            bbox=settings.SEARCH_BBOX,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {**params, "access_token": self.access_token}
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Maps provider returned {e.response.status_code} for {path}")
            raise MapsProviderError("Maps provider request failed", {"status": e.response.status_code})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Maps provider request to {path} failed: {e}")
            raise MapsProviderError("Maps provider unavailable")

    @staticmethod
    def _first_place(data: Dict[str, Any]) -> GeocodeResult:
        features = data.get("features") or []
        if not features:
            raise MapsProviderError("No results found")
        first = features[0]
        return GeocodeResult(
            place_name=first["place_name"],
            address=first["place_name"],
            coordinates=list(first["center"]),
        )

    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResult:
        """Coordinates to the nearest address."""
        lng, lat = validate_coordinates(coordinates)
        data = await self._get_json(
            f"/geocoding/v5/mapbox.places/{lng},{lat}.json",
            {"country": self.country},
        )
        return self._first_place(data)

    async def geocode_address(self, query: str) -> GeocodeResult:
        """Free-text address to coordinates, biased towards the service region."""
        if not query or not query.strip():
            raise ValueError("Query must not be empty")
        params: Dict[str, Any] = {"country": self.country}
        if self.proximity:
            params["proximity"] = f"{self.proximity[0]},{self.proximity[1]}"
        if self.bbox:
            params["bbox"] = ",".join(str(v) for v in self.bbox)
        data = await self._get_json(
            f"/geocoding/v5/mapbox.places/{quote(query.strip(), safe='')}.json",
            params,
        )
        return self._first_place(data)

    async def route(self, origin: Coordinates, destination: Coordinates) -> Route:
        """Driving route between two points."""
        o_lng, o_lat = validate_coordinates(origin)
        d_lng, d_lat = validate_coordinates(destination)
        data = await self._get_json(
            f"/directions/v5/mapbox/driving/{o_lng},{o_lat};{d_lng},{d_lat}",
            {"geometries": "geojson"},
        )
        routes = data.get("routes") or []
        if not routes:
            raise MapsProviderError("No route found")
        best = routes[0]
        return Route(
            distance=float(best["distance"]),
            duration=float(best["duration"]),
            geometry=best.get("geometry") or {},
        )

    async def calculate_distance(self, start: Coordinates, end: Coordinates) -> Optional[Dict[str, float]]:
        """Route distance/duration, or None when the points are invalid or the provider fails."""
        try:
            route = await self.route(start, end)
        except (ValueError, MapsProviderError) as e:
            logger.warning(f"Could not calculate distance between {start} and {end}: {e}")
            return None
        return {"distance": route.distance, "duration": route.duration}

    async def estimate_trip(self, start: Coordinates, end: Coordinates) -> Dict[str, float]:
        """Route distance/duration, falling back to straight-line distance at the configured speed."""
        result = await self.calculate_distance(start, end)
        if result is not None:
            return result
        validate_coordinates(start)
        validate_coordinates(end)
        distance = haversine_meters(start, end)
        duration = distance / (settings.FALLBACK_SPEED_KMH / 3.6)
        logger.info(f"Using straight-line estimate for trip: {distance:.0f} m")
        return {"distance": distance, "duration": duration}
