"""Geoapify API client: geocoding, places search and walking routes.

The httpx client is created by the caller and injected, so one connection
pool can be shared and tests can swap in ``httpx.MockTransport``. Every
failure (network, HTTP status, unexpected payload) surfaces as
``GeoapifyError``.
"""

import logging
from typing import Any, Optional, Sequence

import httpx

from walking_tour.models import (
    Coordinates,
    Elevation,
    GeocodedLocation,
    Point,
    RouteMeasurement,
)
from walking_tour.utils.geo import BoundingBox

logger = logging.getLogger(__name__)

# Used when the caller has no Geoapify category string for the place type
CATEGORY_MAP = {
    "tapas bars": "catering.restaurant.tapas,catering.bar",
    "restaurants": "catering.restaurant",
    "bars": "catering.bar,catering.pub",
    "museums": "entertainment.museum",
    "churches": "religion.place_of_worship.christianity",
    "temples": "religion.place_of_worship.buddhism",
    "mosques": "religion.place_of_worship.islam",
    "historic sites": "tourism.sights,heritage",
    "parks": "leisure.park",
    "viewpoints": "tourism.attraction.viewpoint",
    "markets": "commercial.marketplace",
    "shopping": "commercial.shopping_mall",
}
DEFAULT_CATEGORIES = "tourism.attraction,tourism.sights"


class GeoapifyError(Exception):
    """A Geoapify request failed or returned nothing usable."""


def categories_for(place_type: Optional[str]) -> str:
    if not place_type:
        return DEFAULT_CATEGORIES
    return CATEGORY_MAP.get(place_type.strip().lower(), DEFAULT_CATEGORIES)


def feature_to_point(feature: dict[str, Any]) -> Optional[Point]:
    """Map a GeoJSON place feature to a Point, or None if it has no id/location."""
    properties = feature.get("properties") or {}
    coordinates = (feature.get("geometry") or {}).get("coordinates") or []
    place_id = properties.get("place_id")
    if not place_id or len(coordinates) < 2:
        return None

    categories = properties.get("categories") or []
    return Point(
        id=str(place_id),
        name=properties.get("name") or properties.get("formatted") or "",
        coordinates=Coordinates(lat=coordinates[1], lng=coordinates[0]),
        payload={
            "category": categories[0] if categories else "tourism",
            "address": properties.get("formatted"),
            "properties": properties,
        },
    )


def summarize_elevation(legs: Sequence[dict[str, Any]]) -> Elevation:
    gain = 0.0
    highest = 0.0
    lowest = float("inf")
    for leg in legs:
        for step in leg.get("steps") or []:
            if step.get("elevation_gain"):
                gain += step["elevation_gain"]
            if step.get("max_elevation"):
                highest = max(highest, step["max_elevation"])
            if step.get("min_elevation"):
                lowest = min(lowest, step["min_elevation"])
    return Elevation(
        gain=round(gain),
        max=round(highest),
        min=0 if lowest == float("inf") else round(lowest),
    )


class GeoapifyClient:
    """Async Geoapify client.

    Args:
        api_key: Geoapify API key.
        client: shared ``httpx.AsyncClient``. When omitted the client creates
            and owns one, closed by ``close()``.
        timeout: request timeout for an owned client, in seconds.
    """

    BASE_URL = "https://api.geoapify.com"
    GEOCODE_PATH = "/v1/geocode/search"
    PLACES_PATH = "/v2/places"
    ROUTING_PATH = "/v1/routing"

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        if not api_key:
            raise ValueError("Geoapify API key is required")
        self._api_key = api_key
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.get(
                f"{self.BASE_URL}{path}", params={**params, "apiKey": self._api_key}
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[GEOAPIFY] {path} request failed: {e}")
            raise GeoapifyError(f"Geoapify request to {path} failed: {e}") from e
        except ValueError as e:
            raise GeoapifyError(f"Geoapify returned invalid JSON for {path}") from e
        if not isinstance(data, dict):
            raise GeoapifyError(f"Unexpected Geoapify payload for {path}")
        return data

    async def geocode(self, text: str) -> GeocodedLocation:
        """Resolve free text to the best-matching location."""
        logger.info(f"[GEOAPIFY] Geocoding '{text}'")
        data = await self._get(self.GEOCODE_PATH, {"text": text, "limit": 5})
        features = data.get("features") or []
        if not features:
            raise GeoapifyError(f"Location not found: {text}")

        feature = features[0]
        try:
            lng, lat = feature["geometry"]["coordinates"][:2]
            properties = feature.get("properties") or {}
            location = GeocodedLocation(
                name=properties.get("formatted") or text,
                center=Coordinates(lat=lat, lng=lng),
                bbox=properties.get("bbox"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GeoapifyError(f"Malformed geocoding result for {text}") from e

        logger.info(
            f"[GEOAPIFY] Geocoded to {location.name} "
            f"({location.center.lat:.5f}, {location.center.lng:.5f})"
        )
        return location

    async def search_places(
        self,
        center: Coordinates,
        radius: int = 5000,
        categories: Optional[str] = None,
        place_type: Optional[str] = None,
        text: Optional[str] = None,
        limit: int = 100,
        bbox: Optional[BoundingBox] = None,
    ) -> list[Point]:
        """Places around ``center`` (or inside ``bbox``) as Points.

        ``categories`` is a Geoapify category string; without it the
        category is derived from ``place_type``.
        """
        params: dict[str, Any] = {
            "filter": bbox.to_geoapify_filter() if bbox else f"circle:{center.lng},{center.lat},{radius}",
            "bias": f"proximity:{center.lng},{center.lat}",
            "categories": categories or categories_for(place_type),
            "limit": limit,
        }
        if text:
            params["text"] = text

        data = await self._get(self.PLACES_PATH, params)
        points = []
        for feature in data.get("features") or []:
            try:
                point = feature_to_point(feature)
            except (TypeError, ValueError) as e:
                logger.warning(f"[GEOAPIFY] Skipping malformed place: {e}")
                continue
            if point is not None:
                points.append(point)

        logger.info(f"[GEOAPIFY] Found {len(points)} places ({params['categories']})")
        return points

    async def walking_route(self, stops: Sequence[Point]) -> RouteMeasurement:
        """Walking distance, time, geometry and elevation through ``stops`` in order."""
        if len(stops) < 2:
            raise GeoapifyError("A walking route needs at least two stops")

        waypoints = "|".join(
            f"{stop.coordinates.lat},{stop.coordinates.lng}" for stop in stops
        )
        data = await self._get(
            self.ROUTING_PATH,
            {"waypoints": waypoints, "mode": "walk", "details": "elevation"},
        )
        features = data.get("features") or []
        if not features:
            raise GeoapifyError("No route found")

        try:
            route = features[0]
            properties = route["properties"]
            legs = properties.get("legs") or []
            measurement = RouteMeasurement(
                distance_meters=round(properties["distance"]),
                duration_seconds=round(properties["time"]),
                geometry=route.get("geometry"),
                legs=legs,
                elevation=summarize_elevation(legs),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GeoapifyError("Malformed routing result") from e

        logger.info(
            f"[GEOAPIFY] Route: {measurement.distance_meters}m, "
            f"{round(measurement.duration_seconds / 60)} min, {len(legs)} legs"
        )
        return measurement
