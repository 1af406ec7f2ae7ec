"""Walking tour assembly.

Pipeline for one request:

1. Geocode the query and search for candidate places around it, keeping
   only those inside the requested area if one is given
2. Deduplicate the candidates
3. Rank them down to the requested number of stops
4. Order the stops (optionally pinned to the stop nearest a start location)
5. Measure the walking route; fall back to the straight-line estimate if
   the routing call fails
"""

import logging
from typing import Optional

from walking_tour.models import (
    Coordinates,
    DurationEstimate,
    DurationSource,
    NoPlacesFoundError,
    Route,
    RouteMeasurement,
    WalkingTour,
)
from walking_tour.services.deduplication import DeduplicationService
from walking_tour.services.geoapify import GeoapifyClient, GeoapifyError
from walking_tour.services.ranking import KeywordRanker, PlaceRanker
from walking_tour.services.route_optimizer import RouteOptimizer, estimate_duration
from walking_tour.utils.geo import BoundingBox

logger = logging.getLogger(__name__)


class TourService:
    """Builds walking tours from a free-text query.

    All collaborators are injected; the service holds no global state.
    """

    def __init__(
        self,
        geoapify: GeoapifyClient,
        deduplicator: DeduplicationService | None = None,
        ranker: PlaceRanker | None = None,
        optimizer: RouteOptimizer | None = None,
        search_radius_meters: int = 5000,
        walking_speed_kmh: float = 4.0,
        viewing_minutes_per_stop: int = 20,
    ) -> None:
        self._geoapify = geoapify
        self._deduplicator = deduplicator or DeduplicationService()
        self._ranker = ranker or KeywordRanker()
        self._optimizer = optimizer or RouteOptimizer()
        self._search_radius = search_radius_meters
        self._walking_speed_kmh = walking_speed_kmh
        self._viewing_minutes = viewing_minutes_per_stop

    async def create_tour(
        self,
        query: str,
        max_stops: int = 7,
        start: Optional[Coordinates] = None,
        place_type: Optional[str] = None,
        bbox: Optional[BoundingBox] = None,
    ) -> WalkingTour:
        """Create a tour for ``query``.

        With ``bbox`` the places search is restricted to that area and any
        candidate outside it is dropped.

        Raises:
            NoPlacesFoundError: if the search returns no candidates.
            GeoapifyError: if geocoding or the places search fails.
        """
        if max_stops < 1:
            raise ValueError("max_stops must be at least 1")

        logger.info(f"[TOUR] Creating tour for '{query}' (max {max_stops} stops)")
        if bbox is not None:
            width, height = bbox.dimensions_km()
            logger.info(f"[TOUR] Restricting search to a {width:.2f} km x {height:.2f} km area")
        location = await self._geoapify.geocode(query)
        candidates = await self._geoapify.search_places(
            center=location.center,
            radius=self._search_radius,
            place_type=place_type,
            bbox=bbox,
        )
        if bbox is not None:
            candidates = [p for p in candidates if bbox.contains_point(p)]
        if not candidates:
            raise NoPlacesFoundError(f"No places found for: {query}")

        unique = self._deduplicator.deduplicate(candidates)
        selected = await self._ranker.rank(query, unique.points, max_stops)
        if not selected:
            raise NoPlacesFoundError(f"No places selected for: {query}")

        route = self._optimizer.optimize_route(selected, start)
        measurement = await self._measure(route)

        if measurement is not None:
            duration = self.duration_from_measurement(measurement, len(route.stops))
            source = DurationSource.ROUTING
        else:
            duration = estimate_duration(route, self._walking_speed_kmh, self._viewing_minutes)
            source = DurationSource.ESTIMATE

        logger.info(
            f"[TOUR] {len(route.stops)} stops, {duration.formatted_distance()}, "
            f"{duration.formatted_duration()} ({source.value})"
        )
        return WalkingTour(
            title=f"Walking Tour: {query}",
            query=query,
            location=location,
            route=route,
            duration=duration,
            duration_source=source,
            measurement=measurement,
            candidates_found=len(candidates),
            duplicates_removed=unique.removed_count,
        )

    def duration_from_measurement(
        self, measurement: RouteMeasurement, stop_count: int
    ) -> DurationEstimate:
        walking_minutes = round(measurement.duration_seconds / 60)
        viewing_minutes = stop_count * self._viewing_minutes
        return DurationEstimate(
            total_distance_meters=measurement.distance_meters,
            walking_minutes=walking_minutes,
            viewing_minutes=viewing_minutes,
            total_minutes=walking_minutes + viewing_minutes,
        )

    async def _measure(self, route: Route) -> Optional[RouteMeasurement]:
        if len(route.stops) < 2:
            return None
        try:
            return await self._geoapify.walking_route(route.stops)
        except GeoapifyError as e:
            logger.warning(f"[TOUR] Routing failed, using straight-line estimate: {e}")
            return None
