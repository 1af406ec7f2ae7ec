"""Core data models for the walking tour planner.

Pydantic models for coordinates, points of interest, routes, duration
estimates and the deduplication configuration/results that flow between the
planner's services.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Coordinates(BaseModel):
    """Geographic coordinates with validation.

    Latitude must be between -90 and 90 degrees.
    Longitude must be between -180 and 180 degrees.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class Point(BaseModel):
    """A candidate stop.

    ``id`` identifies the point for route planning. ``name`` and
    ``coordinates`` identify it for deduplication. ``payload`` carries
    source-specific metadata (address, category, raw API properties) and is
    passed through untouched.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable identifier from the source")
    name: str = Field(default="", description="Display name (may be empty)")
    coordinates: Coordinates = Field(..., description="Geographic location")
    payload: dict[str, Any] = Field(
        default_factory=dict, description="Opaque source metadata"
    )


class Route(BaseModel):
    """An ordered, immutable sequence of stops.

    No identifier may appear twice. Reordering produces a new Route.
    """

    model_config = ConfigDict(frozen=True)

    stops: tuple[Point, ...] = Field(default=(), description="Stops in visit order")

    @field_validator("stops")
    @classmethod
    def _unique_ids(cls, stops: tuple[Point, ...]) -> tuple[Point, ...]:
        seen: set[str] = set()
        for stop in stops:
            if stop.id in seen:
                raise ValueError(f"Duplicate stop id in route: {stop.id}")
            seen.add(stop.id)
        return stops

    @property
    def ids(self) -> list[str]:
        return [stop.id for stop in self.stops]

    def total_distance_meters(self) -> float:
        from walking_tour.utils.geo import route_distance

        return route_distance(self.stops)


class DurationEstimate(BaseModel):
    """Straight-line tour duration, used when no routing data is available."""

    total_distance_meters: int = Field(..., ge=0, description="Total distance in meters")
    walking_minutes: int = Field(..., ge=0, description="Estimated walking time")
    viewing_minutes: int = Field(..., ge=0, description="Time spent at the stops")
    total_minutes: int = Field(..., ge=0, description="Walking plus viewing time")

    def formatted_duration(self) -> str:
        return f"{self.total_minutes // 60}h {self.total_minutes % 60}m"

    def formatted_distance(self) -> str:
        return f"{self.total_distance_meters / 1000:.1f} km"


class DeduplicationConfig(BaseModel):
    """When two points count as the same real-world place."""

    name_similarity_threshold: float = Field(
        default=0.85, ge=0, le=1, description="Minimum normalized name similarity"
    )
    proximity_threshold_meters: float = Field(
        default=100.0, ge=0, description="Maximum distance between the same place"
    )
    require_both_conditions: bool = Field(
        default=False,
        description="True: name AND proximity must match. False: either is enough",
    )


class MergeReason(str, Enum):
    """Which condition(s) flagged a duplicate."""

    NAME = "name"
    PROXIMITY = "proximity"
    NAME_AND_PROXIMITY = "name+proximity"


class DuplicateRecord(BaseModel):
    """A removed point and the kept point it was merged into."""

    removed_id: str
    removed_name: str
    kept_id: str
    kept_name: str
    similarity: float = Field(..., ge=0, le=1)
    distance_meters: float = Field(..., ge=0)
    reason: MergeReason


class DeduplicationResult(BaseModel):
    """Surviving points in input order plus the removal log."""

    points: list[Point] = Field(default_factory=list)
    duplicates: list[DuplicateRecord] = Field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.duplicates)


class OptimizationReport(BaseModel):
    """Greedy nearest-neighbor versus the optimized route for the same points."""

    greedy_route: Route
    optimized_route: Route
    greedy_distance_meters: float = Field(..., ge=0)
    optimized_distance_meters: float = Field(..., ge=0)

    @property
    def improvement_meters(self) -> float:
        return self.greedy_distance_meters - self.optimized_distance_meters

    @property
    def improvement_percent(self) -> float:
        if self.greedy_distance_meters == 0:
            return 0.0
        return self.improvement_meters / self.greedy_distance_meters * 100


class Elevation(BaseModel):
    """Elevation summary over a walking route, in meters."""

    gain: int = 0
    max: int = 0
    min: int = 0


class RouteMeasurement(BaseModel):
    """Real walking distance/time from the routing API."""

    distance_meters: int = Field(..., ge=0)
    duration_seconds: int = Field(..., ge=0)
    geometry: Optional[dict[str, Any]] = Field(None, description="GeoJSON geometry")
    legs: list[dict[str, Any]] = Field(default_factory=list)
    elevation: Optional[Elevation] = None


class GeocodedLocation(BaseModel):
    """Result of resolving a free-text location."""

    name: str = Field(..., description="Formatted address of the match")
    center: Coordinates
    bbox: Optional[dict[str, float]] = None


class DurationSource(str, Enum):
    ROUTING = "routing"
    ESTIMATE = "estimate"


class WalkingTour(BaseModel):
    """A complete, ordered walking tour."""

    title: str
    query: str
    location: GeocodedLocation
    route: Route
    duration: DurationEstimate
    duration_source: DurationSource
    measurement: Optional[RouteMeasurement] = None
    candidates_found: int = Field(default=0, ge=0)
    duplicates_removed: int = Field(default=0, ge=0)
