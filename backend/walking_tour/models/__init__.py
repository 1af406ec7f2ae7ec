"""Data models for the walking tour planner."""

from .core import (
    Coordinates,
    DeduplicationConfig,
    DeduplicationResult,
    DuplicateRecord,
    DurationEstimate,
    DurationSource,
    Elevation,
    GeocodedLocation,
    MergeReason,
    OptimizationReport,
    Point,
    Route,
    RouteMeasurement,
    WalkingTour,
)
from .errors import AppError, ErrorCode, NoPlacesFoundError, RouteInputError

__all__ = [
    "Coordinates",
    "DeduplicationConfig",
    "DeduplicationResult",
    "DuplicateRecord",
    "DurationEstimate",
    "DurationSource",
    "Elevation",
    "GeocodedLocation",
    "MergeReason",
    "OptimizationReport",
    "Point",
    "Route",
    "RouteMeasurement",
    "WalkingTour",
    "AppError",
    "ErrorCode",
    "NoPlacesFoundError",
    "RouteInputError",
]
