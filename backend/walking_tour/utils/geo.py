"""Geographic helpers.

All distances are great-circle distances in meters on a sphere of the
Earth's mean radius. They ignore elevation and the street network.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from walking_tour.models import Coordinates, Point

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two lat/lng pairs, in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def coordinate_distance(a: Coordinates, b: Coordinates) -> float:
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def point_distance(a: Point, b: Point) -> float:
    return coordinate_distance(a.coordinates, b.coordinates)


def route_distance(points: Sequence[Point]) -> float:
    """Sum of consecutive distances along an open path (no return leg)."""
    return sum(
        point_distance(points[i], points[i + 1]) for i in range(len(points) - 1)
    )


def distance_matrix(points: Sequence[Point]) -> NDArray[np.float64]:
    """Symmetric pairwise haversine matrix with a zero diagonal.

    Each pair is computed once and mirrored, so ``m[i][j] == m[j][i]`` holds
    exactly.
    """
    n = len(points)
    matrix = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            d = point_distance(points[i], points[j])
            matrix[i][j] = d
            matrix[j][i] = d
    return matrix


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lng box, inclusive on every edge."""

    west: float
    south: float
    east: float
    north: float

    def __post_init__(self) -> None:
        if self.south > self.north:
            raise ValueError("south must not exceed north")
        if self.west > self.east:
            raise ValueError("west must not exceed east")

    def contains(self, lat: float, lng: float) -> bool:
        return self.west <= lng <= self.east and self.south <= lat <= self.north

    def contains_point(self, point: Point) -> bool:
        return self.contains(point.coordinates.lat, point.coordinates.lng)

    def to_geoapify_filter(self) -> str:
        return f"rect:{self.west},{self.north},{self.east},{self.south}"

    def dimensions_km(self) -> tuple[float, float]:
        """Approximate (width, height) in kilometers."""
        mid_lat = (self.south + self.north) / 2
        width = (self.east - self.west) * 111.320 * math.cos(math.radians(mid_lat))
        height = (self.north - self.south) * 111.320
        return width, height
