"""Route optimizer for walking tours.

Orders a small set of stops (a linear-path TSP, no return leg) to keep the
total great-circle walking distance low:

1. Greedy nearest-neighbor construction from a start stop
2. 2-opt local search (first improvement, baseline updated after every
   accepted swap, at most 100 passes)
3. Multi-start: repeat 1-2 from every stop and keep the shortest result,
   unless the tour must begin at a fixed start

Distances are straight-line proxies for walking distance. Real street
distance comes from the routing API afterwards; ``estimate_duration`` is the
fallback when that call fails.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from walking_tour.models import (
    Coordinates,
    DurationEstimate,
    OptimizationReport,
    Point,
    Route,
    RouteInputError,
)
from walking_tour.utils.geo import coordinate_distance, distance_matrix, route_distance

logger = logging.getLogger(__name__)

MAX_TWO_OPT_PASSES = 100
DEFAULT_MULTI_START_LIMIT = 15
DEFAULT_WALKING_SPEED_KMH = 4.0
DEFAULT_VIEWING_MINUTES_PER_STOP = 15

FixedStart = Union[Point, Coordinates]


@dataclass
class DistanceMatrix:
    """Pairwise haversine distances (meters) for a list of points."""
    points: list[Point]
    distances: NDArray[np.float64]

    @classmethod
    def from_points(cls, points: Sequence[Point]) -> "DistanceMatrix":
        points = list(points)
        return cls(points=points, distances=distance_matrix(points))

    def __len__(self) -> int:
        return len(self.points)

    def tour_length(self, order: Sequence[int]) -> float:
        """Total distance of an open path visiting ``order``."""
        return float(sum(
            self.distances[order[k]][order[k + 1]] for k in range(len(order) - 1)
        ))


def greedy_order(matrix: DistanceMatrix, start: int) -> list[int]:
    """Nearest-neighbor path from ``start``.

    Ties go to the lowest index. The input is never mutated; visited stops
    are tracked in a separate flag list.
    """
    n = len(matrix)
    visited = [False] * n
    order = [start]
    visited[start] = True
    current = start

    while len(order) < n:
        nearest = -1
        nearest_distance = math.inf
        for j in range(n):
            if not visited[j] and matrix.distances[current][j] < nearest_distance:
                nearest = j
                nearest_distance = matrix.distances[current][j]
        order.append(nearest)
        visited[nearest] = True
        current = nearest

    return order


def two_opt_swap(order: Sequence[int], i: int, j: int) -> list[int]:
    """New order with the span ``order[i+1..j]`` reversed."""
    return list(order[:i + 1]) + list(reversed(order[i + 1:j + 1])) + list(order[j + 1:])


def two_opt_improve(
    matrix: DistanceMatrix,
    order: Sequence[int],
    first_index: int = 0,
    max_passes: int = MAX_TWO_OPT_PASSES,
    deadline: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> list[int]:
    """2-opt local search over an open path.

    Each swap is compared against the current route, so an accepted swap
    immediately becomes the baseline for the rest of the pass. With
    ``first_index=1`` the first two stops never move, which keeps a fixed
    start in place.
    """
    route = list(order)
    n = len(route)
    improved = True
    passes = 0

    while improved and passes < max_passes:
        improved = False
        passes += 1
        for i in range(first_index, n - 1):
            for j in range(i + 2, n):
                candidate = two_opt_swap(route, i, j)
                if matrix.tour_length(candidate) < matrix.tour_length(route):
                    route = candidate
                    improved = True
        if deadline is not None and clock() >= deadline:
            logger.info(f"[ROUTE] 2-opt stopped by time budget after {passes} passes")
            break

    return route


def estimate_duration(
    route: Union[Route, Sequence[Point]],
    walking_speed_kmh: float = DEFAULT_WALKING_SPEED_KMH,
    viewing_minutes_per_stop: int = DEFAULT_VIEWING_MINUTES_PER_STOP,
) -> DurationEstimate:
    """Straight-line walking time plus a fixed viewing time per stop."""
    if walking_speed_kmh <= 0:
        raise ValueError("walking_speed_kmh must be positive")
    if viewing_minutes_per_stop < 0:
        raise ValueError("viewing_minutes_per_stop cannot be negative")

    stops = route.stops if isinstance(route, Route) else list(route)
    total_distance = route_distance(stops)
    walking_minutes = (total_distance / 1000) / walking_speed_kmh * 60
    viewing_minutes = len(stops) * viewing_minutes_per_stop

    return DurationEstimate(
        total_distance_meters=round(total_distance),
        walking_minutes=round(walking_minutes),
        viewing_minutes=viewing_minutes,
        total_minutes=round(walking_minutes + viewing_minutes),
    )


class RouteOptimizer:
    """Orders stops into a short walking route.

    Stateless apart from its limits, so one instance can be shared across
    concurrent requests.

    Args:
        max_passes: 2-opt pass cap per candidate route.
        multi_start_limit: above this many stops the multi-start loop is
            skipped and a single start (the first stop) is used.
        time_budget_seconds: optional wall-clock budget. When it runs out the
            best route found so far is returned.
    """

    def __init__(
        self,
        max_passes: int = MAX_TWO_OPT_PASSES,
        multi_start_limit: int = DEFAULT_MULTI_START_LIMIT,
        time_budget_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_passes < 1:
            raise ValueError("max_passes must be at least 1")
        if multi_start_limit < 1:
            raise ValueError("multi_start_limit must be at least 1")
        if time_budget_seconds is not None and time_budget_seconds <= 0:
            raise ValueError("time_budget_seconds must be positive")
        self._max_passes = max_passes
        self._multi_start_limit = multi_start_limit
        self._time_budget = time_budget_seconds
        self._clock = clock

    def optimize_route(
        self, points: Sequence[Point], fixed_start: Optional[FixedStart] = None
    ) -> Route:
        """Return ``points`` reordered into a short walking route.

        ``fixed_start`` pins the first stop. It is either one of ``points``
        (matched by id) or a coordinate, in which case the nearest stop is
        pinned.

        Raises:
            RouteInputError: if an item is not a Point, lacks coordinates,
                shares an id with another, or the fixed start is unknown.
        """
        points = list(points)
        _validate_points(points)
        n = len(points)
        if n == 0:
            return Route(stops=())

        start_index = _resolve_start(points, fixed_start) if fixed_start is not None else None

        if n <= 2:
            if start_index is not None and start_index > 0:
                points = [points[start_index]] + [p for k, p in enumerate(points) if k != start_index]
            return Route(stops=points)

        matrix = DistanceMatrix.from_points(points)
        deadline = self._deadline()

        if start_index is not None:
            logger.info(f"[ROUTE] Optimizing {n} stops from fixed start '{points[start_index].name}'")
            order = self._optimize_from(matrix, start_index, first_index=1, deadline=deadline)
        else:
            order = self._multi_start(matrix, deadline)

        route = Route(stops=[points[k] for k in order])
        logger.info(
            f"[ROUTE] Best route distance: {round(matrix.tour_length(order))}m, "
            f"starting at '{route.stops[0].name}'"
        )
        return route

    def compare_with_greedy(
        self, points: Sequence[Point], fixed_start: Optional[FixedStart] = None
    ) -> OptimizationReport:
        """Plain nearest-neighbor route versus ``optimize_route`` for the same stops.

        The greedy baseline starts at the fixed start, or at the first stop.
        """
        points = list(points)
        _validate_points(points)
        optimized = self.optimize_route(points, fixed_start)

        if len(points) <= 2:
            greedy = optimized
        else:
            start = _resolve_start(points, fixed_start) if fixed_start is not None else 0
            matrix = DistanceMatrix.from_points(points)
            greedy = Route(stops=[points[k] for k in greedy_order(matrix, start)])

        return OptimizationReport(
            greedy_route=greedy,
            optimized_route=optimized,
            greedy_distance_meters=greedy.total_distance_meters(),
            optimized_distance_meters=optimized.total_distance_meters(),
        )

    def estimate_duration(
        self,
        route: Union[Route, Sequence[Point]],
        walking_speed_kmh: float = DEFAULT_WALKING_SPEED_KMH,
        viewing_minutes_per_stop: int = DEFAULT_VIEWING_MINUTES_PER_STOP,
    ) -> DurationEstimate:
        return estimate_duration(route, walking_speed_kmh, viewing_minutes_per_stop)

    def _deadline(self) -> Optional[float]:
        if self._time_budget is None:
            return None
        return self._clock() + self._time_budget

    def _optimize_from(
        self,
        matrix: DistanceMatrix,
        start: int,
        first_index: int,
        deadline: Optional[float],
    ) -> list[int]:
        order = greedy_order(matrix, start)
        return two_opt_improve(
            matrix,
            order,
            first_index=first_index,
            max_passes=self._max_passes,
            deadline=deadline,
            clock=self._clock,
        )

    def _multi_start(self, matrix: DistanceMatrix, deadline: Optional[float]) -> list[int]:
        n = len(matrix)
        if n > self._multi_start_limit:
            logger.info(
                f"[ROUTE] {n} stops exceeds multi-start limit {self._multi_start_limit}, "
                "using a single start"
            )
            return self._optimize_from(matrix, 0, first_index=0, deadline=deadline)

        best_order: list[int] = []
        best_distance = math.inf
        for start in range(n):
            order = self._optimize_from(matrix, start, first_index=0, deadline=deadline)
            distance = matrix.tour_length(order)
            if distance < best_distance:
                best_distance = distance
                best_order = order
            if deadline is not None and start < n - 1 and self._clock() >= deadline:
                logger.info(f"[ROUTE] Time budget exhausted after {start + 1}/{n} starts")
                break

        return best_order


def _validate_points(points: list) -> None:
    seen: set[str] = set()
    for index, point in enumerate(points):
        if not isinstance(point, Point):
            raise RouteInputError(
                f"Item {index} is not a Point: {type(point).__name__}"
            )
        if getattr(point, "coordinates", None) is None:
            raise RouteInputError(f"Point '{point.id}' has no coordinates")
        if point.id in seen:
            raise RouteInputError(f"Duplicate point id: {point.id}")
        seen.add(point.id)


def _resolve_start(points: list[Point], fixed_start: FixedStart) -> int:
    """Index of the pinned first stop."""
    if isinstance(fixed_start, Point):
        for index, point in enumerate(points):
            if point.id == fixed_start.id:
                return index
        raise RouteInputError(f"Fixed start '{fixed_start.id}' is not one of the points")

    if isinstance(fixed_start, Coordinates):
        # min() keeps the first of equally near stops
        return min(
            range(len(points)),
            key=lambda k: coordinate_distance(fixed_start, points[k].coordinates),
        )

    raise RouteInputError(
        f"Fixed start must be a Point or Coordinates, got {type(fixed_start).__name__}"
    )
