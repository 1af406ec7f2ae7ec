"""Unit tests for the route optimizer.

Tests greedy construction, the 2-opt pass semantics, multi-start and
fixed-start optimization, work budgets and the duration estimate.
"""

import itertools
import random

import pytest

from walking_tour.models import Coordinates, Point, Route, RouteInputError
from walking_tour.services.route_optimizer import (
    DistanceMatrix,
    RouteOptimizer,
    estimate_duration,
    greedy_order,
    two_opt_improve,
    two_opt_swap,
)
from walking_tour.utils.geo import route_distance


def _point(pid: str, lat: float, lng: float) -> Point:
    return Point(id=pid, name=f"Stop {pid}", coordinates=Coordinates(lat=lat, lng=lng))


def _triangle() -> list[Point]:
    return [
        _point("A", 0.0, 0.0),
        _point("B", 0.0, 0.01),
        _point("C", 0.02, 0.005),
    ]


def _scattered(n: int) -> list[Point]:
    """Deterministic, irregular points around Chiang Mai's old town."""
    offsets = [
        (0.0000, 0.0000), (0.0041, 0.0112), (0.0087, -0.0031), (-0.0052, 0.0068),
        (0.0013, 0.0155), (-0.0094, -0.0047), (0.0120, 0.0049), (-0.0023, -0.0119),
        (0.0066, 0.0021), (-0.0108, 0.0101), (0.0031, -0.0088), (0.0099, 0.0137),
        (-0.0071, 0.0019), (0.0145, -0.0062), (-0.0036, 0.0145), (0.0057, -0.0140),
        (-0.0130, -0.0015), (0.0018, 0.0073),
    ]
    return [
        _point(f"p{k}", 18.7884 + dlat, 98.9817 + dlng)
        for k, (dlat, dlng) in enumerate(offsets[:n])
    ]


class TestGreedyOrder:
    def test_triangle_from_a(self) -> None:
        matrix = DistanceMatrix.from_points(_triangle())
        assert greedy_order(matrix, 0) == [0, 1, 2]

    def test_visits_every_point_once(self) -> None:
        matrix = DistanceMatrix.from_points(_scattered(10))
        for start in range(10):
            order = greedy_order(matrix, start)
            assert order[0] == start
            assert sorted(order) == list(range(10))

    def test_ties_go_to_lowest_index(self) -> None:
        points = [
            _point("center", 0.0, 0.0),
            _point("east", 0.0, 0.01),
            _point("west", 0.0, -0.01),
        ]
        matrix = DistanceMatrix.from_points(points)
        assert greedy_order(matrix, 0) == [0, 1, 2]

    def test_colocated_points(self) -> None:
        points = [_point("a", 1.0, 1.0), _point("b", 1.0, 1.0), _point("c", 1.0, 1.001)]
        matrix = DistanceMatrix.from_points(points)
        assert greedy_order(matrix, 2) == [2, 0, 1]


class TestTwoOpt:
    def test_swap_reverses_inner_span(self) -> None:
        assert two_opt_swap([0, 1, 2, 3, 4], 1, 3) == [0, 1, 3, 2, 4]
        assert two_opt_swap([0, 1, 2, 3, 4], 0, 4) == [0, 4, 3, 2, 1]

    def test_swap_does_not_mutate(self) -> None:
        order = [0, 1, 2, 3]
        two_opt_swap(order, 0, 2)
        assert order == [0, 1, 2, 3]

    def test_three_point_greedy_route_unchanged(self) -> None:
        matrix = DistanceMatrix.from_points(_triangle())
        assert two_opt_improve(matrix, [0, 1, 2]) == [0, 1, 2]

    def test_untangles_crossing_route(self) -> None:
        points = [_point(str(k), 0.0, 0.001 * k) for k in range(6)]
        matrix = DistanceMatrix.from_points(points)
        tangled = [0, 3, 1, 4, 2, 5]

        improved = two_opt_improve(matrix, tangled)
        assert sorted(improved) == list(range(6))
        assert improved[0] == 0
        assert matrix.tour_length(improved) < matrix.tour_length(tangled)

    def test_first_index_pins_prefix(self) -> None:
        points = [_point(str(k), 0.0, 0.001 * k) for k in range(6)]
        matrix = DistanceMatrix.from_points(points)
        improved = two_opt_improve(matrix, [0, 3, 1, 4, 2, 5], first_index=1)
        assert improved[:2] == [0, 3]

    def test_never_worse(self) -> None:
        matrix = DistanceMatrix.from_points(_scattered(12))
        for start in range(12):
            order = greedy_order(matrix, start)
            improved = two_opt_improve(matrix, order)
            assert matrix.tour_length(improved) <= matrix.tour_length(order)


def _random_instance(seed: int) -> tuple[DistanceMatrix, list[int]]:
    """Seeded 8-11 stop instance and a shuffled starting order."""
    rng = random.Random(seed)
    n = rng.randint(8, 11)
    points = [
        _point(f"r{k}", 18.78 + rng.uniform(0, 0.02), 98.97 + rng.uniform(0, 0.02))
        for k in range(n)
    ]
    order = list(range(n))
    rng.shuffle(order)
    return DistanceMatrix.from_points(points), order


def _length(dist: list[list[float]], order: list[int]) -> float:
    return sum(dist[order[k]][order[k + 1]] for k in range(len(order) - 1))


def _first_improvement(dist: list[list[float]], order: list[int], max_passes: int = 100) -> list[int]:
    """Reference 2-opt: every accepted swap becomes the baseline at once."""
    route = list(order)
    n = len(route)
    for _ in range(max_passes):
        improved = False
        for i in range(n - 1):
            for j in range(i + 2, n):
                candidate = route[:i + 1] + route[i + 1:j + 1][::-1] + route[j + 1:]
                if _length(dist, candidate) < _length(dist, route):
                    route = candidate
                    improved = True
        if not improved:
            break
    return route


def _best_improvement(dist: list[list[float]], order: list[int]) -> list[int]:
    """Alternative 2-opt: apply only the best swap of each pass."""
    route = list(order)
    n = len(route)
    while True:
        best = route
        for i in range(n - 1):
            for j in range(i + 2, n):
                candidate = route[:i + 1] + route[i + 1:j + 1][::-1] + route[j + 1:]
                if _length(dist, candidate) < _length(dist, best):
                    best = candidate
        if best == route:
            return route
        route = best


class TestTwoOptAcceptance:
    """The pass scans against the current route, not the pass's starting route."""

    SEEDS = range(20)

    def test_matches_first_improvement_reference(self) -> None:
        for seed in self.SEEDS:
            matrix, order = _random_instance(seed)
            dist = matrix.distances.tolist()
            assert two_opt_improve(matrix, order) == _first_improvement(dist, order), seed

    def test_instances_separate_acceptance_rules(self) -> None:
        differing = []
        for seed in self.SEEDS:
            matrix, order = _random_instance(seed)
            dist = matrix.distances.tolist()
            if _first_improvement(dist, order) != _best_improvement(dist, order):
                differing.append(seed)
        assert differing

    def test_single_pass_cap(self) -> None:
        needs_more_passes = []
        for seed in self.SEEDS:
            matrix, order = _random_instance(seed)
            dist = matrix.distances.tolist()
            one_pass = two_opt_improve(matrix, order, max_passes=1)
            assert one_pass == _first_improvement(dist, order, max_passes=1), seed
            if one_pass != two_opt_improve(matrix, order):
                needs_more_passes.append(seed)
        assert needs_more_passes

    def test_optimizer_respects_max_passes(self) -> None:
        matrix, order = _random_instance(3)
        points = [matrix.points[k] for k in order]
        capped = RouteOptimizer(max_passes=1).optimize_route(points, fixed_start=points[0])

        local = DistanceMatrix.from_points(points)
        expected = two_opt_improve(local, greedy_order(local, 0), first_index=1, max_passes=1)
        assert capped.ids == [points[k].id for k in expected]


class TestOptimizeRouteSmallInputs:
    def setup_method(self) -> None:
        self.optimizer = RouteOptimizer()

    def test_empty(self) -> None:
        route = self.optimizer.optimize_route([])
        assert isinstance(route, Route)
        assert route.ids == []

    def test_single(self) -> None:
        points = [_point("a", 1.0, 1.0)]
        assert self.optimizer.optimize_route(points).ids == ["a"]

    def test_two_unchanged(self) -> None:
        points = [_point("a", 1.0, 1.0), _point("b", 0.0, 0.0)]
        assert self.optimizer.optimize_route(points).ids == ["a", "b"]

    def test_two_with_fixed_start_second(self) -> None:
        points = [_point("a", 1.0, 1.0), _point("b", 0.0, 0.0)]
        route = self.optimizer.optimize_route(points, fixed_start=points[1])
        assert route.ids == ["b", "a"]

    def test_single_with_fixed_start(self) -> None:
        points = [_point("a", 1.0, 1.0)]
        assert self.optimizer.optimize_route(points, fixed_start=points[0]).ids == ["a"]


class TestOptimizeRouteTriangle:
    def test_fixed_start_matches_greedy(self) -> None:
        points = _triangle()
        route = RouteOptimizer().optimize_route(points, fixed_start=points[0])
        assert route.ids == ["A", "B", "C"]

    def test_multi_start_no_worse_than_greedy_from_a(self) -> None:
        points = _triangle()
        route = RouteOptimizer().optimize_route(points)
        assert sorted(route.ids) == ["A", "B", "C"]
        assert route.total_distance_meters() <= route_distance(points) + 1e-6


class TestOptimizeRouteProperties:
    def setup_method(self) -> None:
        self.optimizer = RouteOptimizer()

    @pytest.mark.parametrize("n", [3, 5, 8, 12])
    def test_permutation_of_input(self, n: int) -> None:
        points = _scattered(n)
        route = self.optimizer.optimize_route(points)
        assert sorted(route.ids) == sorted(p.id for p in points)
        assert len(route.ids) == n

    @pytest.mark.parametrize("n", [3, 6, 10])
    def test_no_worse_than_greedy_from_any_start(self, n: int) -> None:
        points = _scattered(n)
        route = self.optimizer.optimize_route(points)
        matrix = DistanceMatrix.from_points(points)
        optimized = route.total_distance_meters()
        for start in range(n):
            greedy = matrix.tour_length(greedy_order(matrix, start))
            assert optimized <= greedy + 1e-6

    def test_deterministic(self) -> None:
        points = _scattered(10)
        first = self.optimizer.optimize_route(points)
        second = self.optimizer.optimize_route(points)
        assert first.ids == second.ids

    @pytest.mark.parametrize("n", [1, 2, 3, 4, 7, 10])
    def test_fixed_start_always_first(self, n: int) -> None:
        points = _scattered(n)
        for start in points:
            route = self.optimizer.optimize_route(points, fixed_start=start)
            assert route.ids[0] == start.id
            assert sorted(route.ids) == sorted(p.id for p in points)

    def test_fixed_start_no_worse_than_its_greedy(self) -> None:
        points = _scattered(9)
        matrix = DistanceMatrix.from_points(points)
        route = self.optimizer.optimize_route(points, fixed_start=points[4])
        assert route.total_distance_meters() <= matrix.tour_length(greedy_order(matrix, 4)) + 1e-6

    def test_input_not_mutated(self) -> None:
        points = _scattered(6)
        before = [p.id for p in points]
        self.optimizer.optimize_route(points)
        assert [p.id for p in points] == before

    def test_payload_passed_through(self) -> None:
        points = [
            Point(
                id=str(k),
                name=f"Stop {k}",
                coordinates=Coordinates(lat=0.0, lng=0.001 * k),
                payload={"address": f"{k} Main St"},
            )
            for k in range(4)
        ]
        route = self.optimizer.optimize_route(points)
        assert {s.id: s.payload["address"] for s in route.stops} == {
            str(k): f"{k} Main St" for k in range(4)
        }


class TestMultiStartTies:
    """Equal-length candidates: the lowest start index wins.

    Stops sit on the equator at exact binary longitudes, so each hop is the
    same float and a path and its reverse have identical lengths.
    """

    def _line(self, names: str, lngs: list[float]) -> list[Point]:
        return [_point(name, 0.0, lng) for name, lng in zip(names, lngs)]

    def test_forward_input_keeps_forward_route(self) -> None:
        points = self._line("ABCD", [0.0, 0.25, 0.5, 0.75])
        assert RouteOptimizer().optimize_route(points).ids == ["A", "B", "C", "D"]

    def test_reversed_input_keeps_reversed_route(self) -> None:
        points = self._line("DCBA", [0.75, 0.5, 0.25, 0.0])
        assert RouteOptimizer().optimize_route(points).ids == ["D", "C", "B", "A"]


class TestFixedStartCoordinates:
    def test_nearest_point_pinned(self) -> None:
        points = _scattered(6)
        target = points[3].coordinates
        start = Coordinates(lat=target.lat + 0.0001, lng=target.lng)
        route = RouteOptimizer().optimize_route(points, fixed_start=start)
        assert route.ids[0] == points[3].id


class TestOptimizeRouteValidation:
    def setup_method(self) -> None:
        self.optimizer = RouteOptimizer()

    def test_duplicate_ids(self) -> None:
        points = [_point("a", 0.0, 0.0), _point("a", 1.0, 1.0), _point("b", 2.0, 2.0)]
        with pytest.raises(RouteInputError, match="Duplicate point id"):
            self.optimizer.optimize_route(points)

    def test_not_a_point(self) -> None:
        with pytest.raises(RouteInputError, match="not a Point"):
            self.optimizer.optimize_route([_point("a", 0.0, 0.0), {"id": "b"}])

    def test_missing_coordinates(self) -> None:
        broken = Point.model_construct(id="x", name="x", coordinates=None, payload={})
        with pytest.raises(RouteInputError, match="no coordinates"):
            self.optimizer.optimize_route([_point("a", 0.0, 0.0), broken])

    def test_unknown_fixed_start(self) -> None:
        points = _scattered(4)
        with pytest.raises(RouteInputError, match="not one of the points"):
            self.optimizer.optimize_route(points, fixed_start=_point("zzz", 0.0, 0.0))

    def test_bad_fixed_start_type(self) -> None:
        with pytest.raises(RouteInputError):
            self.optimizer.optimize_route(_scattered(4), fixed_start=(18.7, 98.9))

    def test_route_input_error_is_value_error(self) -> None:
        assert issubclass(RouteInputError, ValueError)

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_passes": 0}, {"multi_start_limit": 0}, {"time_budget_seconds": 0}],
    )
    def test_invalid_limits(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RouteOptimizer(**kwargs)


class TestWorkBudget:
    def test_multi_start_bypassed_above_limit(self) -> None:
        points = _scattered(8)
        route = RouteOptimizer(multi_start_limit=5).optimize_route(points)
        assert route.ids[0] == points[0].id
        assert sorted(route.ids) == sorted(p.id for p in points)

    def test_time_budget_returns_best_so_far(self) -> None:
        ticks = itertools.count(0, 10)
        optimizer = RouteOptimizer(time_budget_seconds=1, clock=lambda: next(ticks))
        points = _scattered(8)

        route = optimizer.optimize_route(points)
        assert sorted(route.ids) == sorted(p.id for p in points)
        # Only the first start (index 0) is tried before the budget runs out
        assert route.ids[0] == points[0].id


class TestCompareWithGreedy:
    def test_optimized_not_longer(self) -> None:
        points = _scattered(10)
        report = RouteOptimizer().compare_with_greedy(points)
        assert report.optimized_distance_meters <= report.greedy_distance_meters + 1e-6
        assert report.improvement_percent >= -1e-9
        assert report.greedy_route.ids[0] == points[0].id

    def test_fixed_start(self) -> None:
        points = _scattered(7)
        report = RouteOptimizer().compare_with_greedy(points, fixed_start=points[2])
        assert report.greedy_route.ids[0] == points[2].id
        assert report.optimized_route.ids[0] == points[2].id

    def test_small_input(self) -> None:
        points = _scattered(2)
        report = RouteOptimizer().compare_with_greedy(points)
        assert report.improvement_meters == 0.0


class TestEstimateDuration:
    def test_two_stops(self) -> None:
        route = Route(stops=[_point("a", 0.0, 0.0), _point("b", 0.0, 0.01)])
        distance = route.total_distance_meters()
        walking = distance / 1000 / 4 * 60

        estimate = estimate_duration(route)
        assert estimate.total_distance_meters == 1112
        assert estimate.walking_minutes == round(walking)
        assert estimate.viewing_minutes == 30
        assert estimate.total_minutes == round(walking + 30)

    def test_viewing_minutes_parameter(self) -> None:
        stops = [_point("a", 0.0, 0.0), _point("b", 0.0, 0.01), _point("c", 0.0, 0.02)]
        assert estimate_duration(stops, viewing_minutes_per_stop=20).viewing_minutes == 60

    def test_empty_route(self) -> None:
        estimate = estimate_duration(Route())
        assert estimate.total_distance_meters == 0
        assert estimate.total_minutes == 0

    def test_monotonic_in_distance_and_stops(self) -> None:
        short = [_point("a", 0.0, 0.0), _point("b", 0.0, 0.01)]
        long = [_point("a", 0.0, 0.0), _point("b", 0.0, 0.05)]
        more_stops = short + [_point("c", 0.0, 0.01)]
        assert estimate_duration(long).total_minutes >= estimate_duration(short).total_minutes
        assert estimate_duration(more_stops).total_minutes >= estimate_duration(short).total_minutes

    def test_walking_speed(self) -> None:
        stops = [_point("a", 0.0, 0.0), _point("b", 0.0, 0.1)]
        slow = estimate_duration(stops, walking_speed_kmh=3.0)
        fast = estimate_duration(stops, walking_speed_kmh=6.0)
        assert slow.walking_minutes > fast.walking_minutes

    def test_invalid_parameters(self) -> None:
        with pytest.raises(ValueError):
            estimate_duration([], walking_speed_kmh=0)
        with pytest.raises(ValueError):
            estimate_duration([], viewing_minutes_per_stop=-1)

    def test_optimizer_method_delegates(self) -> None:
        stops = [_point("a", 0.0, 0.0), _point("b", 0.0, 0.01)]
        assert RouteOptimizer().estimate_duration(stops, 4.0, 20) == estimate_duration(stops, 4.0, 20)
