"""Route optimizer module.

Greedy nearest-neighbor + 2-opt ordering of tour stops and the straight-line
duration estimate used when routing data is unavailable.
"""

from .service import (
    DistanceMatrix,
    RouteOptimizer,
    estimate_duration,
    greedy_order,
    two_opt_improve,
    two_opt_swap,
)

__all__ = [
    "DistanceMatrix",
    "RouteOptimizer",
    "estimate_duration",
    "greedy_order",
    "two_opt_improve",
    "two_opt_swap",
]
