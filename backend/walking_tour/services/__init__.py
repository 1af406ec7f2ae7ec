"""Walking Tour Planner Services.

Service layer components:
- Deduplication: name-similarity / proximity duplicate removal
- Route Optimizer: greedy nearest-neighbor + 2-opt stop ordering
- Ranking: selection of the best candidates (keyword heuristic default)
- Geoapify: geocoding, places search and walking routes
- Tour: end-to-end tour assembly
"""

from .deduplication import DeduplicationService, deduplicate_points
from .route_optimizer import DistanceMatrix, RouteOptimizer, estimate_duration
from .ranking import KeywordRanker, PlaceRanker, filter_and_rank_points
from .geoapify import GeoapifyClient, GeoapifyError
from .tour import TourService

__all__ = [
    # Deduplication
    "DeduplicationService",
    "deduplicate_points",
    # Route optimizer
    "DistanceMatrix",
    "RouteOptimizer",
    "estimate_duration",
    # Ranking
    "KeywordRanker",
    "PlaceRanker",
    "filter_and_rank_points",
    # Geoapify
    "GeoapifyClient",
    "GeoapifyError",
    # Tour
    "TourService",
]
