"""Candidate ranking."""

from .service import KeywordRanker, PlaceRanker, filter_and_rank_points, score_point

__all__ = [
    "KeywordRanker",
    "PlaceRanker",
    "filter_and_rank_points",
    "score_point",
]
