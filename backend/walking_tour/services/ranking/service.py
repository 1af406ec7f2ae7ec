"""Ranking of deduplicated candidates down to the tour's stop count.

In production this step is an LLM call; ``PlaceRanker`` is the seam it plugs
into. ``KeywordRanker`` is the deterministic default: name match, tourism
category and Wikipedia coverage each add to a point's score.
"""

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from walking_tour.models import Point

logger = logging.getLogger(__name__)

NAME_MATCH_SCORE = 10
TOURISM_CATEGORY_SCORE = 5
WIKI_INFO_SCORE = 3


def score_point(point: Point, query: str) -> int:
    score = 0
    if query and query.lower() in point.name.lower():
        score += NAME_MATCH_SCORE
    category = point.payload.get("category")
    if isinstance(category, str) and "tourism" in category:
        score += TOURISM_CATEGORY_SCORE
    if point.payload.get("wiki_info"):
        score += WIKI_INFO_SCORE
    return score


def filter_and_rank_points(
    points: Sequence[Point], query: str, max_places: int = 10
) -> list[Point]:
    """Highest-scoring points first, at most ``max_places``.

    Equal scores keep their input order.
    """
    if max_places < 0:
        raise ValueError("max_places cannot be negative")
    scored = sorted(points, key=lambda p: score_point(p, query), reverse=True)
    return scored[:max_places]


class PlaceRanker(ABC):
    """Selects the best ``top_n`` candidates for a query."""

    @abstractmethod
    async def rank(self, query: str, points: Sequence[Point], top_n: int) -> list[Point]:
        pass


class KeywordRanker(PlaceRanker):
    """Keyword/category heuristic ranker."""

    async def rank(self, query: str, points: Sequence[Point], top_n: int) -> list[Point]:
        selected = filter_and_rank_points(points, query, top_n)
        if selected:
            logger.info(
                f"[RANK] Selected {len(selected)} of {len(points)} places, "
                f"top: {selected[0].name}"
            )
        return selected
