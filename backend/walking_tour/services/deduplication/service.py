"""Near-duplicate removal for place search results.

Broad category searches often return the same place twice, under a slightly
different name ("Wat Phra Singh" / "Wat Phra Singh Temple") or with slightly
shifted coordinates. Each candidate is compared against the points already
kept, and dropped on the first kept point that matches:

- name match: normalized Levenshtein similarity >= threshold
- proximity match: haversine distance <= threshold meters

With ``require_both_conditions`` both must hold, otherwise either is enough.
The first-seen representative survives and input order is preserved.
"""

import logging
from typing import Optional, Sequence

from walking_tour.models import (
    DeduplicationConfig,
    DeduplicationResult,
    DuplicateRecord,
    MergeReason,
    Point,
)
from walking_tour.utils.geo import point_distance
from walking_tour.utils.text import name_similarity

logger = logging.getLogger(__name__)


def _match_reason(
    similarity: float, distance: float, config: DeduplicationConfig
) -> Optional[MergeReason]:
    names_similar = similarity >= config.name_similarity_threshold
    close = distance <= config.proximity_threshold_meters

    if config.require_both_conditions:
        is_duplicate = names_similar and close
    else:
        is_duplicate = names_similar or close
    if not is_duplicate:
        return None

    if names_similar and close:
        return MergeReason.NAME_AND_PROXIMITY
    return MergeReason.NAME if names_similar else MergeReason.PROXIMITY


def deduplicate_points(
    points: Sequence[Point], config: DeduplicationConfig | None = None
) -> DeduplicationResult:
    """Collapse near-duplicate points, keeping the first of each group."""
    config = config or DeduplicationConfig()
    kept: list[Point] = []
    duplicates: list[DuplicateRecord] = []

    for point in points:
        for existing in kept:
            similarity = name_similarity(point.name, existing.name)
            distance = point_distance(point, existing)
            reason = _match_reason(similarity, distance, config)
            if reason is not None:
                duplicates.append(DuplicateRecord(
                    removed_id=point.id,
                    removed_name=point.name,
                    kept_id=existing.id,
                    kept_name=existing.name,
                    similarity=similarity,
                    distance_meters=distance,
                    reason=reason,
                ))
                break
        else:
            kept.append(point)

    _log_result(len(points), kept, duplicates)
    return DeduplicationResult(points=kept, duplicates=duplicates)


def _log_result(
    input_count: int, kept: list[Point], duplicates: list[DuplicateRecord]
) -> None:
    if duplicates:
        logger.info(f"[DEDUP] Removed {len(duplicates)} duplicates")
        for dup in duplicates:
            logger.info(
                f"[DEDUP]   '{dup.removed_name}' -> kept '{dup.kept_name}' "
                f"({dup.reason.value}: similarity={dup.similarity:.2f}, "
                f"distance={round(dup.distance_meters)}m)"
            )
    else:
        logger.info("[DEDUP] No duplicates found")
    logger.info(f"[DEDUP] Result: {input_count} -> {len(kept)} unique places")


class DeduplicationService:
    """Deduplicator bound to a default configuration."""

    def __init__(self, config: DeduplicationConfig | None = None) -> None:
        self._config = config or DeduplicationConfig()

    @property
    def config(self) -> DeduplicationConfig:
        return self._config

    def deduplicate(
        self, points: Sequence[Point], config: DeduplicationConfig | None = None
    ) -> DeduplicationResult:
        return deduplicate_points(points, config or self._config)
