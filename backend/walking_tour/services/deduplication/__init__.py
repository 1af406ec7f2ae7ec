"""Deduplication of near-identical points of interest."""

from .service import DeduplicationService, deduplicate_points

__all__ = [
    "DeduplicationService",
    "deduplicate_points",
]
