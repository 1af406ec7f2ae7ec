"""Geoapify geocoding, places and routing client."""

from .service import (
    GeoapifyClient,
    GeoapifyError,
    categories_for,
    feature_to_point,
    summarize_elevation,
)

__all__ = [
    "GeoapifyClient",
    "GeoapifyError",
    "categories_for",
    "feature_to_point",
    "summarize_elevation",
]
