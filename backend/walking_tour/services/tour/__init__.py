"""Tour assembly workflow."""

from .service import TourService

__all__ = ["TourService"]
