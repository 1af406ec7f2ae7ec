"""Error types shared by the services and the API layer."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable error codes returned by the API."""

    INVALID_INPUT = "INVALID_INPUT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    API_ERROR = "API_ERROR"
    NO_PLACES_FOUND = "NO_PLACES_FOUND"


class AppError(BaseModel):
    """Error payload for failed API responses."""

    code: ErrorCode
    message: str = Field(..., description="Technical message for logs/debugging")
    user_message: str = Field(..., description="Message safe to show to users")
    details: Optional[dict] = None


class RouteInputError(ValueError):
    """Malformed input to route planning (bad points, duplicate ids, unknown start)."""


class NoPlacesFoundError(RouteInputError):
    """A search produced no candidate points to build a tour from."""
