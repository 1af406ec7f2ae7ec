"""Application settings loaded from the environment (and a local .env file)."""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from walking_tour.models import DeduplicationConfig

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _get_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class Settings:
    geoapify_api_key: Optional[str] = None
    log_level: str = "INFO"
    http_timeout_seconds: float = 15.0
    default_max_stops: int = 7
    search_radius_meters: int = 5000
    walking_speed_kmh: float = 4.0
    viewing_minutes_per_stop: int = 20
    multi_start_limit: int = 15
    optimizer_time_budget_seconds: Optional[float] = None
    deduplication: DeduplicationConfig = field(default_factory=DeduplicationConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from environment variables.

        Raises:
            ValueError: if a numeric or boolean variable cannot be parsed or
                is out of range.
        """
        load_dotenv(find_dotenv(usecwd=True))
        defaults = DeduplicationConfig()
        settings = cls(
            geoapify_api_key=os.getenv("GEOAPIFY_API_KEY") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            http_timeout_seconds=_get_float("HTTP_TIMEOUT_SECONDS", 15.0),
            default_max_stops=_get_int("DEFAULT_MAX_STOPS", 7),
            search_radius_meters=_get_int("SEARCH_RADIUS_METERS", 5000),
            walking_speed_kmh=_get_float("WALKING_SPEED_KMH", 4.0),
            viewing_minutes_per_stop=_get_int("VIEWING_MINUTES_PER_STOP", 20),
            multi_start_limit=_get_int("MULTI_START_LIMIT", 15),
            optimizer_time_budget_seconds=_get_float("OPTIMIZER_TIME_BUDGET_SECONDS", None),
            deduplication=DeduplicationConfig(
                name_similarity_threshold=_get_float(
                    "DEDUP_NAME_SIMILARITY", defaults.name_similarity_threshold
                ),
                proximity_threshold_meters=_get_float(
                    "DEDUP_PROXIMITY_METERS", defaults.proximity_threshold_meters
                ),
                require_both_conditions=_get_bool(
                    "DEDUP_REQUIRE_BOTH", defaults.require_both_conditions
                ),
            ),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.http_timeout_seconds <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be positive")
        if self.default_max_stops < 1:
            raise ValueError("DEFAULT_MAX_STOPS must be at least 1")
        if self.search_radius_meters <= 0:
            raise ValueError("SEARCH_RADIUS_METERS must be positive")
        if self.walking_speed_kmh <= 0:
            raise ValueError("WALKING_SPEED_KMH must be positive")
        if self.viewing_minutes_per_stop < 0:
            raise ValueError("VIEWING_MINUTES_PER_STOP cannot be negative")
        if self.multi_start_limit < 1:
            raise ValueError("MULTI_START_LIMIT must be at least 1")
        if self.optimizer_time_budget_seconds is not None and self.optimizer_time_budget_seconds <= 0:
            raise ValueError("OPTIMIZER_TIME_BUDGET_SECONDS must be positive")
