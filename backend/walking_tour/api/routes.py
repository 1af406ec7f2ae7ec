"""API routes for the walking tour planner.

- POST /tours/create: full pipeline (geocode, search, dedupe, rank, order, measure)
- POST /tours/optimize: order caller-supplied stops and estimate the duration
- POST /tours/deduplicate: remove near-duplicate places from a list

Services live on ``app.state`` (built in the application lifespan) and reach
the handlers through dependencies, so tests can override them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, model_validator

from walking_tour.models import (
    Coordinates,
    DeduplicationConfig,
    DuplicateRecord,
    DurationEstimate,
    Point,
    Route,
    WalkingTour,
)
from walking_tour.services import DeduplicationService, RouteOptimizer, TourService
from walking_tour.utils.geo import BoundingBox

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tours", tags=["tours"])


# Request/Response models
class AreaBounds(BaseModel):
    """Area the tour must stay inside (e.g. an old-town moat)."""
    west: float = Field(..., ge=-180, le=180)
    south: float = Field(..., ge=-90, le=90)
    east: float = Field(..., ge=-180, le=180)
    north: float = Field(..., ge=-90, le=90)

    @model_validator(mode="after")
    def check_orientation(self) -> "AreaBounds":
        if self.south > self.north:
            raise ValueError("south must not exceed north")
        if self.west > self.east:
            raise ValueError("west must not exceed east")
        return self

    def to_bounding_box(self) -> BoundingBox:
        return BoundingBox(west=self.west, south=self.south, east=self.east, north=self.north)


class CreateTourRequest(BaseModel):
    """Request model for creating a walking tour."""
    query: str = Field(..., min_length=1)
    max_stops: Optional[int] = Field(None, ge=1, le=25)
    start: Optional[Coordinates] = None
    place_type: Optional[str] = None
    bbox: Optional[AreaBounds] = None


class CreateTourResponse(BaseModel):
    success: bool
    tour: WalkingTour


class OptimizeRouteRequest(BaseModel):
    """Stops to order, optionally pinned to a start stop or location."""
    points: list[Point]
    fixed_start_id: Optional[str] = None
    start: Optional[Coordinates] = None
    walking_speed_kmh: float = Field(4.0, gt=0)
    viewing_minutes_per_stop: int = Field(15, ge=0)


class OptimizeRouteResponse(BaseModel):
    success: bool
    route: Route
    duration: DurationEstimate


class DeduplicateRequest(BaseModel):
    points: list[Point]
    config: Optional[DeduplicationConfig] = None


class DeduplicateResponse(BaseModel):
    success: bool
    points: list[Point]
    duplicates: list[DuplicateRecord]


def get_optimizer(request: Request) -> RouteOptimizer:
    return request.app.state.optimizer


def get_deduplicator(request: Request) -> DeduplicationService:
    return request.app.state.deduplicator


def get_tour_service(request: Request) -> TourService:
    service = getattr(request.app.state, "tour_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="GEOAPIFY_API_KEY is not configured")
    return service


def get_default_max_stops(request: Request) -> int:
    settings = getattr(request.app.state, "settings", None)
    return settings.default_max_stops if settings else 7


@router.post("/create", response_model=CreateTourResponse)
async def create_tour(
    request: CreateTourRequest,
    service: TourService = Depends(get_tour_service),
    default_max_stops: int = Depends(get_default_max_stops),
) -> CreateTourResponse:
    """Create a walking tour from a free-text query."""
    logger.info(f"[API] Creating tour for query: {request.query}")
    tour = await service.create_tour(
        request.query,
        max_stops=request.max_stops or default_max_stops,
        start=request.start,
        place_type=request.place_type,
        bbox=request.bbox.to_bounding_box() if request.bbox else None,
    )
    return CreateTourResponse(success=True, tour=tour)


@router.post("/optimize", response_model=OptimizeRouteResponse)
async def optimize_route(
    request: OptimizeRouteRequest,
    optimizer: RouteOptimizer = Depends(get_optimizer),
) -> OptimizeRouteResponse:
    """Order the given stops into a short walking route."""
    if request.fixed_start_id is not None and request.start is not None:
        raise HTTPException(
            status_code=400,
            detail="Send either fixed_start_id or start, not both",
        )

    fixed_start = request.start
    if request.fixed_start_id is not None:
        fixed_start = next(
            (p for p in request.points if p.id == request.fixed_start_id),
            None,
        )
        if fixed_start is None:
            raise HTTPException(
                status_code=400,
                detail=f"fixed_start_id '{request.fixed_start_id}' is not one of the points",
            )

    route = optimizer.optimize_route(request.points, fixed_start)
    duration = optimizer.estimate_duration(
        route,
        walking_speed_kmh=request.walking_speed_kmh,
        viewing_minutes_per_stop=request.viewing_minutes_per_stop,
    )
    return OptimizeRouteResponse(success=True, route=route, duration=duration)


@router.post("/deduplicate", response_model=DeduplicateResponse)
async def deduplicate(
    request: DeduplicateRequest,
    deduplicator: DeduplicationService = Depends(get_deduplicator),
) -> DeduplicateResponse:
    """Remove near-duplicate places, keeping the first of each."""
    result = deduplicator.deduplicate(request.points, request.config)
    return DeduplicateResponse(
        success=True, points=result.points, duplicates=result.duplicates
    )
