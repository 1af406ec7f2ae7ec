"""Walking Tour Planner FastAPI Application.

Main entry point for the backend API server.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from walking_tour import __version__
from walking_tour.api import router
from walking_tour.config import Settings
from walking_tour.models import AppError, ErrorCode, NoPlacesFoundError, RouteInputError
from walking_tour.services import (
    DeduplicationService,
    GeoapifyClient,
    GeoapifyError,
    RouteOptimizer,
    TourService,
)

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error.model_dump(mode="json")},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the services on startup, close the HTTP client on shutdown."""
    settings: Settings = app.state.settings
    app.state.optimizer = RouteOptimizer(
        multi_start_limit=settings.multi_start_limit,
        time_budget_seconds=settings.optimizer_time_budget_seconds,
    )
    app.state.deduplicator = DeduplicationService(settings.deduplication)
    app.state.tour_service = None

    http_client: Optional[httpx.AsyncClient] = None
    if settings.geoapify_api_key:
        http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        app.state.tour_service = TourService(
            geoapify=GeoapifyClient(settings.geoapify_api_key, client=http_client),
            deduplicator=app.state.deduplicator,
            optimizer=app.state.optimizer,
            search_radius_meters=settings.search_radius_meters,
            walking_speed_kmh=settings.walking_speed_kmh,
            viewing_minutes_per_stop=settings.viewing_minutes_per_stop,
        )
    else:
        logger.warning("GEOAPIFY_API_KEY is not set; /api/tours/create is disabled")

    yield

    if http_client is not None:
        await http_client.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    app = FastAPI(
        title="Walking Tour Planner API",
        description="Deduplicated, route-optimized walking tours",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(422, AppError(
            code=ErrorCode.VALIDATION_ERROR,
            message=str(exc),
            user_message="Invalid request format. Please check your input.",
        ))

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        return _error_response(422, AppError(
            code=ErrorCode.VALIDATION_ERROR,
            message=str(exc),
            user_message="Invalid request format. Please check your input.",
        ))

    @app.exception_handler(NoPlacesFoundError)
    async def no_places_handler(request: Request, exc: NoPlacesFoundError):
        return _error_response(404, AppError(
            code=ErrorCode.NO_PLACES_FOUND,
            message=str(exc),
            user_message="We couldn't find any places for that search. Try a different location.",
        ))

    @app.exception_handler(RouteInputError)
    async def route_input_handler(request: Request, exc: RouteInputError):
        return _error_response(400, AppError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            user_message="Some of the places could not be used to build a route.",
        ))

    @app.exception_handler(GeoapifyError)
    async def geoapify_handler(request: Request, exc: GeoapifyError):
        logger.error(f"[API] Geoapify error: {exc}")
        return _error_response(502, AppError(
            code=ErrorCode.API_ERROR,
            message=str(exc),
            user_message="The map service is unavailable. Please try again.",
        ))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code = ErrorCode.INVALID_INPUT if exc.status_code < 500 else ErrorCode.API_ERROR
        return _error_response(exc.status_code, AppError(
            code=code,
            message=str(exc.detail),
            user_message=str(exc.detail),
        ))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("[API] Unhandled error")
        return _error_response(500, AppError(
            code=ErrorCode.API_ERROR,
            message=str(exc),
            user_message="Something went wrong. Please try again.",
        ))

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
