"""API Gateway - FastAPI application exposing the monitor query surface."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authwatch import __version__
from authwatch.api.schemas import (
    ActionResponse,
    ErrorResponse,
    EventsResponse,
    FailedLoginRequest,
    FailedLoginResponse,
    StatsResponse,
    TriggerActionRequest,
    UserActionsResponse,
    UserLocationsResponse,
)
from authwatch.common.exceptions import InputValidationError, NotFoundError
from authwatch.common.logging import get_logger
from authwatch.core.types import SecurityEventType
from authwatch.engine.monitor import MonitorEngine

logger = logging.getLogger("authwatch.api")


def get_cors_origins() -> List[str]:
    """Allowed CORS origins from AUTHWATCH_CORS_ORIGINS (comma-separated).
    
    Unset means no CORS middleware.
    """
    origins_env = os.environ.get("AUTHWATCH_CORS_ORIGINS", "")
    return [origin.strip() for origin in origins_env.split(",") if origin.strip()]


def get_engine(request: Request) -> MonitorEngine:
    """Engine bound to the application."""
    return request.app.state.engine


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details or {},
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

router = APIRouter(prefix="/monitor", tags=["monitor"])

_ERRORS = {400: {"model": ErrorResponse}}


@router.get("/events", response_model=EventsResponse)
async def list_events(
    limit: Optional[int] = Query(default=None, ge=0),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    event_type: Optional[SecurityEventType] = Query(default=None, alias="type"),
    engine: MonitorEngine = Depends(get_engine),
) -> EventsResponse:
    """Recent security events, oldest first."""
    return EventsResponse(
        events=engine.get_events(limit=limit, user_id=user_id, event_type=event_type)
    )


@router.get("/stats")
async def get_stats(engine: MonitorEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Aggregate event, action and tracking counters."""
    return engine.get_stats()


@router.get("/location-stats", response_model=StatsResponse)
async def get_location_stats(engine: MonitorEngine = Depends(get_engine)) -> StatsResponse:
    return StatsResponse(stats=engine.get_location_stats())


@router.get(
    "/user-locations/{user_id}",
    response_model=UserLocationsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_user_locations(
    user_id: str,
    engine: MonitorEngine = Depends(get_engine),
) -> UserLocationsResponse:
    """Retained location history for one user."""
    history = engine.get_user_location_history(user_id)
    if history is None:
        raise NotFoundError(
            f"No location history for user {user_id}", details={"user_id": user_id}
        )
    return UserLocationsResponse(
        locations=history.locations,
        frequent_locations=history.frequent_locations,
        last_updated=history.last_updated,
    )


@router.post("/trigger-action", response_model=ActionResponse, responses=_ERRORS)
async def trigger_action(
    body: TriggerActionRequest,
    engine: MonitorEngine = Depends(get_engine),
) -> ActionResponse:
    """Manually dispatch a remediation action."""
    logger.info(
        "Manual action requested",
        extra={"user_id": body.user_id, "action_type": body.action_type.value},
    )
    action = await engine.trigger_action(
        body.user_id, body.action_type.value, body.reason, body.ip
    )
    return ActionResponse(action=action)


@router.get("/user-actions", response_model=UserActionsResponse, responses=_ERRORS)
async def get_user_actions(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    engine: MonitorEngine = Depends(get_engine),
) -> UserActionsResponse:
    if not user_id:
        raise InputValidationError("userId query parameter is required")
    return UserActionsResponse(actions=engine.get_user_actions(user_id))


@router.post("/failed-login", response_model=FailedLoginResponse, responses=_ERRORS)
async def record_failed_login(
    body: FailedLoginRequest,
    engine: MonitorEngine = Depends(get_engine),
) -> FailedLoginResponse:
    """Record a failed login observed outside the lifecycle hooks."""
    attempts = await engine.on_failed_login(body.user_id, body.ip or "unknown")
    threshold = engine.config.failed_login_threshold
    if attempts >= threshold:
        message = "Failed login threshold reached; security actions dispatched"
    else:
        message = f"Failed login recorded ({attempts}/{threshold})"
    return FailedLoginResponse(attempts=attempts, threshold=threshold, message=message)


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(engine: Optional[MonitorEngine] = None) -> FastAPI:
    """Build the API application around a monitor engine.
    
    Args:
        engine: Engine to serve. Built from the global config if not provided.
    """
    
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("authwatch API starting up...")
        yield
        logger.info("authwatch API shutting down...")
        app.state.engine.shutdown()
    
    app = FastAPI(
        title="authwatch",
        description="Authentication threat detection: events, stats and remediation.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine or MonitorEngine()
    get_logger("authwatch", level=app.state.engine.config.log_level)
    
    cors_origins = get_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["POST", "GET"],
            allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        )
    
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed bodies and missing fields are client errors."""
        logger.warning(
            "Request validation failed",
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        return _error_response(
            request,
            400,
            "VALIDATION_ERROR",
            "Request contains invalid or missing fields",
            {"errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                for err in exc.errors()
            ]},
        )
    
    @app.exception_handler(InputValidationError)
    async def input_validation_handler(request: Request, exc: InputValidationError) -> JSONResponse:
        return _error_response(request, 400, exc.code, exc.message, exc.details)
    
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(request, 404, exc.code, exc.message, exc.details)
    
    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Logs the full exception; the client gets a sanitized message."""
        logger.exception(
            "Unexpected error",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "error_type": type(exc).__name__,
            },
        )
        return _error_response(request, 500, "INTERNAL_ERROR", "An unexpected error occurred")
    
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID to each request for tracing."""
        request_id = f"req_{uuid4().hex[:12]}"
        request.state.request_id = request_id
        
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
    
    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "healthy", "service": "authwatch"}
    
    app.include_router(router)
    return app


app = create_app()


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    
    uvicorn.run(
        "authwatch.api.gateway:app",
        host=os.environ.get("AUTHWATCH_HOST", "127.0.0.1"),
        port=int(os.environ.get("AUTHWATCH_PORT", "8000")),
        log_level="info",
    )
