"""HTTP server exposing the stats engine tools via FastAPI.

Endpoints implement a thin HTTP transport that maps requests to the same
tool handlers used by the CLI. Authentication and CORS are configurable via
environment variables (see :class:`~stats_engine.config.models.EnvSettings`).
"""

from __future__ import annotations

import importlib
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from .. import __data_model_version__, __version__
from ..config.models import EnvSettings
from ..domain.metrics import METRIC_CATALOG
from ..domain.models import RankedListMetrics
from ..domain.utils.calendar import Granularity
from ..observability import setup_logging
from .handlers import (
    TOOLS,
    handle_align_previous,
    handle_merge_top_list,
    handle_process_period,
    handle_top_list_metrics,
)
from .models import (
    AlignPreviousRequest,
    AlignPreviousResponse,
    CapabilitiesResponse,
    MergeTopListRequest,
    MergeTopListResponse,
    MetricInfo,
    ProcessPeriodRequest,
    ProcessPeriodResponse,
    TopListMetricsRequest,
)

logger = logging.getLogger(__name__)

__all__ = ["create_app"]


class HealthResponse(BaseModel):
    """Simple health/readiness response model."""

    status: str


class ErrorResponse(BaseModel):
    """Structured JSON error response for HTTP endpoints.

    Fields
    ------
    detail: str
        Human-readable explanation of the error.
    error_type: str
        Machine-readable error classification.
    """

    detail: str = Field(..., description="Human-readable error detail")
    error_type: str = Field(..., description="Machine-readable error type")


def _load_fastapi() -> Dict[str, Any]:
    """Dynamically import FastAPI pieces to keep deps optional."""
    fastapi_mod = importlib.import_module("fastapi")
    cors_mod = importlib.import_module("fastapi.middleware.cors")
    exc_mod = importlib.import_module("fastapi.exceptions")
    resp_mod = importlib.import_module("fastapi.responses")
    st_exc_mod = importlib.import_module("starlette.exceptions")
    return {
        "fastapi_cls": getattr(fastapi_mod, "FastAPI"),
        "depends": getattr(fastapi_mod, "Depends"),
        "header": getattr(fastapi_mod, "Header"),
        "http_exc": getattr(fastapi_mod, "HTTPException"),
        "status": getattr(fastapi_mod, "status"),
        "request_cls": getattr(fastapi_mod, "Request"),
        "cors_mw": getattr(cors_mod, "CORSMiddleware"),
        "validation_exc": getattr(exc_mod, "RequestValidationError"),
        "json_response": getattr(resp_mod, "JSONResponse"),
        "starlette_http_exc": getattr(st_exc_mod, "HTTPException"),
    }


def _build_app(fastapi_cls: Any, lifespan: Any | None = None):
    """Create base FastAPI app (optionally with lifespan)."""
    if lifespan is not None:
        return fastapi_cls(title="Stats Engine", version=__version__, lifespan=lifespan)
    return fastapi_cls(title="Stats Engine", version=__version__)


def _apply_cors(app: Any, cors_middleware_cls: Any, settings: EnvSettings) -> None:
    """Enable CORS if STATS_ENGINE_CORS_ORIGINS is set."""
    allow_origins = settings.cors_origin_list()
    if allow_origins:
        app.add_middleware(
            cors_middleware_cls,
            allow_origins=allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )


def _make_auth_dependency(
    header: Any, http_exc: Any, status_mod: Any, settings: EnvSettings
):
    """Return a dependency function that enforces optional bearer token."""

    def _auth_dependency(authorization: str | None = header(default=None)) -> None:
        expected = settings.http_token or None
        if expected is None:
            return
        if not authorization or not authorization.startswith("Bearer "):
            raise http_exc(status_code=status_mod.HTTP_401_UNAUTHORIZED)
        token = authorization.split(" ", 1)[1]
        if token != expected:
            raise http_exc(status_code=status_mod.HTTP_403_FORBIDDEN)

    return _auth_dependency


def _register_health(app: Any) -> None:
    """Register health and readiness endpoints."""

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Liveness probe",
    )
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get(
        "/ready",
        response_model=HealthResponse,
        summary="Readiness probe",
    )
    async def ready() -> HealthResponse:
        return HealthResponse(status="ready")


def _register_capabilities(app: Any, settings: EnvSettings) -> None:
    """Register server capabilities endpoint."""

    @app.get(
        "/capabilities",
        response_model=CapabilitiesResponse,
        summary="Server capabilities summary",
    )
    async def capabilities() -> CapabilitiesResponse:  # noqa: D401
        return CapabilitiesResponse(
            version=__version__,
            data_model_version=__data_model_version__,
            http_auth=("enabled" if settings.http_token else "disabled"),
            cors_origins=settings.cors_origin_list(),
            tools=sorted(TOOLS),
            granularities=[g.value for g in Granularity],
            metrics=[
                MetricInfo(
                    key=spec.key,
                    aggregation_strategy=spec.aggregation_strategy.value,
                    higher_is_better=spec.higher_is_better,
                )
                for spec in METRIC_CATALOG.values()
            ],
        )


def _register_tools(
    app: Any, depends: Any, auth_dep: Any, settings: EnvSettings
) -> None:
    """Register the engine tool endpoints."""
    guarded: List[Any] = [depends(auth_dep)]

    @app.post(
        "/tools/process_period",
        response_model=ProcessPeriodResponse,
        dependencies=guarded,
        summary="Dense bucketed series and total for one metric",
    )
    async def process_period(req: ProcessPeriodRequest) -> ProcessPeriodResponse:
        return handle_process_period(req, settings)

    @app.post(
        "/tools/align_previous",
        response_model=AlignPreviousResponse,
        dependencies=guarded,
        summary="Map previous-period values onto current dates",
    )
    async def align_previous(req: AlignPreviousRequest) -> AlignPreviousResponse:
        return handle_align_previous(req, settings)

    @app.post(
        "/tools/merge_top_list",
        response_model=MergeTopListResponse,
        dependencies=guarded,
        summary="Merge daily top-list snapshots into one ranked list",
    )
    async def merge_top_list(req: MergeTopListRequest) -> MergeTopListResponse:
        return handle_merge_top_list(req, settings)

    @app.post(
        "/tools/top_list_metrics",
        response_model=RankedListMetrics,
        dependencies=guarded,
        summary="Max, total and previous total of a ranked list",
    )
    async def top_list_metrics(req: TopListMetricsRequest) -> RankedListMetrics:
        return handle_top_list_metrics(req, settings)

    _ = (process_period, align_previous, merge_top_list, top_list_metrics)


def create_app(settings: EnvSettings | None = None):
    """Create and configure the FastAPI application.

    Parameters
    ----------
    settings: EnvSettings or None
        Explicit settings; read from the environment when omitted.
    """
    settings = settings or EnvSettings()
    # Respect prior logging configuration from CLI; otherwise use env setting
    if not logging.getLogger().hasHandlers():
        setup_logging(settings.log_level)
    parts = _load_fastapi()

    @asynccontextmanager
    async def lifespan(_app: Any):
        logger.info(
            "http.startup",
            extra={"timezone": settings.timezone, "auth": bool(settings.http_token)},
        )
        try:
            yield
        finally:
            logger.info("http.shutdown")

    app = _build_app(parts["fastapi_cls"], lifespan=lifespan)
    jr = parts["json_response"]

    @app.middleware("http")
    async def log_requests(request: Any, call_next: Any):
        start_time = time.time()
        req_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        response = await call_next(request)
        logger.debug(
            "http.request.completed",
            extra={
                "req_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return response

    @app.exception_handler(parts["validation_exc"])
    async def validation_exception_handler(_request: Any, exc: Exception):  # noqa: D401
        err = ErrorResponse(detail=str(exc), error_type="validation_error")
        return jr(status_code=400, content={"detail": err.model_dump()})

    @app.exception_handler(parts["starlette_http_exc"])
    async def http_exception_handler(_request: Any, exc: Any):  # noqa: D401
        detail = getattr(exc, "detail", "")
        err = ErrorResponse(detail=str(detail) or "HTTP error", error_type="http_error")
        return jr(status_code=exc.status_code, content={"detail": err.model_dump()})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Any, exc: Exception):  # noqa: D401
        # Avoid leaking internals; log server-side, return generic error
        logger.error("http.unhandled_exception", exc_info=exc)
        err = ErrorResponse(
            detail="Internal error. See server logs.",
            error_type="internal_server_error",
        )
        return jr(status_code=500, content={"detail": err.model_dump()})

    _ = (
        log_requests,
        validation_exception_handler,
        http_exception_handler,
        unhandled_exception_handler,
    )

    _apply_cors(app, parts["cors_mw"], settings)
    auth_dep = _make_auth_dependency(
        parts["header"], parts["http_exc"], parts["status"], settings
    )
    _register_health(app)
    _register_capabilities(app, settings)
    _register_tools(app, parts["depends"], auth_dep, settings)
    return app
