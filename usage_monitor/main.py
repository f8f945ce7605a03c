"""
AI Usage Monitor: FastAPI Application Entry Point

This module initializes the FastAPI application and defines the endpoints:
- /health, /config, /services: operational information
- /metrics/*: call ingestion and windowed metric views
- /dashboard: every dashboard view for one time range in a single call
- /decisions: suggestion decision ingestion
- /alerts/*: alert listing, threshold checks and acknowledgement
- /reports/{period}: periodic performance reports

The application uses a lifespan context manager to:
1. Load configuration and configure logging
2. Build the UsageMonitor around the configured document store
3. Start the periodic threshold check (when enabled)
"""

from contextlib import asynccontextmanager, suppress
import asyncio
import logging
import time

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from usage_monitor import __version__
from usage_monitor.alerts.store import AlertNotFoundError
from usage_monitor.config import Settings, configure_logging, get_settings
from usage_monitor.monitor import UsageMonitor, create_monitor
from usage_monitor.registry import get_service_registry
from usage_monitor.schemas import (
    AcceptedResponse,
    AccuracyMetrics,
    AcknowledgeRequest,
    Alert,
    CallRecordRequest,
    ComponentHealth,
    CostBreakdown,
    DashboardSnapshot,
    DecisionRequest,
    ErrorCodes,
    ErrorResponse,
    HealthResponse,
    MetricsSummary,
    PerformanceReport,
    ReportPeriod,
    TimelineDataPoint,
    TimeRange,
)
from usage_monitor.storage import StoreError

logger = logging.getLogger(__name__)

_start_time: float = 0.0


async def run_periodic_checks(monitor: UsageMonitor, interval_seconds: int) -> None:
    """Evaluate alert thresholds every interval_seconds until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        alerts = await asyncio.to_thread(monitor.check_thresholds)
        logger.debug(f"Periodic threshold check: {len(alerts)} open alert(s)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup/shutdown events.

    On startup:
    - Loads configuration from environment
    - Configures logging
    - Builds the monitor and stores it on app.state
    - Starts the periodic threshold check if configured

    On shutdown:
    - Cancels the periodic check
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info("=" * 60)
    logger.info("AI Usage Monitor starting up...")
    logger.info("=" * 60)
    logger.info(f"Store backend: {settings.store_backend}")
    logger.info(f"Scan cap: {settings.max_scan_rows} records")
    logger.info(f"Alert cooldown: {settings.alert_cooldown_hours}h")
    logger.info(f"Debug mode: {'enabled' if settings.debug else 'disabled'}")

    app.state.monitor = create_monitor(settings)

    for metadata in get_service_registry().list_services():
        logger.info(f"  - {metadata.display_name}: free tier {metadata.free_limit:,} requests/month")

    check_task = None
    if settings.alert_check_interval_seconds > 0:
        logger.info(f"Threshold check every {settings.alert_check_interval_seconds}s")
        check_task = asyncio.create_task(
            run_periodic_checks(app.state.monitor, settings.alert_check_interval_seconds)
        )

    global _start_time
    _start_time = time.time()

    logger.info("=" * 60)
    logger.info("AI Usage Monitor ready to accept requests")

    yield  # Application runs here

    if check_task is not None:
        check_task.cancel()
        with suppress(asyncio.CancelledError):
            await check_task

    logger.info("AI Usage Monitor shutting down...")


app = FastAPI(
    title="AI Usage Monitor",
    description="Usage metrics, cost projection and alerting for AI service calls",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_monitor(request: Request) -> UsageMonitor:
    """Dependency returning the monitor built at startup."""
    return request.app.state.monitor


@app.get("/")
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "name": "AI Usage Monitor",
        "description": "Usage metrics and alerting for AI service calls",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "dashboard": "/dashboard",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check system health and component status.",
)
def health_check(monitor: UsageMonitor = Depends(get_monitor)):
    """
    Health check endpoint for monitoring and orchestration.

    Checks:
    - Document store reachability (with round-trip latency)
    - Registry availability
    - System uptime
    """
    components = []
    overall_status = "healthy"

    try:
        started = time.perf_counter()
        monitor.store.ping()
        components.append(
            ComponentHealth(
                name="store",
                status="healthy",
                latency_ms=(time.perf_counter() - started) * 1000,
                message=type(monitor.store).__name__,
            )
        )
    except Exception as e:
        components.append(ComponentHealth(name="store", status="unhealthy", message=str(e)))
        overall_status = "unhealthy"

    try:
        service_count = len(monitor.registry.list_services())
        components.append(
            ComponentHealth(
                name="registry",
                status="healthy",
                message=f"{service_count} services registered",
            )
        )
    except Exception as e:
        components.append(ComponentHealth(name="registry", status="unhealthy", message=str(e)))
        if overall_status == "healthy":
            overall_status = "degraded"

    uptime = time.time() - _start_time if _start_time > 0 else 0.0

    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
        uptime_seconds=uptime,
    )


@app.get("/config")
async def show_config(settings: Settings = Depends(get_settings)):
    """
    Returns non-sensitive configuration values.

    Safe to call for debugging configuration issues.
    """
    return {
        "store": {
            "backend": settings.store_backend,
            "sqlite_path": settings.sqlite_path if settings.store_backend == "sqlite" else None,
            "max_scan_rows": settings.max_scan_rows,
        },
        "alerts": {
            "cooldown_hours": settings.alert_cooldown_hours,
            "check_interval_seconds": settings.alert_check_interval_seconds,
        },
        "server": {
            "host": settings.host,
            "port": settings.port,
            "debug": settings.debug,
        },
        "logging": {
            "level": settings.log_level,
        },
    }


@app.get("/services")
async def list_services():
    """
    List all tracked AI services with their free-tier limits and pricing.
    """
    registry = get_service_registry()

    return {
        "services": [
            {
                "service": metadata.service.value,
                "display_name": metadata.display_name,
                "description": metadata.description,
                "requests_per_minute": metadata.requests_per_minute,
                "requests_per_day": metadata.requests_per_day,
                "free_limit": metadata.free_limit,
                "cost_per_1k_tokens": metadata.cost_per_1k_tokens,
            }
            for metadata in registry.list_services()
        ],
        "total_services": len(registry.list_services()),
    }


# =============================================================================
# METRICS
# =============================================================================


@app.post(
    "/metrics/calls",
    response_model=AcceptedResponse,
    status_code=202,
    responses={422: {"model": ErrorResponse}},
    summary="Record an AI call",
    description="Record the outcome of one AI call. Recording happens after the response.",
)
def record_call(
    request: CallRecordRequest,
    background_tasks: BackgroundTasks,
    monitor: UsageMonitor = Depends(get_monitor),
):
    """
    Fire-and-forget ingestion.

    The record is written in a background task so a slow store never
    delays the caller; write failures are logged, never reported back.
    """
    background_tasks.add_task(
        monitor.record_api_call,
        request.service,
        request.operation,
        request.success,
        request.response_time_ms,
        confidence=request.confidence,
        tokens_used=request.tokens_used,
        error=request.error,
        suggestion_id=request.suggestion_id,
        user_id=request.user_id,
    )
    return AcceptedResponse()


@app.get("/metrics/summary", response_model=MetricsSummary, summary="Metrics summary")
def metrics_summary(
    time_range: TimeRange = Query(TimeRange.LAST_24H, alias="range"),
    monitor: UsageMonitor = Depends(get_monitor),
):
    """Overall and per-service aggregates for the window."""
    return monitor.get_metrics_summary(time_range)


@app.get(
    "/metrics/timeline",
    response_model=list[TimelineDataPoint],
    summary="Request timeline",
)
def metrics_timeline(
    time_range: TimeRange = Query(TimeRange.LAST_24H, alias="range"),
    monitor: UsageMonitor = Depends(get_monitor),
):
    """Hourly buckets for 24h, daily buckets otherwise. Empty buckets are omitted."""
    return monitor.get_request_timeline(time_range)


@app.get("/metrics/cost", response_model=CostBreakdown, summary="Cost breakdown")
def metrics_cost(monitor: UsageMonitor = Depends(get_monitor)):
    """Free-tier usage and monthly projection over the last 30 days."""
    return monitor.get_cost_breakdown()


@app.get("/metrics/accuracy", response_model=AccuracyMetrics, summary="Accuracy metrics")
def metrics_accuracy(monitor: UsageMonitor = Depends(get_monitor)):
    return monitor.get_accuracy_metrics()


@app.get("/dashboard", response_model=DashboardSnapshot, summary="Dashboard snapshot")
def dashboard(
    time_range: TimeRange = Query(TimeRange.LAST_24H, alias="range"),
    monitor: UsageMonitor = Depends(get_monitor),
):
    """
    Summary, timeline, cost, accuracy and open alerts in one response.
    """
    return monitor.get_dashboard(time_range)


@app.post(
    "/decisions",
    response_model=AcceptedResponse,
    status_code=202,
    responses={422: {"model": ErrorResponse}},
    summary="Record a suggestion decision",
)
def record_decision(
    request: DecisionRequest,
    background_tasks: BackgroundTasks,
    monitor: UsageMonitor = Depends(get_monitor),
):
    background_tasks.add_task(
        monitor.record_decision, request.suggestion_id, request.status, request.user_id
    )
    return AcceptedResponse()


# =============================================================================
# ALERTS
# =============================================================================


@app.get("/alerts", response_model=list[Alert], summary="Recent alerts")
def recent_alerts(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of alerts"),
    monitor: UsageMonitor = Depends(get_monitor),
):
    """Most recent alerts, newest first."""
    return monitor.get_recent_alerts(limit)


@app.get("/alerts/unacknowledged", response_model=list[Alert], summary="Open alerts")
def unacknowledged_alerts(monitor: UsageMonitor = Depends(get_monitor)):
    return monitor.get_unacknowledged_alerts()


@app.post("/alerts/check", response_model=list[Alert], summary="Evaluate alert thresholds")
def check_alerts(monitor: UsageMonitor = Depends(get_monitor)):
    """
    Run every threshold rule now and return the open alerts.
    """
    return monitor.check_thresholds()


@app.post(
    "/alerts/{alert_id}/acknowledge",
    response_model=Alert,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Acknowledge an alert",
)
def acknowledge_alert(
    alert_id: str,
    request: AcknowledgeRequest,
    monitor: UsageMonitor = Depends(get_monitor),
):
    """
    Acknowledge an alert.

    The first acknowledgement wins; repeating it returns the alert with
    the original acknowledger and timestamp.
    """
    try:
        return monitor.acknowledge_alert(alert_id, request.user_id)
    except AlertNotFoundError as e:
        raise HTTPException(
            status_code=404,
            detail={"code": ErrorCodes.ALERT_NOT_FOUND, "message": str(e)},
        )
    except StoreError as e:
        logger.error(f"Acknowledging alert {alert_id} failed: {e}")
        raise HTTPException(
            status_code=503,
            detail={"code": ErrorCodes.STORE_ERROR, "message": "Alert store unavailable"},
        )


# =============================================================================
# REPORTS
# =============================================================================


@app.get("/reports/{period}", response_model=PerformanceReport, summary="Performance report")
def performance_report(period: ReportPeriod, monitor: UsageMonitor = Depends(get_monitor)):
    """
    Daily, weekly or monthly report with recommendations.
    """
    return monitor.generate_report(period)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Returns a consistent error response format with the first validation
    error's details for client-side error handling.
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}

    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": ErrorCodes.VALIDATION_ERROR,
                "message": first_error.get("msg", "Validation failed"),
                "field": ".".join(str(loc) for loc in first_error.get("loc", [])),
            }
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(
    request: Request, exc: HTTPException
) -> JSONResponse:
    """
    Handle HTTP exceptions with consistent format.
    """
    detail = exc.detail
    if isinstance(detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": detail})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "HTTP_ERROR", "message": str(detail)}},
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Logs the full exception and returns a generic error response to avoid
    leaking implementation details.
    """
    logger.exception("Unhandled exception")
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCodes.INTERNAL_ERROR,
                "message": "An unexpected error occurred",
            }
        },
    )


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "usage_monitor.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
