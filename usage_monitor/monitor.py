"""
Usage Monitor Facade

UsageMonitor wires the record stores, aggregator, cost projector, accuracy
analyzer, alert engine and reporter around one injected document store and
exposes the programmatic surface used by AI call sites and the HTTP API.

Build one per process with create_monitor(settings) and pass it to the
code that needs it; nothing in this package holds it globally.

Example:
    monitor = create_monitor(get_settings())

    with monitor.track_call(AIService.GROQ, AIOperation.CLASSIFICATION) as call:
        result = classify(text)
        call.set_confidence(result.score)

    summary = monitor.get_metrics_summary(TimeRange.LAST_24H)
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable

from usage_monitor.alerts.engine import AlertEngine
from usage_monitor.alerts.store import DEFAULT_RECENT_LIMIT, AlertStore
from usage_monitor.config import Settings
from usage_monitor.metrics.accuracy import AccuracyAnalyzer
from usage_monitor.metrics.aggregator import MetricsAggregator
from usage_monitor.metrics.cost import CostProjector
from usage_monitor.metrics.reporter import PerformanceReporter
from usage_monitor.metrics.store import DecisionRecordStore, MetricRecordStore
from usage_monitor.registry.services import AIService, ServiceRegistry, get_service_registry
from usage_monitor.schemas.alerts import Alert, AlertSeverity, AlertType
from usage_monitor.schemas.metrics import (
    AccuracyMetrics,
    AIOperation,
    CostBreakdown,
    DecisionStatus,
    MetricsSummary,
    TimelineDataPoint,
    TimeRange,
    utc_now,
)
from usage_monitor.schemas.reports import DashboardSnapshot, PerformanceReport, ReportPeriod
from usage_monitor.storage import DocumentStore, create_document_store

logger = logging.getLogger(__name__)


class CallTracker:
    """
    Context manager timing one AI call and recording its outcome.

    An exception raised inside the block marks the call as failed and is
    re-raised unchanged. Recording itself never raises.
    """

    def __init__(
        self,
        monitor: "UsageMonitor",
        service: AIService | str,
        operation: AIOperation | str,
        suggestion_id: str | None = None,
        user_id: str | None = None,
    ):
        self._monitor = monitor
        self.service = service
        self.operation = operation
        self.suggestion_id = suggestion_id
        self.user_id = user_id
        self.confidence: float | None = None
        self.tokens_used: int | None = None
        self.error: str | None = None
        self.success = True
        self.record_id: str | None = None
        self._start_time = 0.0

    def set_confidence(self, confidence: float) -> None:
        self.confidence = confidence

    def set_tokens(self, tokens_used: int) -> None:
        self.tokens_used = tokens_used

    def set_error(self, error: str) -> None:
        """Mark the call as failed without raising."""
        self.success = False
        self.error = error

    def __enter__(self) -> "CallTracker":
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        response_time_ms = (time.perf_counter() - self._start_time) * 1000

        if exc_type is not None:
            self.success = False
            self.error = str(exc_val) or exc_type.__name__

        self.record_id = self._monitor.record_api_call(
            self.service,
            self.operation,
            self.success,
            response_time_ms,
            confidence=self.confidence,
            tokens_used=self.tokens_used,
            error=self.error,
            suggestion_id=self.suggestion_id,
            user_id=self.user_id,
        )
        return False  # Don't suppress exceptions


class UsageMonitor:
    """
    AI usage metrics and alerting, assembled around one document store.

    Recording (record_api_call, record_decision) never raises. Queries
    degrade to zeroed or empty results on store failure. Alert mutations
    (create_alert, acknowledge_alert) propagate their errors.
    """

    def __init__(
        self,
        store: DocumentStore,
        registry: ServiceRegistry | None = None,
        max_scan_rows: int = 50_000,
        alert_cooldown_hours: float = 24.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Wire all components around the given store.

        Args:
            store: Document store holding metrics, decisions and alerts
            registry: Service registry (pricing, free-tier limits)
            max_scan_rows: Scan cap applied to every aggregate query
            alert_cooldown_hours: Duplicate suppression window for alerts
            clock: Source of the current time (injectable for tests)
        """
        self.store = store
        self.registry = registry or get_service_registry()

        self.metric_records = MetricRecordStore(store, self.registry, clock=clock)
        self.decision_records = DecisionRecordStore(store, clock=clock)
        self.alert_store = AlertStore(store, clock=clock)

        self.aggregator = MetricsAggregator(
            self.metric_records, self.registry, max_scan_rows=max_scan_rows, clock=clock
        )
        self.cost_projector = CostProjector(self.aggregator, self.registry)
        self.accuracy_analyzer = AccuracyAnalyzer(self.aggregator, self.decision_records)
        self.alert_engine = AlertEngine(
            self.alert_store,
            self.aggregator,
            self.cost_projector,
            self.registry,
            cooldown_hours=alert_cooldown_hours,
            clock=clock,
        )
        self.reporter = PerformanceReporter(
            self.aggregator, self.cost_projector, self.alert_engine, self.registry
        )

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record_api_call(
        self,
        service: AIService | str,
        operation: AIOperation | str,
        success: bool,
        response_time_ms: float,
        *,
        confidence: float | None = None,
        tokens_used: int | None = None,
        error: str | None = None,
        suggestion_id: str | None = None,
        user_id: str | None = None,
    ) -> str | None:
        """Record one AI call. Never raises; returns the record id or None."""
        return self.metric_records.record_api_call(
            service,
            operation,
            success,
            response_time_ms,
            confidence=confidence,
            tokens_used=tokens_used,
            error=error,
            suggestion_id=suggestion_id,
            user_id=user_id,
        )

    def track_call(
        self,
        service: AIService | str,
        operation: AIOperation | str,
        suggestion_id: str | None = None,
        user_id: str | None = None,
    ) -> CallTracker:
        """Time a block of code and record it as one AI call."""
        return CallTracker(self, service, operation, suggestion_id, user_id)

    def record_decision(
        self,
        suggestion_id: str,
        status: DecisionStatus | str,
        user_id: str | None = None,
    ) -> str | None:
        """Record a suggestion decision. Never raises."""
        return self.decision_records.record_decision(suggestion_id, status, user_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_metrics_summary(self, time_range: TimeRange | str = TimeRange.LAST_24H) -> MetricsSummary:
        return self.aggregator.summarize(time_range)

    def get_request_timeline(
        self, time_range: TimeRange | str = TimeRange.LAST_24H
    ) -> list[TimelineDataPoint]:
        return self.aggregator.timeline(time_range)

    def get_cost_breakdown(self) -> CostBreakdown:
        return self.cost_projector.breakdown()

    def get_accuracy_metrics(self) -> AccuracyMetrics:
        return self.accuracy_analyzer.accuracy()

    def get_dashboard(self, time_range: TimeRange | str = TimeRange.LAST_24H) -> DashboardSnapshot:
        """Everything a dashboard refresh loads, for one time range."""
        return DashboardSnapshot(
            summary=self.get_metrics_summary(time_range),
            timeline=self.get_request_timeline(time_range),
            cost=self.get_cost_breakdown(),
            accuracy=self.get_accuracy_metrics(),
            alerts=self.get_unacknowledged_alerts(),
        )

    def generate_report(self, period: ReportPeriod | str = ReportPeriod.DAILY) -> PerformanceReport:
        return self.reporter.generate_report(period)

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------

    def get_recent_alerts(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[Alert]:
        return self.alert_engine.get_recent_alerts(limit)

    def get_unacknowledged_alerts(self) -> list[Alert]:
        return self.alert_engine.get_unacknowledged_alerts()

    def check_thresholds(self) -> list[Alert]:
        return self.alert_engine.check_thresholds()

    def create_alert(
        self,
        alert_type: AlertType | str,
        severity: AlertSeverity | str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> Alert:
        return self.alert_engine.create_alert(alert_type, severity, message, metadata)

    def acknowledge_alert(self, alert_id: str, user_id: str) -> Alert:
        return self.alert_engine.acknowledge_alert(alert_id, user_id)


def create_monitor(settings: Settings, store: DocumentStore | None = None) -> UsageMonitor:
    """
    Build the process-wide monitor from settings.

    Args:
        settings: Application settings
        store: Document store to use instead of the configured backend

    Returns:
        A fully wired UsageMonitor
    """
    if store is None:
        store = create_document_store(settings)
    logger.info(
        f"Usage monitor ready: store={type(store).__name__}, "
        f"max_scan_rows={settings.max_scan_rows}, "
        f"alert_cooldown_hours={settings.alert_cooldown_hours}"
    )
    return UsageMonitor(
        store,
        max_scan_rows=settings.max_scan_rows,
        alert_cooldown_hours=settings.alert_cooldown_hours,
    )
