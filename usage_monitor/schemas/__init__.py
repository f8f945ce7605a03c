"""
Schemas module: Pydantic data contracts.

This module provides validated data models for the AI usage monitor:
- Metric and decision records, and the aggregate views derived from them
- Alerts and their type/severity enumerations
- Dashboard snapshots and periodic performance reports
- HTTP request, error and health models

All schemas follow Pydantic v2 patterns with field descriptions and
range validation.
"""

from usage_monitor.schemas.metrics import (
    # Enums
    AIOperation,
    DecisionStatus,
    TimeRange,
    # Records
    DecisionRecord,
    MetricRecord,
    # Derived views
    AccuracyMetrics,
    ConfidenceDistribution,
    CostBreakdown,
    MetricsSummary,
    ServiceCost,
    ServiceMetrics,
    TimelineDataPoint,
    # Time helpers
    ensure_utc,
    utc_now,
)
from usage_monitor.schemas.alerts import Alert, AlertSeverity, AlertType
from usage_monitor.schemas.reports import (
    DashboardSnapshot,
    PerformanceReport,
    ReportPeriod,
)
from usage_monitor.schemas.api import (
    AcceptedResponse,
    AcknowledgeRequest,
    CallRecordRequest,
    ComponentHealth,
    DecisionRequest,
    ErrorCodes,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
)

# Re-export AIService from registry for convenience
from usage_monitor.registry.services import AIService

__all__ = [
    # Enums
    "AIService",
    "AIOperation",
    "DecisionStatus",
    "TimeRange",
    "AlertType",
    "AlertSeverity",
    "ReportPeriod",
    # Records
    "MetricRecord",
    "DecisionRecord",
    "Alert",
    # Derived views
    "ServiceMetrics",
    "ConfidenceDistribution",
    "MetricsSummary",
    "TimelineDataPoint",
    "ServiceCost",
    "CostBreakdown",
    "AccuracyMetrics",
    "DashboardSnapshot",
    "PerformanceReport",
    # HTTP models
    "CallRecordRequest",
    "DecisionRequest",
    "AcknowledgeRequest",
    "AcceptedResponse",
    "ErrorCodes",
    "ErrorDetail",
    "ErrorResponse",
    "ComponentHealth",
    "HealthResponse",
    # Time helpers
    "utc_now",
    "ensure_utc",
]
