"""
Pydantic Schemas for AI Usage Metrics

This module defines the data contracts of the metrics subsystem:
- MetricRecord: one immutable observation of a single AI call
- DecisionRecord: a human decision about an AI suggestion
- ServiceMetrics / MetricsSummary: windowed aggregates
- TimelineDataPoint: one bucket of the request timeline
- ServiceCost / CostBreakdown: free-tier quota tracking
- AccuracyMetrics: confidence and human-decision rates

Records are persisted; everything else is derived on demand and never stored.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from usage_monitor.registry.services import AIService


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ENUMERATIONS
# =============================================================================


class AIOperation(str, Enum):
    """Semantic purpose of an AI call, independent of the service handling it."""

    NICHE_DISCOVERY = "niche_discovery"
    CONTENT_ANALYSIS = "content_analysis"
    SENTIMENT_ANALYSIS = "sentiment_analysis"
    CLASSIFICATION = "classification"
    SEARCH_QUERY_GENERATION = "search_query_generation"


class TimeRange(str, Enum):
    """Named relative windows resolved to absolute timestamps at query time."""

    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    ALL = "all"


class DecisionStatus(str, Enum):
    """
    Status of an AI suggestion as recorded by the reviewing workflow.

    APPROVED / REJECTED: human review outcome
    COMPLETED / FAILED: outcome of processing the suggestion
    PENDING: not yet reviewed or processed
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# RECORDS
# =============================================================================


class MetricRecord(BaseModel):
    """
    One observation of a single AI call.

    Records are append-only: once written they are never updated or deleted.
    The estimated cost is computed at write time from the service pricing.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(
        default=None,
        description="Identifier assigned by the store",
    )

    timestamp: datetime = Field(
        default_factory=utc_now,
        description="Instant the call completed (UTC)",
    )

    service: AIService = Field(
        ...,
        description="AI backend that handled the call",
    )

    operation: AIOperation = Field(
        ...,
        description="Purpose of the call",
    )

    success: bool = Field(
        ...,
        description="Whether the call succeeded",
    )

    response_time_ms: float = Field(
        ...,
        ge=0.0,
        description="Call duration in milliseconds",
    )

    error: str | None = Field(
        default=None,
        max_length=500,
        description="Failure reason, only present for failed calls",
    )

    tokens_used: int | None = Field(
        default=None,
        ge=0,
        description="Tokens consumed by the call",
    )

    estimated_cost: float = Field(
        default=0.0,
        ge=0.0,
        description="Estimated cost in USD",
    )

    confidence: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Quality score for operations that produce one (0.0-1.0)",
    )

    suggestion_id: str | None = Field(
        default=None,
        description="Correlated suggestion identifier",
    )

    user_id: str | None = Field(
        default=None,
        description="Correlated user identifier",
    )

    @model_validator(mode="before")
    @classmethod
    def drop_error_on_success(cls, data):
        """An error reason only belongs to failed calls."""
        if isinstance(data, dict) and data.get("success") and data.get("error"):
            data = {**data, "error": None}
        return data

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class DecisionRecord(BaseModel):
    """
    A reviewer's (or processor's) decision about an AI suggestion.

    Written by the suggestion workflow, read by the accuracy analyzer.
    The status enum is the shared contract between the two.
    """

    id: str | None = Field(default=None, description="Identifier assigned by the store")

    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the decision was recorded (UTC)",
    )

    suggestion_id: str = Field(
        ...,
        min_length=1,
        description="Suggestion the decision refers to",
    )

    status: DecisionStatus = Field(
        ...,
        description="Decision outcome",
    )

    user_id: str | None = Field(default=None, description="Who made the decision")

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)


# =============================================================================
# DERIVED VIEWS
# =============================================================================


class ServiceMetrics(BaseModel):
    """
    Aggregate counters for one service over one time window.

    avg_confidence is None when no record in the partition carried a
    confidence value.
    """

    service: AIService = Field(..., description="Service identifier")

    total_requests: int = Field(default=0, ge=0)

    successful_requests: int = Field(default=0, ge=0)

    failed_requests: int = Field(default=0, ge=0)

    success_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Successful requests as a percentage of total",
    )

    avg_response_time: float = Field(
        default=0.0,
        ge=0.0,
        description="Mean response time in milliseconds",
    )

    total_cost: float = Field(default=0.0, ge=0.0, description="Summed cost in USD")

    avg_confidence: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Mean confidence over records that carry one",
    )


class ConfidenceDistribution(BaseModel):
    """
    Three-bucket confidence histogram.

    high: confidence > 0.8
    medium: 0.6 <= confidence <= 0.8
    low: confidence < 0.6
    """

    high: int = Field(default=0, ge=0)
    medium: int = Field(default=0, ge=0)
    low: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        """Number of records that carried a confidence value."""
        return self.high + self.medium + self.low


class MetricsSummary(BaseModel):
    """
    Overall aggregate over a time window with a per-service breakdown.

    An empty window yields every count and rate at zero. The truncated flag
    is set when the window held more records than the scan cap allows; the
    aggregate then covers only the newest records.

    Example:
        {
            "time_range": "24h",
            "total_requests": 120,
            "success_rate": 97.5,
            "avg_response_time": 412.3,
            "avg_confidence": 0.81,
            "confidence_distribution": {"high": 70, "medium": 25, "low": 5},
            "services": {"groq": {...}, "huggingface": {...}},
            "truncated": false
        }
    """

    time_range: TimeRange = Field(..., description="Requested window")

    start_date: datetime = Field(..., description="Window start (inclusive)")

    end_date: datetime = Field(..., description="Window end (exclusive)")

    total_requests: int = Field(default=0, ge=0)

    successful_requests: int = Field(default=0, ge=0)

    failed_requests: int = Field(default=0, ge=0)

    success_rate: float = Field(default=0.0, ge=0.0, le=100.0)

    avg_response_time: float = Field(default=0.0, ge=0.0)

    total_cost: float = Field(default=0.0, ge=0.0)

    avg_confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Mean confidence over records that carry one (0 when none do)",
    )

    confidence_distribution: ConfidenceDistribution = Field(
        default_factory=ConfidenceDistribution,
    )

    services: dict[AIService, ServiceMetrics] = Field(
        default_factory=dict,
        description="One entry per known service, zeroed when it saw no traffic",
    )

    truncated: bool = Field(
        default=False,
        description="Whether the scan cap cut the window short",
    )

    @property
    def groq(self) -> ServiceMetrics:
        return self.services[AIService.GROQ]

    @property
    def huggingface(self) -> ServiceMetrics:
        return self.services[AIService.HUGGINGFACE]


class TimelineDataPoint(BaseModel):
    """One non-empty, fixed-width time bucket of the request timeline."""

    timestamp: datetime = Field(..., description="Bucket start (UTC)")

    requests: int = Field(..., ge=1, description="Records in the bucket")

    success_rate: float = Field(..., ge=0.0, le=100.0)

    avg_response_time: float = Field(..., ge=0.0)

    avg_confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class ServiceCost(BaseModel):
    """Quota usage and cost for one service over the reference window."""

    requests: int = Field(default=0, ge=0)

    cost: float = Field(default=0.0, ge=0.0)

    free_limit: int = Field(..., gt=0, description="Monthly free-tier request quota")

    usage_percentage: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Share of the free tier used, clamped to 100",
    )


class CostBreakdown(BaseModel):
    """
    Per-service quota usage plus overall cost and monthly projection.

    Always computed over a fixed 30-day reference window.
    """

    services: dict[AIService, ServiceCost] = Field(default_factory=dict)

    total: float = Field(default=0.0, ge=0.0, description="Total cost in the window")

    projected_monthly: float = Field(
        default=0.0,
        ge=0.0,
        description="Total cost extrapolated to 30 days",
    )

    reference_days: int = Field(default=30, gt=0, description="Reference window length")

    @property
    def groq(self) -> ServiceCost:
        return self.services[AIService.GROQ]

    @property
    def huggingface(self) -> ServiceCost:
        return self.services[AIService.HUGGINGFACE]


class AccuracyMetrics(BaseModel):
    """
    Confidence statistics joined with human-decision rates.

    Built from two independent reads (metric records, decision records);
    the result is a best-effort snapshot, not a consistent join.
    """

    avg_confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    confidence_distribution: ConfidenceDistribution = Field(
        default_factory=ConfidenceDistribution,
    )

    approval_rate: float = Field(default=0.0, ge=0.0, le=100.0)

    rejection_rate: float = Field(default=0.0, ge=0.0, le=100.0)

    processing_success_rate: float = Field(default=0.0, ge=0.0, le=100.0)

    total_decisions: int = Field(default=0, ge=0)
