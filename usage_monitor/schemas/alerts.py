"""
Pydantic Schemas for Operational Alerts

An Alert is created by the alert engine when a threshold rule fires and is
mutated at most once afterwards, when a human acknowledges it. There is no
automatic resolution: an alert stays open until acknowledged.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from usage_monitor.schemas.metrics import ensure_utc, utc_now


class AlertType(str, Enum):
    """Rule identifiers that can raise an alert."""

    HIGH_ERROR_RATE = "high_error_rate"
    SLOW_RESPONSE = "slow_response"
    LOW_CONFIDENCE = "low_confidence"
    RATE_LIMIT_WARNING = "rate_limit_warning"
    PROCESSING_FAILURE = "processing_failure"  # Raised explicitly, no automatic rule


class AlertSeverity(str, Enum):
    """Alert severity, in increasing order of urgency."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Alert(BaseModel):
    """
    A persisted operational alert.

    Lifecycle: fired -> acknowledged (terminal). Only the three
    acknowledgement fields ever change after creation.

    Example:
        {
            "id": "3f2c...",
            "type": "high_error_rate",
            "severity": "warning",
            "message": "Error rate is 27.3% (threshold: 10%)",
            "timestamp": "2026-10-18T09:00:00Z",
            "acknowledged": false,
            "metadata": {"error_rate": 27.27, "total_requests": 11},
            "dedup_key": "high_error_rate"
        }
    """

    id: str | None = Field(default=None, description="Identifier assigned by the store")

    type: AlertType = Field(..., description="Rule that fired")

    severity: AlertSeverity = Field(..., description="Alert severity")

    message: str = Field(..., min_length=1, description="Human-readable description")

    timestamp: datetime = Field(default_factory=utc_now, description="Creation time (UTC)")

    acknowledged: bool = Field(default=False)

    acknowledged_by: str | None = Field(default=None)

    acknowledged_at: datetime | None = Field(default=None)

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Numeric evidence that triggered the rule",
    )

    dedup_key: str | None = Field(
        default=None,
        description="Key used to suppress duplicates of an open alert",
    )

    @field_validator("timestamp", "acknowledged_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None
