"""
Pydantic Schemas for the HTTP API

Request bodies, error envelopes and health responses used by
usage_monitor/main.py. The domain views returned by the query endpoints
live in schemas/metrics.py, schemas/alerts.py and schemas/reports.py.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from usage_monitor.registry.services import AIService
from usage_monitor.schemas.metrics import AIOperation, DecisionStatus


# =============================================================================
# REQUEST MODELS
# =============================================================================


class CallRecordRequest(BaseModel):
    """
    Request body for POST /metrics/calls.

    Mirrors the ingestion call: one completed AI call with timing and
    optional quality data.

    Example:
        {
            "service": "groq",
            "operation": "classification",
            "success": true,
            "response_time_ms": 231.5,
            "confidence": 0.87,
            "tokens_used": 412
        }
    """

    service: AIService = Field(..., description="AI backend that handled the call")

    operation: AIOperation = Field(..., description="Purpose of the call")

    success: bool = Field(..., description="Whether the call succeeded")

    response_time_ms: float = Field(..., ge=0.0, description="Duration in milliseconds")

    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    tokens_used: int | None = Field(default=None, ge=0)

    error: str | None = Field(default=None, max_length=500)

    suggestion_id: str | None = Field(default=None, max_length=100)

    user_id: str | None = Field(default=None, max_length=100)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "service": "groq",
                    "operation": "classification",
                    "success": True,
                    "response_time_ms": 231.5,
                    "confidence": 0.87,
                    "tokens_used": 412,
                },
                {
                    "service": "huggingface",
                    "operation": "sentiment_analysis",
                    "success": False,
                    "response_time_ms": 10000,
                    "error": "Model is currently loading",
                },
            ]
        }
    )


class DecisionRequest(BaseModel):
    """Request body for POST /decisions."""

    suggestion_id: str = Field(..., min_length=1, max_length=100)

    status: DecisionStatus = Field(..., description="Decision outcome")

    user_id: str | None = Field(default=None, max_length=100)


class AcknowledgeRequest(BaseModel):
    """Request body for POST /alerts/{alert_id}/acknowledge."""

    user_id: str = Field(..., min_length=1, max_length=100)

    @field_validator("user_id")
    @classmethod
    def validate_user_id_not_whitespace(cls, v: str) -> str:
        """Ensure the acknowledging user is identified."""
        if not v.strip():
            raise ValueError("user_id cannot be empty or whitespace only")
        return v


class AcceptedResponse(BaseModel):
    """Response for fire-and-forget ingestion endpoints."""

    accepted: bool = Field(default=True)


# =============================================================================
# ERROR MODELS
# =============================================================================


class ErrorCodes:
    """
    Standard error codes for API responses.

    These codes enable programmatic error handling by clients
    without parsing human-readable messages.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    ALERT_NOT_FOUND = "ALERT_NOT_FOUND"
    STORE_ERROR = "STORE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    """
    Detailed error information for API error responses.

    Provides machine-readable error codes, human-readable messages,
    and optional field information for validation errors.
    """

    code: str = Field(..., description="Machine-readable error code")

    message: str = Field(..., description="Human-readable error message")

    field: str | None = Field(
        default=None,
        description="Field that caused the error (for validation errors)",
    )


class ErrorResponse(BaseModel):
    """
    Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "ALERT_NOT_FOUND",
                "message": "Alert not found: 3f2c..."
            }
        }
    """

    error: ErrorDetail


# =============================================================================
# HEALTH MODELS
# =============================================================================


class ComponentHealth(BaseModel):
    """Health status of an individual system component."""

    name: str = Field(..., description="Component name (e.g., 'store', 'registry')")

    status: Literal["healthy", "degraded", "unhealthy"] = Field(...)

    latency_ms: float | None = Field(default=None, ge=0.0)

    message: str | None = Field(default=None)


class HealthResponse(BaseModel):
    """
    Response from the /health endpoint.

    Example:
        {
            "status": "healthy",
            "service": "ai-usage-monitor",
            "version": "0.1.0",
            "components": [{"name": "store", "status": "healthy", "latency_ms": 0.4}],
            "uptime_seconds": 3600.5
        }
    """

    status: Literal["healthy", "degraded", "unhealthy"] = Field(...)

    service: str = Field(default="ai-usage-monitor")

    version: str = Field(...)

    components: list[ComponentHealth] = Field(default_factory=list)

    uptime_seconds: float | None = Field(default=None, ge=0.0)
