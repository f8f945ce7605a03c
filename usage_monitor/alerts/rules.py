"""
Threshold rules for operational alerts.

Rules (all strict comparisons, all raised at WARNING severity):
- high_error_rate: success rate < 90% over more than 10 requests (24h)
- slow_response: average response time > 5s (24h)
- low_confidence: average confidence < 60% over more than 5 requests (24h)
- rate_limit_warning: a service above 80% of its free tier (30-day window)

Rules are pure functions of the aggregates; the engine decides whether
a firing rule becomes a new alert.
"""

from dataclasses import dataclass, field
from typing import Any

from usage_monitor.registry.services import ServiceRegistry, get_service_registry
from usage_monitor.schemas.alerts import AlertSeverity, AlertType
from usage_monitor.schemas.metrics import CostBreakdown, MetricsSummary

MIN_SUCCESS_RATE = 90.0
ERROR_RATE_MIN_REQUESTS = 10
MAX_AVG_RESPONSE_TIME_MS = 5000.0
MIN_AVG_CONFIDENCE = 0.6
CONFIDENCE_MIN_REQUESTS = 5
MAX_FREE_TIER_USAGE = 80.0


@dataclass(frozen=True)
class AlertCandidate:
    """A rule that fired, not yet persisted."""

    type: AlertType
    severity: AlertSeverity
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)
    dedup_key: str | None = None


def check_error_rate(summary: MetricsSummary) -> AlertCandidate | None:
    if summary.success_rate < MIN_SUCCESS_RATE and summary.total_requests > ERROR_RATE_MIN_REQUESTS:
        error_rate = 100 - summary.success_rate
        return AlertCandidate(
            type=AlertType.HIGH_ERROR_RATE,
            severity=AlertSeverity.WARNING,
            message=f"Error rate is {error_rate:.1f}% (threshold: 10%)",
            metadata={"error_rate": error_rate, "total_requests": summary.total_requests},
            dedup_key=AlertType.HIGH_ERROR_RATE.value,
        )
    return None


def check_response_time(summary: MetricsSummary) -> AlertCandidate | None:
    if summary.avg_response_time > MAX_AVG_RESPONSE_TIME_MS:
        return AlertCandidate(
            type=AlertType.SLOW_RESPONSE,
            severity=AlertSeverity.WARNING,
            message=(
                f"Average response time is {summary.avg_response_time / 1000:.2f}s "
                "(threshold: 5s)"
            ),
            metadata={"avg_response_time": summary.avg_response_time},
            dedup_key=AlertType.SLOW_RESPONSE.value,
        )
    return None


def check_confidence(summary: MetricsSummary) -> AlertCandidate | None:
    # avg_confidence is 0 when no record carried one, which also fires here
    if summary.avg_confidence < MIN_AVG_CONFIDENCE and summary.total_requests > CONFIDENCE_MIN_REQUESTS:
        return AlertCandidate(
            type=AlertType.LOW_CONFIDENCE,
            severity=AlertSeverity.WARNING,
            message=(
                f"Average confidence is {summary.avg_confidence * 100:.1f}% "
                "(threshold: 60%)"
            ),
            metadata={"avg_confidence": summary.avg_confidence},
            dedup_key=AlertType.LOW_CONFIDENCE.value,
        )
    return None


def check_rate_limits(
    cost: CostBreakdown, registry: ServiceRegistry | None = None
) -> list[AlertCandidate]:
    """One candidate per service above the free-tier usage threshold."""
    registry = registry or get_service_registry()
    candidates = []
    for service, service_cost in cost.services.items():
        if service_cost.usage_percentage <= MAX_FREE_TIER_USAGE:
            continue
        metadata = registry.get_service(service)
        name = metadata.display_name if metadata else service.value
        candidates.append(
            AlertCandidate(
                type=AlertType.RATE_LIMIT_WARNING,
                severity=AlertSeverity.WARNING,
                message=f"{name} usage at {service_cost.usage_percentage:.1f}% of free tier limit",
                metadata={
                    "service": service.value,
                    "usage": service_cost.usage_percentage,
                    "requests": service_cost.requests,
                    "free_limit": service_cost.free_limit,
                },
                dedup_key=f"{AlertType.RATE_LIMIT_WARNING.value}:{service.value}",
            )
        )
    return candidates


def evaluate_summary(summary: MetricsSummary) -> list[AlertCandidate]:
    """Run the rules that read the 24h summary, in fixed order."""
    candidates = [
        check_error_rate(summary),
        check_response_time(summary),
        check_confidence(summary),
    ]
    return [candidate for candidate in candidates if candidate is not None]
