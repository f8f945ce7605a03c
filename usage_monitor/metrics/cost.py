"""
Cost Estimation and Free-Tier Projection

Two responsibilities:
- estimate_call_cost(): per-call pricing, applied at write time
- CostProjector: quota usage and monthly cost projection over a fixed
  30-day reference window

Every tracked service is currently on a free tier, so estimated costs are
zero. The pricing function and cost fields stay in place so that a price
change only touches the service registry, never the aggregation logic.
"""

import logging
from typing import TYPE_CHECKING

from usage_monitor.registry.services import (
    FREE_TIER_PERIOD_DAYS,
    AIService,
    ServiceRegistry,
    get_service_registry,
)
from usage_monitor.schemas.metrics import CostBreakdown, ServiceCost, TimeRange

if TYPE_CHECKING:
    from usage_monitor.metrics.aggregator import MetricsAggregator

logger = logging.getLogger(__name__)

REFERENCE_RANGE = TimeRange.LAST_30D

RANGE_DAYS: dict[TimeRange, int] = {
    TimeRange.LAST_24H: 1,
    TimeRange.LAST_7D: 7,
    TimeRange.LAST_30D: 30,
    TimeRange.ALL: 30,
}


def estimate_call_cost(
    service: AIService | str,
    tokens_used: int,
    registry: ServiceRegistry | None = None,
) -> float:
    """
    Estimate the cost of one call from the service's per-token price.

    Args:
        service: Service that handled the call
        tokens_used: Tokens consumed (0 when unknown)
        registry: Service registry; defaults to the global one

    Returns:
        Estimated cost in USD

    Raises:
        ValueError: If the service is not registered
    """
    registry = registry or get_service_registry()
    metadata = registry.get_service(service)
    if metadata is None:
        raise ValueError(f"Unknown service: {service}")
    return (max(tokens_used, 0) / 1000) * metadata.cost_per_1k_tokens


def usage_percentage(requests: int, free_limit: int) -> float:
    """Share of a free tier used, clamped to [0, 100]."""
    if free_limit <= 0:
        return 0.0
    return min(100.0, requests / free_limit * 100)


def project_monthly(total_cost: float, window_days: int) -> float:
    """Extrapolate a window's cost to a 30-day month."""
    if window_days <= 0:
        return 0.0
    return total_cost * (FREE_TIER_PERIOD_DAYS / window_days)


class CostProjector:
    """
    Project free-tier usage and monthly cost.

    Quota tracking is monthly by nature, so the breakdown always covers
    the 30-day reference window, whatever range the caller is viewing.

    Example:
        projector = CostProjector(aggregator)
        cost = projector.breakdown()
        print(f"Groq at {cost.groq.usage_percentage:.1f}% of free tier")
    """

    def __init__(
        self,
        aggregator: "MetricsAggregator",
        registry: ServiceRegistry | None = None,
        reference_range: TimeRange = REFERENCE_RANGE,
    ):
        """
        Initialize the projector.

        Args:
            aggregator: Source of the reference-window summary
            registry: Service registry holding free-tier limits
            reference_range: Window the projection is computed over
        """
        self._aggregator = aggregator
        self._registry = registry or get_service_registry()
        self._reference_range = TimeRange(reference_range)

    @property
    def reference_days(self) -> int:
        return RANGE_DAYS[self._reference_range]

    def breakdown(self) -> CostBreakdown:
        """
        Compute the cost breakdown over the reference window.

        Returns a zeroed breakdown (with the configured free limits) if
        anything goes wrong, so callers always get a valid structure.
        """
        try:
            summary = self._aggregator.summarize(self._reference_range)

            services: dict[AIService, ServiceCost] = {}
            for metadata in self._registry.list_services():
                service_metrics = summary.services.get(metadata.service)
                requests = service_metrics.total_requests if service_metrics else 0
                cost = service_metrics.total_cost if service_metrics else 0.0
                services[metadata.service] = ServiceCost(
                    requests=requests,
                    cost=cost,
                    free_limit=metadata.free_limit,
                    usage_percentage=usage_percentage(requests, metadata.free_limit),
                )

            return CostBreakdown(
                services=services,
                total=summary.total_cost,
                projected_monthly=project_monthly(summary.total_cost, self.reference_days),
                reference_days=self.reference_days,
            )
        except Exception:
            logger.exception("Error getting cost breakdown")
            return self.empty_breakdown()

    def empty_breakdown(self) -> CostBreakdown:
        """Zeroed breakdown carrying the configured free limits."""
        return CostBreakdown(
            services={
                metadata.service: ServiceCost(free_limit=metadata.free_limit)
                for metadata in self._registry.list_services()
            },
            reference_days=self.reference_days,
        )
