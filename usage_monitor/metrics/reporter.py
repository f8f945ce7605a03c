"""
Performance Reporter

Builds periodic (daily / weekly / monthly) performance reports from the
aggregated metrics, the cost breakdown and the open alerts.

Recommendations are derived by running the alert rules over the report's
own aggregates, so a report flags exactly what the alert engine would.
"""

import logging
from typing import TYPE_CHECKING

from usage_monitor.alerts.rules import AlertCandidate, check_rate_limits, evaluate_summary
from usage_monitor.metrics.aggregator import MetricsAggregator
from usage_monitor.metrics.cost import CostProjector
from usage_monitor.registry.services import ServiceRegistry, get_service_registry
from usage_monitor.schemas.alerts import AlertType
from usage_monitor.schemas.reports import PerformanceReport, ReportPeriod

if TYPE_CHECKING:
    from usage_monitor.alerts.engine import AlertEngine

logger = logging.getLogger(__name__)

HEALTHY_RECOMMENDATION = "All metrics are within thresholds; no action needed."

ADVICE: dict[AlertType, str] = {
    AlertType.HIGH_ERROR_RATE: "Inspect recent failures and add retries or a fallback service.",
    AlertType.SLOW_RESPONSE: "Consider caching results or routing to a faster model.",
    AlertType.LOW_CONFIDENCE: "Review prompts and input quality for low-confidence operations.",
    AlertType.RATE_LIMIT_WARNING: "Throttle non-critical calls or plan for a paid tier.",
}


def recommend(candidates: list[AlertCandidate]) -> list[str]:
    """Turn fired rules into human-readable recommendations."""
    if not candidates:
        return [HEALTHY_RECOMMENDATION]
    return [f"{c.message}. {ADVICE.get(c.type, '')}".strip() for c in candidates]


class PerformanceReporter:
    """
    Generate periodic performance reports.

    Example:
        reporter = PerformanceReporter(aggregator, cost_projector, alert_engine)
        report = reporter.generate_report(ReportPeriod.WEEKLY)
        for line in report.recommendations:
            print(line)
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        cost_projector: CostProjector,
        alert_engine: "AlertEngine",
        registry: ServiceRegistry | None = None,
    ):
        """
        Initialize the reporter.

        Args:
            aggregator: Source of the period summary
            cost_projector: Source of the cost breakdown
            alert_engine: Source of the open alerts
            registry: Service registry for display names.
                      If None, uses the global registry.
        """
        self._aggregator = aggregator
        self._cost_projector = cost_projector
        self._alert_engine = alert_engine
        self._registry = registry or get_service_registry()

    def generate_report(self, period: ReportPeriod | str = ReportPeriod.DAILY) -> PerformanceReport:
        """
        Generate a report for the period ending now.

        Never raises on store failure: each underlying read degrades to
        its zeroed/empty form.

        Raises:
            ValueError: If period is not a known report period
        """
        period = ReportPeriod(period)
        summary = self._aggregator.summarize(period.time_range)
        cost = self._cost_projector.breakdown()
        alerts = self._alert_engine.get_unacknowledged_alerts()

        candidates = evaluate_summary(summary) + check_rate_limits(cost, self._registry)
        logger.info(
            f"Generated {period.value} report: {summary.total_requests} requests, "
            f"{len(candidates)} finding(s)"
        )

        return PerformanceReport(
            period=period,
            start_date=summary.start_date,
            end_date=summary.end_date,
            summary=summary,
            cost=cost,
            alerts=alerts,
            recommendations=recommend(candidates),
        )
