"""
Composite views built on top of the metrics and alert schemas.

- DashboardSnapshot: everything an operator dashboard loads in one refresh
- PerformanceReport: a periodic summary with rule-derived recommendations
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from usage_monitor.schemas.alerts import Alert
from usage_monitor.schemas.metrics import (
    AccuracyMetrics,
    CostBreakdown,
    MetricsSummary,
    TimeRange,
    TimelineDataPoint,
    utc_now,
)


class ReportPeriod(str, Enum):
    """Reporting cadence and the time range it summarizes."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def time_range(self) -> TimeRange:
        return {
            ReportPeriod.DAILY: TimeRange.LAST_24H,
            ReportPeriod.WEEKLY: TimeRange.LAST_7D,
            ReportPeriod.MONTHLY: TimeRange.LAST_30D,
        }[self]


class DashboardSnapshot(BaseModel):
    """All dashboard data for one time range, loaded in a single call."""

    summary: MetricsSummary
    timeline: list[TimelineDataPoint] = Field(default_factory=list)
    cost: CostBreakdown
    accuracy: AccuracyMetrics
    alerts: list[Alert] = Field(default_factory=list, description="Unacknowledged alerts")


class PerformanceReport(BaseModel):
    """
    Periodic performance report.

    Recommendations are derived from the same thresholds the alert engine
    uses, so a report and the alert list never disagree about what is wrong.
    """

    generated_at: datetime = Field(default_factory=utc_now)
    period: ReportPeriod
    start_date: datetime
    end_date: datetime
    summary: MetricsSummary
    cost: CostBreakdown
    alerts: list[Alert] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
