"""
Metrics module: AI call telemetry recording and aggregation.

Components:
- MetricRecordStore / DecisionRecordStore: append-only record logs
- MetricsAggregator: windowed summaries and timelines
- CostProjector: free-tier usage and monthly projection
- AccuracyAnalyzer: confidence joined with human decision rates
- PerformanceReporter: periodic reports with recommendations
"""

from usage_monitor.metrics.store import (
    DECISIONS_COLLECTION,
    METRICS_COLLECTION,
    DecisionRecordStore,
    MetricRecordStore,
)
from usage_monitor.metrics.aggregator import (
    ALL_RANGE_EPOCH,
    MetricsAggregator,
    bucket_records,
    resolve_range,
    summarize_records,
)
from usage_monitor.metrics.cost import CostProjector, estimate_call_cost
from usage_monitor.metrics.accuracy import AccuracyAnalyzer
from usage_monitor.metrics.reporter import PerformanceReporter

__all__ = [
    "METRICS_COLLECTION",
    "DECISIONS_COLLECTION",
    "MetricRecordStore",
    "DecisionRecordStore",
    "MetricsAggregator",
    "ALL_RANGE_EPOCH",
    "resolve_range",
    "summarize_records",
    "bucket_records",
    "CostProjector",
    "estimate_call_cost",
    "AccuracyAnalyzer",
    "PerformanceReporter",
]
