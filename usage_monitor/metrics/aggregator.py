"""
Metrics Aggregator

Turns the raw metric record log into windowed summaries and timelines.

Aggregation is a pure function of the records (summarize_records,
bucket_records); MetricsAggregator adds window resolution, the scan cap and
the read-path error policy on top. The aggregates produced here feed the
HTTP API, the cost projector, the alert engine and the reports.

Confidence buckets:
- high: > 0.8
- medium: 0.6 to 0.8 inclusive
- low: < 0.6
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Sequence

from usage_monitor.metrics.store import MetricRecordStore
from usage_monitor.registry.services import AIService, ServiceRegistry, get_service_registry
from usage_monitor.schemas.metrics import (
    ConfidenceDistribution,
    MetricRecord,
    MetricsSummary,
    ServiceMetrics,
    TimelineDataPoint,
    TimeRange,
    utc_now,
)

logger = logging.getLogger(__name__)

# Start of the "all" range; no record predates the tracker itself
ALL_RANGE_EPOCH = datetime(2020, 1, 1, tzinfo=timezone.utc)

RANGE_DURATIONS: dict[TimeRange, timedelta] = {
    TimeRange.LAST_24H: timedelta(hours=24),
    TimeRange.LAST_7D: timedelta(days=7),
    TimeRange.LAST_30D: timedelta(days=30),
}

BUCKET_WIDTHS: dict[TimeRange, timedelta] = {
    TimeRange.LAST_24H: timedelta(hours=1),
    TimeRange.LAST_7D: timedelta(days=1),
    TimeRange.LAST_30D: timedelta(days=1),
    TimeRange.ALL: timedelta(days=1),
}

HIGH_CONFIDENCE_THRESHOLD = 0.8
LOW_CONFIDENCE_THRESHOLD = 0.6

DEFAULT_MAX_SCAN_ROWS = 50_000

_BUCKET_ORIGIN = datetime(1970, 1, 1, tzinfo=timezone.utc)


def resolve_range(time_range: TimeRange | str, now: datetime) -> tuple[datetime, datetime]:
    """
    Resolve a named range to an absolute [start, end) window ending at now.

    Raises:
        ValueError: If time_range is not a known range
    """
    time_range = TimeRange(time_range)
    if time_range == TimeRange.ALL:
        return ALL_RANGE_EPOCH, now
    return now - RANGE_DURATIONS[time_range], now


def _mean(values: Sequence[float]) -> float | None:
    return sum(values) / len(values) if values else None


def _success_rate(successful: int, total: int) -> float:
    return successful * 100 / total if total else 0.0


def confidence_distribution(records: Iterable[MetricRecord]) -> ConfidenceDistribution:
    """Count records carrying a confidence into high/medium/low buckets."""
    high = medium = low = 0
    for record in records:
        if record.confidence is None:
            continue
        if record.confidence > HIGH_CONFIDENCE_THRESHOLD:
            high += 1
        elif record.confidence >= LOW_CONFIDENCE_THRESHOLD:
            medium += 1
        else:
            low += 1
    return ConfidenceDistribution(high=high, medium=medium, low=low)


def _rollup(records: Sequence[MetricRecord]) -> dict:
    """Counters shared by the overall and per-service aggregates."""
    successful = sum(1 for record in records if record.success)
    return {
        "total_requests": len(records),
        "successful_requests": successful,
        "failed_requests": len(records) - successful,
        "success_rate": _success_rate(successful, len(records)),
        "avg_response_time": _mean([r.response_time_ms for r in records]) or 0.0,
        "total_cost": sum(r.estimated_cost for r in records),
    }


def _mean_confidence(records: Iterable[MetricRecord]) -> float | None:
    return _mean([r.confidence for r in records if r.confidence is not None])


def service_metrics(service: AIService, records: Sequence[MetricRecord]) -> ServiceMetrics:
    """Aggregate one service's partition of the records."""
    return ServiceMetrics(
        service=service,
        avg_confidence=_mean_confidence(records),
        **_rollup(records),
    )


def summarize_records(
    records: Sequence[MetricRecord],
    time_range: TimeRange,
    start: datetime,
    end: datetime,
    services: Iterable[AIService],
    truncated: bool = False,
) -> MetricsSummary:
    """
    Aggregate a set of records into a MetricsSummary.

    Every service in `services` gets an entry, zeroed when it saw no
    traffic. Records for services outside that set still count towards
    the overall totals.
    """
    by_service: dict[AIService, list[MetricRecord]] = defaultdict(list)
    for record in records:
        by_service[record.service].append(record)

    return MetricsSummary(
        time_range=time_range,
        start_date=start,
        end_date=end,
        avg_confidence=_mean_confidence(records) or 0.0,
        confidence_distribution=confidence_distribution(records),
        **_rollup(records),
        services={
            service: service_metrics(service, by_service.get(service, []))
            for service in services
        },
        truncated=truncated,
    )


def bucket_start(timestamp: datetime, width: timedelta) -> datetime:
    """Floor a timestamp to the start of its fixed-width UTC bucket."""
    offset = timestamp - _BUCKET_ORIGIN
    return _BUCKET_ORIGIN + (offset // width) * width


def bucket_records(
    records: Iterable[MetricRecord], width: timedelta
) -> list[TimelineDataPoint]:
    """
    Group records into fixed-width buckets, ascending by bucket start.

    Buckets without records are omitted.
    """
    buckets: dict[datetime, list[MetricRecord]] = defaultdict(list)
    for record in records:
        buckets[bucket_start(record.timestamp, width)].append(record)

    points = []
    for start in sorted(buckets):
        bucket = buckets[start]
        stats = _rollup(bucket)
        points.append(
            TimelineDataPoint(
                timestamp=start,
                requests=stats["total_requests"],
                success_rate=stats["success_rate"],
                avg_response_time=stats["avg_response_time"],
                avg_confidence=_mean_confidence(bucket),
            )
        )
    return points


class MetricsAggregator:
    """
    Windowed aggregation over the metric record log.

    Read failures never propagate: summarize() falls back to a zeroed
    summary and timeline() to an empty list, each with the error logged.
    Windows holding more records than max_scan_rows are aggregated over
    the newest max_scan_rows records and flagged as truncated.

    Example:
        aggregator = MetricsAggregator(records, max_scan_rows=50_000)
        summary = aggregator.summarize(TimeRange.LAST_7D)
        print(f"{summary.total_requests} calls, {summary.success_rate:.1f}% ok")
    """

    def __init__(
        self,
        records: MetricRecordStore,
        registry: ServiceRegistry | None = None,
        max_scan_rows: int = DEFAULT_MAX_SCAN_ROWS,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the aggregator.

        Args:
            records: Metric record store to read from
            registry: Service registry listing the services to report on
            max_scan_rows: Maximum number of records aggregated per query
            clock: Source of the current time (injectable for tests)
        """
        if max_scan_rows <= 0:
            raise ValueError("max_scan_rows must be positive")
        self._records = records
        self._registry = registry or get_service_registry()
        self._max_scan_rows = max_scan_rows
        self._clock = clock

    @property
    def services(self) -> list[AIService]:
        return [metadata.service for metadata in self._registry.list_services()]

    def resolve_range(self, time_range: TimeRange | str) -> tuple[datetime, datetime]:
        return resolve_range(time_range, self._clock())

    def _fetch(self, start: datetime, end: datetime) -> tuple[list[MetricRecord], bool]:
        """Read the window newest-first under the scan cap; return ascending."""
        records = self._records.query(
            start=start,
            end=end,
            newest_first=True,
            limit=self._max_scan_rows + 1,
        )
        truncated = len(records) > self._max_scan_rows
        if truncated:
            logger.warning(
                f"Window {start.isoformat()} - {end.isoformat()} exceeds "
                f"{self._max_scan_rows} records; aggregating the newest only"
            )
            records = records[: self._max_scan_rows]
        records.reverse()
        return records, truncated

    def summarize(self, time_range: TimeRange | str = TimeRange.LAST_24H) -> MetricsSummary:
        """
        Summarize the records in a named window.

        Raises:
            ValueError: If time_range is not a known range
        """
        time_range = TimeRange(time_range)
        start, end = self.resolve_range(time_range)

        try:
            records, truncated = self._fetch(start, end)
            return summarize_records(
                records, time_range, start, end, self.services, truncated=truncated
            )
        except Exception:
            logger.exception(f"Error getting metrics summary for {time_range.value}")
            return self.empty_summary(time_range, start, end)

    def timeline(self, time_range: TimeRange | str = TimeRange.LAST_24H) -> list[TimelineDataPoint]:
        """
        Bucketed request timeline for a named window.

        Hourly buckets for 24h, daily buckets otherwise.

        Raises:
            ValueError: If time_range is not a known range
        """
        time_range = TimeRange(time_range)
        start, end = self.resolve_range(time_range)

        try:
            records, _ = self._fetch(start, end)
            return bucket_records(records, BUCKET_WIDTHS[time_range])
        except Exception:
            logger.exception(f"Error getting timeline data for {time_range.value}")
            return []

    def empty_summary(
        self,
        time_range: TimeRange | str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MetricsSummary:
        """Zeroed summary with an entry for every known service."""
        time_range = TimeRange(time_range)
        if start is None or end is None:
            start, end = self.resolve_range(time_range)
        return summarize_records([], time_range, start, end, self.services)
