"""
Accuracy Analyzer

Joins AI confidence statistics with what humans (and the processing
pipeline) actually did with the suggestions:
- approval_rate / rejection_rate: share of suggestions by latest status
- processing_success_rate: completed / (completed + failed)
"""

import logging
from collections import Counter

from usage_monitor.metrics.aggregator import MetricsAggregator
from usage_monitor.metrics.store import DecisionRecordStore
from usage_monitor.schemas.metrics import (
    AccuracyMetrics,
    DecisionStatus,
    MetricsSummary,
    TimeRange,
)

logger = logging.getLogger(__name__)

CONFIDENCE_RANGE = TimeRange.LAST_30D


def _rate(part: int, whole: int) -> float:
    return part * 100 / whole if whole else 0.0


class AccuracyAnalyzer:
    """
    Compute accuracy metrics from the metric log and the decision stream.

    The confidence statistics and the decision counts come from two
    independent reads. Records written between them may show up in one
    and not the other, so the result is a best-effort snapshot rather
    than a consistent join.

    The decision stream is append-only, so one suggestion may appear
    several times as it moves from approved to completed. Only the latest
    decision per suggestion counts, which makes every rate a share of
    suggestions rather than of status changes.
    """

    def __init__(self, aggregator: MetricsAggregator, decisions: DecisionRecordStore):
        self._aggregator = aggregator
        self._decisions = decisions

    def accuracy(self) -> AccuracyMetrics:
        """
        Accuracy metrics over the 30-day confidence window and all decisions.

        Returns zeroed metrics if the decision stream cannot be read.
        """
        try:
            summary = self._aggregator.summarize(CONFIDENCE_RANGE)
            decisions = self._decisions.list_decisions()
        except Exception:
            logger.exception("Error getting accuracy metrics")
            return AccuracyMetrics()

        latest = {}
        for decision in decisions:
            latest[decision.suggestion_id] = decision.status

        counts = Counter(latest.values())
        return self._build(summary, counts, len(latest))

    @staticmethod
    def _build(
        summary: MetricsSummary, counts: Counter, total: int
    ) -> AccuracyMetrics:
        completed = counts[DecisionStatus.COMPLETED]
        processed = completed + counts[DecisionStatus.FAILED]

        return AccuracyMetrics(
            avg_confidence=summary.avg_confidence,
            confidence_distribution=summary.confidence_distribution,
            approval_rate=_rate(counts[DecisionStatus.APPROVED], total),
            rejection_rate=_rate(counts[DecisionStatus.REJECTED], total),
            processing_success_rate=_rate(completed, processed),
            total_decisions=total,
        )
