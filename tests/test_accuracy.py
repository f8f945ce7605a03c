"""
Accuracy Metrics Tests

Validates decision recording and the approval, rejection and
processing-success rates joined with the confidence statistics.
"""

from datetime import timedelta

import pytest

from usage_monitor.metrics.store import DECISIONS_COLLECTION
from usage_monitor.schemas import DecisionStatus


class TestDecisionRecordStore:
    """Tests for decision recording."""

    def test_record_decision_returns_id(self, monitor):
        decision_id = monitor.record_decision("sugg-1", DecisionStatus.APPROVED, user_id="u1")

        assert decision_id is not None
        decisions = monitor.decision_records.list_decisions()
        assert decisions[0].suggestion_id == "sugg-1"
        assert decisions[0].status == DecisionStatus.APPROVED
        assert decisions[0].user_id == "u1"

    def test_unknown_status_dropped(self, monitor):
        assert monitor.record_decision("sugg-1", "maybe") is None
        assert monitor.decision_records.list_decisions() == []

    def test_empty_suggestion_id_dropped(self, monitor):
        assert monitor.record_decision("", DecisionStatus.APPROVED) is None

    def test_malformed_stored_documents_skipped(self, monitor, memory_store, clock):
        memory_store.append(
            DECISIONS_COLLECTION,
            {"timestamp": clock.now.isoformat(), "suggestion_id": "x", "status": "archived"},
        )
        monitor.record_decision("sugg-2", DecisionStatus.REJECTED)

        decisions = monitor.decision_records.list_decisions()

        assert [d.suggestion_id for d in decisions] == ["sugg-2"]


class TestAccuracyAnalyzer:
    """Tests for AccuracyAnalyzer.accuracy()."""

    def test_no_decisions_gives_zero_rates(self, monitor):
        accuracy = monitor.get_accuracy_metrics()

        assert accuracy.total_decisions == 0
        assert accuracy.approval_rate == 0.0
        assert accuracy.rejection_rate == 0.0
        assert accuracy.processing_success_rate == 0.0

    def test_decision_rates(self, monitor):
        statuses = (
            [DecisionStatus.APPROVED] * 4
            + [DecisionStatus.REJECTED] * 2
            + [DecisionStatus.COMPLETED] * 3
            + [DecisionStatus.FAILED] * 1
        )
        for i, status in enumerate(statuses):
            monitor.record_decision(f"sugg-{i}", status)

        accuracy = monitor.get_accuracy_metrics()

        assert accuracy.total_decisions == 10
        assert accuracy.approval_rate == pytest.approx(40.0)
        assert accuracy.rejection_rate == pytest.approx(20.0)
        assert accuracy.processing_success_rate == pytest.approx(75.0)

    def test_pending_counts_towards_total_only(self, monitor):
        monitor.record_decision("a", DecisionStatus.APPROVED)
        monitor.record_decision("b", DecisionStatus.PENDING)

        accuracy = monitor.get_accuracy_metrics()

        assert accuracy.approval_rate == pytest.approx(50.0)
        assert accuracy.processing_success_rate == 0.0

    def test_latest_status_per_suggestion_counts(self, monitor, clock):
        monitor.record_decision("s1", DecisionStatus.APPROVED)
        clock.advance(minutes=1)
        monitor.record_decision("s1", DecisionStatus.COMPLETED)
        clock.advance(minutes=1)
        monitor.record_decision("s2", DecisionStatus.APPROVED)

        accuracy = monitor.get_accuracy_metrics()

        assert accuracy.total_decisions == 2
        assert accuracy.approval_rate == pytest.approx(50.0)
        assert accuracy.processing_success_rate == pytest.approx(100.0)

    def test_status_changes_within_same_instant_keep_last(self, monitor):
        monitor.record_decision("s1", DecisionStatus.PENDING)
        monitor.record_decision("s1", DecisionStatus.REJECTED)

        accuracy = monitor.get_accuracy_metrics()

        assert accuracy.total_decisions == 1
        assert accuracy.rejection_rate == pytest.approx(100.0)

    def test_confidence_from_30_day_summary(self, monitor, seed_records):
        seed_records(monitor, 2, confidence=0.9, age=timedelta(days=2))
        seed_records(monitor, 2, confidence=0.5, age=timedelta(days=2))
        seed_records(monitor, 5, confidence=0.1, age=timedelta(days=45))

        accuracy = monitor.get_accuracy_metrics()

        assert accuracy.avg_confidence == pytest.approx(0.7)
        assert accuracy.confidence_distribution.high == 2
        assert accuracy.confidence_distribution.low == 2

    def test_decision_store_failure_returns_zeroed_metrics(self, monitor):
        def broken(*args, **kwargs):
            raise RuntimeError("stream unavailable")

        monitor.decision_records.list_decisions = broken

        accuracy = monitor.get_accuracy_metrics()

        assert accuracy.total_decisions == 0
        assert accuracy.avg_confidence == 0.0
