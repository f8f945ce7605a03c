"""
Alert Tests

Validates the threshold rules, duplicate suppression, alert listing and
first-write-wins acknowledgement.

Test Categories:
1. TestRules - Rule thresholds and messages (pure functions)
2. TestCheckThresholds - End-to-end evaluation through the engine
3. TestDuplicateSuppression - Cooldown and dedup keys
4. TestAlertListing - Recent and unacknowledged alerts
5. TestAcknowledgement - Acknowledgement lifecycle
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from pydantic import ValidationError

from usage_monitor.alerts import AlertNotFoundError
from usage_monitor.alerts.rules import (
    check_confidence,
    check_error_rate,
    check_rate_limits,
    check_response_time,
)
from usage_monitor.monitor import UsageMonitor
from usage_monitor.registry import AIService, ServiceMetadata, ServiceRegistry
from usage_monitor.schemas import AlertSeverity, AlertType
from usage_monitor.storage import InMemoryDocumentStore, SQLiteDocumentStore, StoreError


def alert_types(alerts):
    return [alert.type for alert in alerts]


@pytest.fixture
def small_quota_monitor(memory_store, clock):
    """Monitor whose Hugging Face free tier is 30 requests/month."""
    registry = ServiceRegistry()
    registry._services[AIService.HUGGINGFACE] = ServiceMetadata(
        service=AIService.HUGGINGFACE,
        display_name="Hugging Face",
        requests_per_day=1,
    )
    return UsageMonitor(memory_store, registry=registry, clock=clock)


class TestRules:
    """Tests for the pure rule functions."""

    def test_error_rate_at_threshold_does_not_fire(self, monitor, seed_records):
        """10 requests at exactly 90% success: neither condition is met."""
        seed_records(monitor, 9, success=True, confidence=0.9)
        seed_records(monitor, 1, success=False, confidence=0.9)

        assert check_error_rate(monitor.get_metrics_summary()) is None

    def test_error_rate_fires_with_message(self, monitor, seed_records):
        seed_records(monitor, 8, success=True, confidence=0.9)
        seed_records(monitor, 3, success=False, confidence=0.9)

        candidate = check_error_rate(monitor.get_metrics_summary())

        assert candidate.type == AlertType.HIGH_ERROR_RATE
        assert candidate.severity == AlertSeverity.WARNING
        assert candidate.message == "Error rate is 27.3% (threshold: 10%)"
        assert candidate.metadata["total_requests"] == 11
        assert candidate.metadata["error_rate"] == pytest.approx(300 / 11)

    def test_error_rate_needs_more_than_10_requests(self, monitor, seed_records):
        seed_records(monitor, 10, success=False, confidence=0.9)

        assert check_error_rate(monitor.get_metrics_summary()) is None

    def test_response_time_boundary(self, monitor, seed_records):
        seed_records(monitor, 1, response_time_ms=5000.0, confidence=0.9)
        assert check_response_time(monitor.get_metrics_summary()) is None

        monitor.store.reset()
        seed_records(monitor, 1, response_time_ms=5001.0, confidence=0.9)
        candidate = check_response_time(monitor.get_metrics_summary())

        assert candidate.type == AlertType.SLOW_RESPONSE
        assert candidate.message == "Average response time is 5.00s (threshold: 5s)"

    def test_low_confidence_fires_above_5_requests(self, monitor, seed_records):
        seed_records(monitor, 6, confidence=0.5)

        candidate = check_confidence(monitor.get_metrics_summary())

        assert candidate.type == AlertType.LOW_CONFIDENCE
        assert candidate.message == "Average confidence is 50.0% (threshold: 60%)"

    def test_low_confidence_needs_more_than_5_requests(self, monitor, seed_records):
        seed_records(monitor, 5, confidence=0.5)

        assert check_confidence(monitor.get_metrics_summary()) is None

    def test_confidence_at_threshold_does_not_fire(self, monitor, seed_records):
        seed_records(monitor, 6, confidence=0.6)

        assert check_confidence(monitor.get_metrics_summary()) is None

    def test_rate_limit_per_service(self, small_quota_monitor, seed_records):
        seed_records(small_quota_monitor, 25, service=AIService.HUGGINGFACE)

        candidates = check_rate_limits(
            small_quota_monitor.get_cost_breakdown(), small_quota_monitor.registry
        )

        assert len(candidates) == 1
        assert candidates[0].message == "Hugging Face usage at 83.3% of free tier limit"
        assert candidates[0].dedup_key == "rate_limit_warning:huggingface"
        assert candidates[0].metadata["service"] == "huggingface"

    def test_rate_limit_at_threshold_does_not_fire(self, small_quota_monitor, seed_records):
        seed_records(small_quota_monitor, 24, service=AIService.HUGGINGFACE)

        assert check_rate_limits(small_quota_monitor.get_cost_breakdown()) == []


class TestCheckThresholds:
    """Tests for AlertEngine.check_thresholds()."""

    def test_no_traffic_no_alerts(self, monitor):
        assert monitor.check_thresholds() == []

    def test_healthy_traffic_no_alerts(self, monitor, seed_records):
        seed_records(monitor, 20, success=True, confidence=0.9, response_time_ms=300.0)

        assert monitor.check_thresholds() == []

    def test_alerts_created_and_returned(self, monitor, seed_records, clock):
        seed_records(monitor, 8, success=True, confidence=0.3, response_time_ms=9000.0)
        seed_records(monitor, 3, success=False, confidence=0.3, response_time_ms=9000.0)

        alerts = monitor.check_thresholds()

        assert set(alert_types(alerts)) == {
            AlertType.HIGH_ERROR_RATE,
            AlertType.SLOW_RESPONSE,
            AlertType.LOW_CONFIDENCE,
        }
        assert all(alert.id for alert in alerts)
        assert all(not alert.acknowledged for alert in alerts)
        assert all(alert.timestamp == clock.now for alert in alerts)

    def test_records_without_confidence_fire_low_confidence(self, monitor, seed_records):
        """Average confidence reads as 0 when no record carries one."""
        seed_records(monitor, 6, confidence=None)

        assert alert_types(monitor.check_thresholds()) == [AlertType.LOW_CONFIDENCE]

    def test_rate_limit_alert_created(self, small_quota_monitor, seed_records):
        seed_records(
            small_quota_monitor, 25, service=AIService.HUGGINGFACE, age=timedelta(days=2)
        )

        alerts = small_quota_monitor.check_thresholds()

        assert alert_types(alerts) == [AlertType.RATE_LIMIT_WARNING]

    def test_returns_previously_open_alerts(self, monitor):
        existing = monitor.create_alert(
            AlertType.PROCESSING_FAILURE, AlertSeverity.ERROR, "Batch job failed"
        )

        alerts = monitor.check_thresholds()

        assert [alert.id for alert in alerts] == [existing.id]

    def test_failure_partway_returns_created_so_far(self, monitor, seed_records):
        seed_records(monitor, 8, success=True, confidence=0.9)
        seed_records(monitor, 3, success=False, confidence=0.9)

        def broken():
            raise StoreError("store offline")

        monitor.alert_engine._cost_projector.breakdown = broken

        alerts = monitor.check_thresholds()

        assert alert_types(alerts) == [AlertType.HIGH_ERROR_RATE]


class TestDuplicateSuppression:
    """Tests for dedup-key suppression within the cooldown."""

    def test_repeated_check_does_not_duplicate(self, monitor, seed_records, clock):
        seed_records(monitor, 6, confidence=0.3)

        monitor.check_thresholds()
        clock.advance(minutes=5)
        alerts = monitor.check_thresholds()

        assert len(alerts) == 1
        assert len(monitor.get_recent_alerts()) == 1

    def test_acknowledged_alert_does_not_suppress(self, monitor, seed_records):
        seed_records(monitor, 6, confidence=0.3)

        first = monitor.check_thresholds()[0]
        monitor.acknowledge_alert(first.id, "ops")
        alerts = monitor.check_thresholds()

        assert len(alerts) == 1
        assert alerts[0].id != first.id

    def test_cooldown_expiry_allows_new_alert(self, monitor, seed_records, clock):
        seed_records(monitor, 6, confidence=0.3)
        monitor.check_thresholds()

        clock.advance(hours=25)
        seed_records(monitor, 6, confidence=0.3, now=clock.now)
        alerts = monitor.check_thresholds()

        assert len(alerts) == 2

    def test_zero_cooldown_disables_suppression(self, memory_store, clock, seed_records):
        monitor = UsageMonitor(memory_store, alert_cooldown_hours=0, clock=clock)
        seed_records(monitor, 6, confidence=0.3)

        monitor.check_thresholds()
        alerts = monitor.check_thresholds()

        assert len(alerts) == 2

    def test_rate_limit_keys_are_per_service(self, small_quota_monitor, seed_records):
        seed_records(
            small_quota_monitor, 25, service=AIService.HUGGINGFACE, age=timedelta(days=2)
        )

        small_quota_monitor.check_thresholds()
        alerts = small_quota_monitor.check_thresholds()

        assert [a.dedup_key for a in alerts] == ["rate_limit_warning:huggingface"]

    def test_negative_cooldown_rejected(self, memory_store):
        with pytest.raises(ValueError):
            UsageMonitor(memory_store, alert_cooldown_hours=-1)


class TestAlertListing:
    """Tests for recent and unacknowledged alert queries."""

    def test_recent_alerts_newest_first_with_limit(self, monitor, clock):
        for i in range(3):
            monitor.create_alert(AlertType.PROCESSING_FAILURE, AlertSeverity.ERROR, f"job {i}")
            clock.advance(minutes=1)

        alerts = monitor.get_recent_alerts(limit=2)

        assert [a.message for a in alerts] == ["job 2", "job 1"]

    def test_create_alert_keeps_metadata(self, monitor):
        alert = monitor.create_alert(
            "processing_failure", "critical", "Import failed", {"job_id": "j-1"}
        )

        assert alert.type == AlertType.PROCESSING_FAILURE
        assert alert.severity == AlertSeverity.CRITICAL
        assert monitor.get_recent_alerts()[0].metadata == {"job_id": "j-1"}

    @pytest.mark.parametrize(
        "alert_type,severity,message",
        [
            ("unknown_type", "error", "x"),
            ("processing_failure", "fatal", "x"),
            ("processing_failure", "error", ""),
        ],
    )
    def test_create_alert_validates(self, monitor, alert_type, severity, message):
        with pytest.raises(ValidationError):
            monitor.create_alert(alert_type, severity, message)

    def test_unacknowledged_excludes_acknowledged(self, monitor, clock):
        kept = monitor.create_alert(AlertType.PROCESSING_FAILURE, AlertSeverity.ERROR, "a")
        clock.advance(minutes=1)
        done = monitor.create_alert(AlertType.PROCESSING_FAILURE, AlertSeverity.ERROR, "b")
        monitor.acknowledge_alert(done.id, "ops")

        assert [a.id for a in monitor.get_unacknowledged_alerts()] == [kept.id]

    def test_listing_failure_returns_empty(self, monitor):
        def broken(*args, **kwargs):
            raise StoreError("store offline")

        monitor.store.query = broken

        assert monitor.get_recent_alerts() == []
        assert monitor.get_unacknowledged_alerts() == []


class TestAcknowledgement:
    """Tests for first-write-wins acknowledgement."""

    def test_acknowledge_sets_fields(self, monitor, clock):
        alert = monitor.create_alert(AlertType.SLOW_RESPONSE, AlertSeverity.WARNING, "slow")
        clock.advance(minutes=10)

        acknowledged = monitor.acknowledge_alert(alert.id, "alice")

        assert acknowledged.acknowledged is True
        assert acknowledged.acknowledged_by == "alice"
        assert acknowledged.acknowledged_at == clock.now
        assert monitor.get_unacknowledged_alerts() == []

    def test_second_acknowledgement_keeps_first(self, monitor, clock):
        alert = monitor.create_alert(AlertType.SLOW_RESPONSE, AlertSeverity.WARNING, "slow")
        first = monitor.acknowledge_alert(alert.id, "alice")

        clock.advance(minutes=10)
        second = monitor.acknowledge_alert(alert.id, "bob")

        assert second.acknowledged_by == "alice"
        assert second.acknowledged_at == first.acknowledged_at

    def test_unknown_alert_raises(self, monitor):
        with pytest.raises(AlertNotFoundError) as exc_info:
            monitor.acknowledge_alert("missing", "alice")

        assert exc_info.value.alert_id == "missing"

    @pytest.mark.parametrize("user_id", ["", "   "])
    def test_blank_user_rejected(self, monitor, user_id):
        alert = monitor.create_alert(AlertType.SLOW_RESPONSE, AlertSeverity.WARNING, "slow")

        with pytest.raises(ValueError):
            monitor.acknowledge_alert(alert.id, user_id)

        assert monitor.get_unacknowledged_alerts()[0].id == alert.id

    @pytest.mark.parametrize("backend", ["memory", "sqlite"])
    def test_concurrent_acknowledgers_agree(self, backend, tmp_path, clock):
        """Only one of many simultaneous acknowledgements is applied."""
        if backend == "memory":
            store = InMemoryDocumentStore()
        else:
            store = SQLiteDocumentStore(str(tmp_path / "alerts.db"))
        monitor = UsageMonitor(store, clock=clock)
        alert = monitor.create_alert(AlertType.HIGH_ERROR_RATE, AlertSeverity.WARNING, "errors")
        users = [f"user-{i}" for i in range(16)]

        with ThreadPoolExecutor(max_workers=len(users)) as pool:
            results = list(pool.map(lambda user: monitor.acknowledge_alert(alert.id, user), users))

        winners = {result.acknowledged_by for result in results}
        assert len(winners) == 1
        assert winners.pop() in users
        assert all(result.acknowledged for result in results)
        assert monitor.get_unacknowledged_alerts() == []
