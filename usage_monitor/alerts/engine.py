"""
Alert Engine

Evaluates the threshold rules against fresh aggregates and persists an
alert for every rule that fires, unless an open alert with the same dedup
key was raised within the cooldown window.

Evaluation order: error rate, response time, confidence (24h summary),
then free-tier usage per service (30-day cost breakdown).
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from usage_monitor.alerts.rules import AlertCandidate, check_rate_limits, evaluate_summary
from usage_monitor.alerts.store import DEFAULT_RECENT_LIMIT, AlertStore
from usage_monitor.metrics.aggregator import MetricsAggregator
from usage_monitor.metrics.cost import CostProjector
from usage_monitor.registry.services import ServiceRegistry, get_service_registry
from usage_monitor.schemas.alerts import Alert, AlertSeverity, AlertType
from usage_monitor.schemas.metrics import TimeRange, utc_now

logger = logging.getLogger(__name__)

CHECK_RANGE = TimeRange.LAST_24H
DEFAULT_COOLDOWN_HOURS = 24.0


class AlertEngine:
    """
    Threshold evaluation and alert lifecycle.

    Read paths (recent, unacknowledged) degrade to an empty list on store
    failure. Writes (create_alert, acknowledge_alert) propagate errors.

    Example:
        engine = AlertEngine(alert_store, aggregator, cost_projector)
        open_alerts = engine.check_thresholds()
    """

    def __init__(
        self,
        alerts: AlertStore,
        aggregator: MetricsAggregator,
        cost_projector: CostProjector,
        registry: ServiceRegistry | None = None,
        cooldown_hours: float = DEFAULT_COOLDOWN_HOURS,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the engine.

        Args:
            alerts: Alert store to persist to
            aggregator: Source of the 24h summary
            cost_projector: Source of the free-tier usage breakdown
            registry: Service registry for display names
            cooldown_hours: Window in which an open alert suppresses
                            duplicates; 0 disables suppression
            clock: Source of the current time (injectable for tests)
        """
        if cooldown_hours < 0:
            raise ValueError("cooldown_hours must be >= 0")
        self._alerts = alerts
        self._aggregator = aggregator
        self._cost_projector = cost_projector
        self._registry = registry or get_service_registry()
        self._cooldown = timedelta(hours=cooldown_hours)
        self._clock = clock

    def create_alert(
        self,
        alert_type: AlertType | str,
        severity: AlertSeverity | str,
        message: str,
        metadata: dict[str, Any] | None = None,
        dedup_key: str | None = None,
    ) -> Alert:
        """
        Persist a new alert unconditionally.

        Used by the rule evaluation and by external workflows raising
        processing_failure alerts.

        Raises:
            ValidationError: If type, severity or message are invalid
            StoreError: If the write fails
        """
        alert = Alert(
            type=alert_type,
            severity=severity,
            message=message,
            timestamp=self._clock(),
            metadata=metadata or {},
            dedup_key=dedup_key,
        )
        created = self._alerts.create(alert)
        logger.warning(
            f"ALERT [{created.severity.value.upper()}] {created.type.value}: {created.message}"
        )
        return created

    def _is_suppressed(self, candidate: AlertCandidate) -> bool:
        if not self._cooldown or candidate.dedup_key is None:
            return False
        since = self._clock() - self._cooldown
        existing = self._alerts.find_open(candidate.dedup_key, since)
        if existing is not None:
            logger.info(
                f"Suppressing {candidate.type.value}: alert {existing.id} still open "
                f"since {existing.timestamp.isoformat()}"
            )
            return True
        return False

    def _raise(self, candidate: AlertCandidate) -> Alert | None:
        if self._is_suppressed(candidate):
            return None
        return self.create_alert(
            candidate.type,
            candidate.severity,
            candidate.message,
            candidate.metadata,
            dedup_key=candidate.dedup_key,
        )

    def check_thresholds(self) -> list[Alert]:
        """
        Evaluate every rule and persist alerts for those that fire.

        Returns:
            All unacknowledged alerts after evaluation, or only the alerts
            created during this call if evaluation fails partway
        """
        created: list[Alert] = []
        try:
            summary = self._aggregator.summarize(CHECK_RANGE)
            for candidate in evaluate_summary(summary):
                alert = self._raise(candidate)
                if alert is not None:
                    created.append(alert)

            cost = self._cost_projector.breakdown()
            for candidate in check_rate_limits(cost, self._registry):
                alert = self._raise(candidate)
                if alert is not None:
                    created.append(alert)

            return self._alerts.unacknowledged()
        except Exception:
            logger.exception("Error checking thresholds")
            return created

    def get_recent_alerts(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[Alert]:
        try:
            return self._alerts.recent(limit)
        except Exception:
            logger.exception("Error getting alerts")
            return []

    def get_unacknowledged_alerts(self) -> list[Alert]:
        try:
            return self._alerts.unacknowledged()
        except Exception:
            logger.exception("Error getting unacknowledged alerts")
            return []

    def acknowledge_alert(self, alert_id: str, user_id: str) -> Alert:
        """
        Acknowledge an alert (first acknowledgement wins).

        Raises:
            ValueError: If user_id is blank
            AlertNotFoundError: If no alert has this id
            StoreError: If the update fails
        """
        return self._alerts.acknowledge(alert_id, user_id)
