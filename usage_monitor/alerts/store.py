"""
Alert Store

Persists alerts in the "ai_alerts" collection. Alerts are appended once
and mutated at most once, by acknowledgement, through the document store's
atomic conditional update.
"""

import logging
from datetime import datetime
from typing import Callable

from pydantic import ValidationError

from usage_monitor.schemas.alerts import Alert
from usage_monitor.schemas.metrics import utc_now
from usage_monitor.storage.base import DocumentNotFoundError, DocumentStore

logger = logging.getLogger(__name__)

ALERTS_COLLECTION = "ai_alerts"

DEFAULT_RECENT_LIMIT = 50


class AlertNotFoundError(LookupError):
    """Raised when acknowledging an alert id that does not exist."""

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")


class AlertStore:
    """
    Typed repository for alerts.

    Example:
        alerts = AlertStore(InMemoryDocumentStore())
        alert = alerts.create(Alert(type=AlertType.SLOW_RESPONSE, ...))
        alerts.acknowledge(alert.id, "ops-oncall")
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    def _to_alerts(self, documents: list[dict]) -> list[Alert]:
        alerts = []
        for document in documents:
            try:
                alerts.append(Alert.model_validate(document))
            except ValidationError as e:
                logger.warning(f"Skipping malformed alert {document.get('id')}: {e.error_count()} error(s)")
        return alerts

    def create(self, alert: Alert) -> Alert:
        """
        Persist a new alert.

        Returns:
            The alert carrying its assigned id

        Raises:
            StoreError: If the write fails
        """
        doc_id = self._store.append(
            ALERTS_COLLECTION, alert.model_dump(mode="json", exclude={"id"})
        )
        return alert.model_copy(update={"id": doc_id})

    def get(self, alert_id: str) -> Alert | None:
        document = self._store.get(ALERTS_COLLECTION, alert_id)
        return Alert.model_validate(document) if document else None

    def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[Alert]:
        """Most recent alerts, newest first."""
        documents = self._store.query(ALERTS_COLLECTION, newest_first=True, limit=limit)
        return self._to_alerts(documents)

    def unacknowledged(self) -> list[Alert]:
        """All open alerts, newest first."""
        documents = self._store.query(
            ALERTS_COLLECTION, filters={"acknowledged": False}, newest_first=True
        )
        return self._to_alerts(documents)

    def find_open(self, dedup_key: str, since: datetime) -> Alert | None:
        """Newest unacknowledged alert with this dedup key created at or after `since`."""
        documents = self._store.query(
            ALERTS_COLLECTION,
            start=since,
            filters={"acknowledged": False, "dedup_key": dedup_key},
            newest_first=True,
            limit=1,
        )
        alerts = self._to_alerts(documents)
        return alerts[0] if alerts else None

    def acknowledge(self, alert_id: str, user_id: str) -> Alert:
        """
        Mark an alert as acknowledged.

        The first acknowledgement wins. Acknowledging an alert a second
        time is a no-op that returns it with the original acknowledger
        and timestamp.

        Raises:
            ValueError: If user_id is empty or whitespace only
            AlertNotFoundError: If no alert has this id
            StoreError: If the update fails
        """
        if not user_id or not user_id.strip():
            raise ValueError("user_id cannot be empty or whitespace only")

        changes = {
            "acknowledged": True,
            "acknowledged_by": user_id,
            "acknowledged_at": self._clock().isoformat(),
        }
        try:
            applied = self._store.update_if(
                ALERTS_COLLECTION, alert_id, {"acknowledged": False}, changes
            )
        except DocumentNotFoundError:
            raise AlertNotFoundError(alert_id) from None

        alert = self.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        if applied:
            logger.info(f"Alert {alert_id} acknowledged by {user_id}")
        else:
            logger.info(
                f"Alert {alert_id} already acknowledged by {alert.acknowledged_by}; "
                f"ignoring acknowledgement from {user_id}"
            )
        return alert
