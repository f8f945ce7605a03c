"""
Metric and Decision Record Stores

Append-only repositories over the generic document store:
- MetricRecordStore: one record per completed AI call
- DecisionRecordStore: human/processing decisions about AI suggestions

Telemetry is best-effort and side-channel. Every write path catches and logs
its own failures and returns None instead of raising, so losing a metric can
never fail the user-facing AI call that produced it. Read paths do raise;
the aggregator and analyzer decide how to degrade.
"""

import logging
from datetime import datetime
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from usage_monitor.metrics.cost import estimate_call_cost
from usage_monitor.registry.services import AIService, ServiceRegistry, get_service_registry
from usage_monitor.schemas.metrics import (
    AIOperation,
    DecisionRecord,
    DecisionStatus,
    MetricRecord,
    utc_now,
)
from usage_monitor.storage.base import DocumentStore

logger = logging.getLogger(__name__)

METRICS_COLLECTION = "ai_metrics"
DECISIONS_COLLECTION = "ai_suggestions"

RecordT = TypeVar("RecordT", bound=BaseModel)


def _validate_documents(
    documents: list[dict[str, Any]], model: type[RecordT], collection: str
) -> list[RecordT]:
    """Validate stored documents, skipping (and logging) malformed ones."""
    records = []
    for document in documents:
        try:
            records.append(model.model_validate(document))
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed document {document.get('id')} in {collection}: "
                f"{e.error_count()} validation error(s)"
            )
    return records


class MetricRecordStore:
    """
    Append-only log of AI call outcomes.

    Example:
        records = MetricRecordStore(InMemoryDocumentStore())
        records.record_api_call(
            AIService.GROQ,
            AIOperation.CLASSIFICATION,
            success=True,
            response_time_ms=231.5,
            confidence=0.87,
        )
    """

    def __init__(
        self,
        store: DocumentStore,
        registry: ServiceRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the record store.

        Args:
            store: Document store client to persist records in
            registry: Service registry used for cost estimation.
                      If None, uses the global registry.
            clock: Source of the current time (injectable for tests)
        """
        self._store = store
        self._registry = registry or get_service_registry()
        self._clock = clock

    def append(self, record: MetricRecord) -> str | None:
        """
        Persist a record.

        Never raises: store failures are logged and swallowed.

        Returns:
            The assigned record id, or None if the write failed
        """
        try:
            document = record.model_dump(mode="json", exclude={"id"})
            return self._store.append(METRICS_COLLECTION, document)
        except Exception:
            logger.exception(
                f"Error recording metric for {record.service.value}/{record.operation.value}"
            )
            return None

    def record_api_call(
        self,
        service: AIService | str,
        operation: AIOperation | str,
        success: bool,
        response_time_ms: float,
        *,
        confidence: float | None = None,
        tokens_used: int | None = None,
        error: str | None = None,
        suggestion_id: str | None = None,
        user_id: str | None = None,
    ) -> str | None:
        """
        Record the outcome of one AI call.

        The estimated cost is computed here, at write time, from the
        service pricing. Malformed input (unknown service, negative
        latency, confidence outside [0, 1]) is logged and dropped.

        Returns:
            The assigned record id, or None if the metric was dropped
        """
        try:
            record = MetricRecord(
                timestamp=self._clock(),
                service=service,
                operation=operation,
                success=success,
                response_time_ms=response_time_ms,
                error=error[:500] if error else None,
                tokens_used=tokens_used,
                estimated_cost=estimate_call_cost(service, tokens_used or 0, self._registry),
                confidence=confidence,
                suggestion_id=suggestion_id,
                user_id=user_id,
            )
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Dropping malformed metric for {service}/{operation}: {e}")
            return None

        return self.append(record)

    def query(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        service: AIService | None = None,
        operation: AIOperation | None = None,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[MetricRecord]:
        """
        Fetch records with start <= timestamp < end, ordered by timestamp.

        Raises:
            StoreError: If the backing store fails
        """
        filters: dict[str, Any] = {}
        if service is not None:
            filters["service"] = AIService(service).value
        if operation is not None:
            filters["operation"] = AIOperation(operation).value

        documents = self._store.query(
            METRICS_COLLECTION,
            start=start,
            end=end,
            filters=filters,
            newest_first=newest_first,
            limit=limit,
        )
        return _validate_documents(documents, MetricRecord, METRICS_COLLECTION)


class DecisionRecordStore:
    """
    Typed access to the suggestion decision stream.

    The stream is owned by the suggestion-review workflow; this class is
    the shared writer/reader so both sides agree on DecisionStatus values.
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    def record_decision(
        self,
        suggestion_id: str,
        status: DecisionStatus | str,
        user_id: str | None = None,
    ) -> str | None:
        """
        Record a decision. Never raises.

        Returns:
            The assigned record id, or None if the write failed
        """
        try:
            record = DecisionRecord(
                timestamp=self._clock(),
                suggestion_id=suggestion_id,
                status=status,
                user_id=user_id,
            )
        except (ValidationError, ValueError) as e:
            logger.warning(f"Dropping malformed decision for {suggestion_id}: {e}")
            return None

        try:
            return self._store.append(
                DECISIONS_COLLECTION, record.model_dump(mode="json", exclude={"id"})
            )
        except Exception:
            logger.exception(f"Error recording decision for {suggestion_id}")
            return None

    def list_decisions(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[DecisionRecord]:
        """
        Fetch decisions ordered by timestamp.

        Documents with an unknown status are skipped and logged.

        Raises:
            StoreError: If the backing store fails
        """
        documents = self._store.query(DECISIONS_COLLECTION, start=start, end=end, limit=limit)
        return _validate_documents(documents, DecisionRecord, DECISIONS_COLLECTION)
