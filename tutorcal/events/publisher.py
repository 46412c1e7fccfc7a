"""Event publisher - stages domain events in the notification outbox."""
from datetime import datetime
import logging
from typing import Any, Dict, Protocol

from ..models.event_outbox import EventOutbox
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.event_outbox_repository import EventOutboxRepository

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    event_type: str
    lesson_id: str

    def idempotency_key(self) -> str:
        ...

    def to_dict(self) -> Dict[str, Any]:
        ...


def _json_ready(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _json_ready(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_ready(item) for item in value]
    return value


class EventPublisher:
    """Writes domain events to the outbox inside the caller's transaction."""

    def __init__(self, outbox_repository: EventOutboxRepository):
        self.outbox_repo = outbox_repository

    def publish(self, event: Event) -> EventOutbox:
        """
        Stage an event for delivery.

        The row commits or rolls back with the lesson change that produced it;
        the notification dispatcher picks up committed rows.
        """
        payload = _json_ready(event.to_dict())
        row = self.outbox_repo.enqueue(
            event_type=event.event_type,
            aggregate_id=event.lesson_id,
            idempotency_key=event.idempotency_key(),
            payload=payload,
        )
        prometheus_metrics.inc_outbox_event(event.event_type)
        logger.debug("Staged %s for lesson %s", event.event_type, event.lesson_id)
        return row
