# tutorcal/repositories/event_outbox_repository.py
"""Repository for the notification outbox."""

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.event_outbox import EventOutbox, EventOutboxStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EventOutboxRepository(BaseRepository[EventOutbox]):
    def __init__(self, db: Session):
        super().__init__(db, EventOutbox)

    def enqueue(
        self,
        *,
        event_type: str,
        aggregate_id: str,
        idempotency_key: str,
        payload: Dict[str, Any],
    ) -> EventOutbox:
        """
        Stage an event inside the caller's transaction.

        A second enqueue with the same idempotency key returns the existing row.
        """
        existing = (
            self.db.query(EventOutbox).filter(EventOutbox.idempotency_key == idempotency_key).first()
        )
        if existing is not None:
            return existing
        return self.create(
            event_type=event_type,
            aggregate_id=aggregate_id,
            idempotency_key=idempotency_key,
            payload=payload,
            status=EventOutboxStatus.PENDING.value,
        )

    def list_pending(self, limit: int = 100) -> List[EventOutbox]:
        try:
            return list(
                self.db.query(EventOutbox)
                .filter(EventOutbox.status == EventOutboxStatus.PENDING.value)
                .order_by(EventOutbox.created_at, EventOutbox.id)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing pending outbox events: {str(e)}")
            raise RepositoryException(f"Failed to list outbox events: {str(e)}") from e

    def list_for_aggregate(self, aggregate_id: str) -> List[EventOutbox]:
        return self.find_by(aggregate_id=aggregate_id)
