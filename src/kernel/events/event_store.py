"""
Event Store service for append-only audit logging.

All state mutations MUST be logged here BEFORE commit.
This is a core architectural invariant of the system.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.PREREQUISITE_ADDED,
            entity_type="lecture_prerequisite",
            entity_id=edge.id,
            user_id=current_user.id,
            payload={"lecture_id": edge.lecture_id, "prerequisite_lecture_id": edge.prerequisite_lecture_id}
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> EventLog:
        """
        Log an event to the immutable audit log.

        This MUST be called before committing any state change.

        Args:
            event_type: The type of event
            entity_type: The type of entity (lecture, lecture_prerequisite, lecture_progress)
            entity_id: The ID of the entity
            user_id: The ID of the user who triggered the event (optional for system events)
            payload: Additional event data
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            The created EventLog record
        """
        if payload:
            payload = self._serialize_payload(payload)

        event = EventLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=payload or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self.session.add(event)
        # Note: Caller should flush/commit after all operations
        return event

    async def count_events(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        event_type: Optional[EventType] = None,
        user_id: Optional[uuid.UUID] = None,
        since: Optional[datetime] = None,
    ) -> int:
        """Count events matching the given criteria."""
        query = select(func.count(EventLog.id))

        if entity_type:
            query = query.where(EventLog.entity_type == entity_type)
        if entity_id:
            query = query.where(EventLog.entity_id == entity_id)
        if event_type:
            query = query.where(EventLog.event_type == _event_value(event_type))
        if user_id:
            query = query.where(EventLog.user_id == user_id)
        if since:
            query = query.where(EventLog.created_at >= since)

        result = await self.session.execute(query)
        return result.scalar() or 0

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        result = {}
        for key, value in payload.items():
            result[key] = self._serialize_value(value)
        return result

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, dict):
            return self._serialize_payload(value)
        if isinstance(value, (list, tuple)):
            return [self._serialize_value(v) for v in value]
        if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
            return value.value
        return value


def _event_value(event_type: Any) -> str:
    return event_type.value if hasattr(event_type, "value") else event_type
