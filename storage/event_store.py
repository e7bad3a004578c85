"""Event store interface and in-memory implementation."""
import logging
from typing import Dict, List, Optional

from processor.models import CalendarEvent, EventSource

logger = logging.getLogger(__name__)


class EventStore:
    """Storage operations the sync policy relies on."""

    def insert(self, event: CalendarEvent) -> None:
        raise NotImplementedError

    def delete_by_id(self, event_id: str) -> bool:
        raise NotImplementedError

    def query_by_source(self, source: EventSource) -> List[CalendarEvent]:
        raise NotImplementedError

    def query_ids_by_source(self, source: EventSource) -> List[str]:
        """IDs of every stored event with the given origin tag."""
        return [event.id for event in self.query_by_source(source)]


class InMemoryEventStore(EventStore):
    """Event store keeping events in insertion order for the process lifetime."""

    def __init__(self, events: Optional[List[CalendarEvent]] = None):
        self._events: Dict[str, CalendarEvent] = {}
        for event in events or []:
            self.insert(event)

    def insert(self, event: CalendarEvent) -> None:
        self._events[event.id] = event

    def delete_by_id(self, event_id: str) -> bool:
        """
        Delete an event.

        Args:
            event_id: ID of the event to delete

        Returns:
            True if the event existed, False otherwise
        """
        if event_id in self._events:
            del self._events[event_id]
            return True
        logger.debug(f"Event {event_id} not found, nothing to delete")
        return False

    def query_by_source(self, source: EventSource) -> List[CalendarEvent]:
        return [event for event in self._events.values() if event.source == source]

    def all_events(self) -> List[CalendarEvent]:
        return list(self._events.values())

    def __len__(self) -> int:
        return len(self._events)
