"""Data models for calendar feed ingestion."""
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


IMPORTED_EVENT_COLOR = '#8b5cf6'
LOCAL_EVENT_COLOR = '#6366f1'

_ID_ALPHABET = string.digits + string.ascii_lowercase


class EventSource(str, Enum):
    """Origin tag of a calendar event."""
    LOCAL = 'local'
    ICAL = 'ical'
    IMPORTED = 'imported'


def new_event_id(prefix: str = 'ical') -> str:
    """
    Generate a unique event identifier.

    Combines the current time in milliseconds with nine random base36
    characters, e.g. ``ical_1710504000000_k3j9x0a2q``.

    Args:
        prefix: Identifier prefix

    Returns:
        New event ID
    """
    millis = int(time.time() * 1000)
    suffix = ''.join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{millis}_{suffix}"


@dataclass
class FeedEvent:
    """In-progress VEVENT block collected by the parser."""
    summary: Optional[str] = None
    start_raw: Optional[str] = None
    end_raw: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    all_day: bool = False


@dataclass
class CalendarEvent:
    """Calendar event as held by the event store."""
    id: str
    title: str
    start_date: datetime
    end_date: datetime
    all_day: bool = False
    description: Optional[str] = None
    location: Optional[str] = None
    color: str = LOCAL_EVENT_COLOR
    source: EventSource = EventSource.LOCAL


@dataclass
class SkippedEvent:
    """VEVENT block that did not produce a CalendarEvent."""
    reason: str
    line_number: int
    summary: Optional[str] = None


@dataclass
class ParseReport:
    """Result of one parse pass."""
    events: List[CalendarEvent] = field(default_factory=list)
    skipped: List[SkippedEvent] = field(default_factory=list)


@dataclass
class SyncResult:
    """Result of sync operation."""
    added: int = 0
    deleted: int = 0
    errors: List[str] = field(default_factory=list)
    feeds_refreshed: int = 0
    feeds_failed: int = 0
    skipped: bool = False
    warnings: List[str] = field(default_factory=list)
