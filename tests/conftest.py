"""Shared fixtures."""
from datetime import datetime, timedelta, timezone

import pytest

from processor.models import IMPORTED_EVENT_COLOR, CalendarEvent, EventSource, new_event_id


FEED_URL = "https://example.com/family.ics"


def make_event(title, source=EventSource.ICAL, start=None, **kwargs):
    """Create a CalendarEvent with sensible defaults."""
    start = start or datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
    prefix = 'ical' if source == EventSource.ICAL else source.value
    color = IMPORTED_EVENT_COLOR if source == EventSource.ICAL else '#6366f1'
    return CalendarEvent(
        id=kwargs.pop('id', new_event_id(prefix)),
        title=title,
        start_date=start,
        end_date=kwargs.pop('end', start + timedelta(hours=1)),
        color=kwargs.pop('color', color),
        source=source,
        **kwargs
    )


def vcalendar(*titles):
    """Build a feed document holding one timed event per title."""
    blocks = [
        f"BEGIN:VEVENT\nSUMMARY:{title}\nDTSTART:202403{10 + i:02d}T120000Z\nEND:VEVENT"
        for i, title in enumerate(titles)
    ]
    return '\n'.join(['BEGIN:VCALENDAR', 'VERSION:2.0', *blocks, 'END:VCALENDAR'])


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
