"""Parser for iCalendar feed text."""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from processor.models import (
    IMPORTED_EVENT_COLOR,
    CalendarEvent,
    EventSource,
    FeedEvent,
    ParseReport,
    SkippedEvent,
    new_event_id,
)

logger = logging.getLogger(__name__)

BEGIN_EVENT = 'BEGIN:VEVENT'
END_EVENT = 'END:VEVENT'

_DATE_TOKEN = re.compile(r'(\d{8}T?\d{0,6}Z?)')
_DATE_TIME_TOKEN = re.compile(r'^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z?$')
_ISO_DATE_TIME = re.compile(r'(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})')


def unescape_text(value: str) -> str:
    """Undo the comma, semicolon and backslash escapes of a text value."""
    return value.replace('\\,', ',').replace('\\;', ';').replace('\\\\', '\\')


def extract_date(line: str) -> Optional[str]:
    """
    Extract the date token of a DTSTART/DTEND line.

    Args:
        line: Full property line, parameters included

    Returns:
        ``YYYY-MM-DDTHH:MM:SSZ`` for date-times, ``YYYY-MM-DD`` for dates,
        or None if the line carries no recognizable date
    """
    match = _DATE_TOKEN.search(line)
    if match:
        token = match.group(1)

        date_time = _DATE_TIME_TOKEN.match(token)
        if date_time:
            year, month, day, hour, minute, second = date_time.groups()
            return f"{year}-{month}-{day}T{hour}:{minute}:{second}Z"

        if len(token) == 8:
            return f"{token[0:4]}-{token[4:6]}-{token[6:8]}"

    iso_match = _ISO_DATE_TIME.search(line)
    if iso_match:
        return iso_match.group(1) + 'Z'

    return None


class FeedParser:
    """Single-pass parser turning VEVENT blocks into CalendarEvents."""

    DEFAULT_DURATION = timedelta(hours=1)

    def parse(self, text: str) -> List[CalendarEvent]:
        """
        Parse feed text into calendar events.

        Malformed blocks are dropped silently.

        Args:
            text: Raw feed text

        Returns:
            Events in the order their END:VEVENT lines appear
        """
        return self.parse_with_report(text).events

    def parse_with_report(self, text: str) -> ParseReport:
        """
        Parse feed text, recording why any block was dropped.

        Args:
            text: Raw feed text

        Returns:
            ParseReport with the parsed events and the skipped blocks
        """
        report = ParseReport()
        current: Optional[FeedEvent] = None

        for line_number, raw_line in enumerate(text.split('\n'), start=1):
            line = raw_line.strip()

            if line == BEGIN_EVENT:
                if current is not None:
                    self._skip(report, 'superseded', line_number, current)
                current = FeedEvent()
            elif current is None:
                continue
            elif line == END_EVENT:
                event = self._finalize(report, current, line_number)
                if event:
                    report.events.append(event)
                current = None
            else:
                self._parse_property(line, current)

        if current is not None:
            self._skip(report, 'unterminated', line_number, current)

        logger.info(
            f"Parsed {len(report.events)} events, "
            f"skipped {len(report.skipped)} blocks"
        )
        return report

    def _parse_property(self, line: str, event: FeedEvent) -> None:
        """Store a recognized property line on the accumulator."""
        if line.startswith('SUMMARY:'):
            event.summary = unescape_text(line[len('SUMMARY:'):])
        elif line.startswith('DTSTART'):
            date_str = extract_date(line)
            if date_str:
                event.start_raw = date_str
                event.all_day = 'T' not in date_str
        elif line.startswith('DTEND'):
            date_str = extract_date(line)
            if date_str:
                event.end_raw = date_str
        elif line.startswith('DESCRIPTION:'):
            event.description = unescape_text(line[len('DESCRIPTION:'):])
        elif line.startswith('LOCATION:'):
            event.location = unescape_text(line[len('LOCATION:'):])

    def _finalize(
        self,
        report: ParseReport,
        event: FeedEvent,
        line_number: int
    ) -> Optional[CalendarEvent]:
        """
        Convert a closed block into a CalendarEvent.

        Args:
            report: Report receiving skip records
            event: Accumulated block
            line_number: Line of the END:VEVENT marker

        Returns:
            CalendarEvent or None if the block is incomplete or invalid
        """
        if not event.summary:
            self._skip(report, 'missing_summary', line_number, event)
            return None

        if not event.start_raw:
            self._skip(report, 'missing_start', line_number, event)
            return None

        start_date = self._to_datetime(event.start_raw)
        if start_date is None:
            logger.warning(
                f"Invalid start date for event '{event.summary}': "
                f"{event.start_raw}"
            )
            self._skip(report, 'invalid_start', line_number, event)
            return None

        end_date = None
        if event.end_raw:
            end_date = self._to_datetime(event.end_raw)
        if end_date is None:
            end_date = start_date + self.DEFAULT_DURATION

        return CalendarEvent(
            id=new_event_id(),
            title=event.summary,
            start_date=start_date,
            end_date=end_date,
            all_day=event.all_day,
            description=event.description,
            location=event.location,
            color=IMPORTED_EVENT_COLOR,
            source=EventSource.ICAL
        )

    def _to_datetime(self, value: str) -> Optional[datetime]:
        """
        Convert an extracted date string to an aware UTC datetime.

        Args:
            value: Output of extract_date

        Returns:
            datetime or None if the value is not a valid calendar date
        """
        date_formats = [
            '%Y-%m-%dT%H:%M:%SZ',
            '%Y-%m-%d',
        ]

        for fmt in date_formats:
            try:
                return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue

        return None

    def _skip(
        self,
        report: ParseReport,
        reason: str,
        line_number: int,
        event: FeedEvent
    ) -> None:
        logger.debug(f"Skipping VEVENT ending at line {line_number}: {reason}")
        report.skipped.append(
            SkippedEvent(reason=reason, line_number=line_number, summary=event.summary)
        )


def parse_ical_data(text: str) -> List[CalendarEvent]:
    """Parse feed text with a default FeedParser."""
    return FeedParser().parse(text)
