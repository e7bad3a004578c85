"""DynamoDB-backed event store."""
import logging
from datetime import datetime
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from processor.models import CalendarEvent, EventSource
from storage.event_store import EventStore

logger = logging.getLogger(__name__)


class DynamoDBEventStore(EventStore):
    """Event store persisting CalendarEvents in a DynamoDB table keyed by id."""

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBEventStore for table: {table_name}")

    def insert(self, event: CalendarEvent) -> None:
        try:
            self.table.put_item(Item=self._event_to_item(event))
        except ClientError as e:
            logger.error(f"Error writing event {event.id}: {e}")
            raise

    def delete_by_id(self, event_id: str) -> bool:
        """
        Delete an event by id.

        Args:
            event_id: ID of the event to delete

        Returns:
            True if an item was removed, False if none existed
        """
        try:
            response = self.table.delete_item(
                Key={'id': event_id},
                ReturnValues='ALL_OLD'
            )
        except ClientError as e:
            logger.error(f"Error deleting event {event_id}: {e}")
            raise
        return 'Attributes' in response

    def query_by_source(self, source: EventSource) -> List[CalendarEvent]:
        """
        Retrieve all events with the given origin tag using a filtered Scan.

        Args:
            source: Origin tag to match

        Returns:
            List of CalendarEvent objects
        """
        items = self._scan_source(source)

        events = []
        for item in items:
            event = self._item_to_event(item)
            if event:
                events.append(event)

        logger.info(f"Retrieved {len(events)} '{source.value}' events from DynamoDB")
        return events

    def query_ids_by_source(self, source: EventSource) -> List[str]:
        """
        Retrieve the ids of all items with the given origin tag.

        Includes items that query_by_source cannot convert, so they can
        still be deleted.

        Args:
            source: Origin tag to match

        Returns:
            List of event IDs
        """
        items = self._scan_source(source)
        return [item['id'] for item in items]

    def _scan_source(self, source: EventSource) -> List[dict]:
        """
        Scan the table for items with the given origin tag.

        Args:
            source: Origin tag to match

        Returns:
            List of DynamoDB item dictionaries
        """
        logger.info(f"Scanning DynamoDB table for '{source.value}' events")
        scan_kwargs = {'FilterExpression': Attr('source').eq(source.value)}

        try:
            response = self.table.scan(**scan_kwargs)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **scan_kwargs
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        return items

    def _item_to_event(self, item: dict) -> Optional[CalendarEvent]:
        """
        Convert DynamoDB item to CalendarEvent object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            CalendarEvent object or None if conversion fails
        """
        try:
            return CalendarEvent(
                id=item['id'],
                title=item['title'],
                start_date=datetime.fromisoformat(item['start_date']),
                end_date=datetime.fromisoformat(item['end_date']),
                all_day=bool(item.get('all_day', False)),
                description=item.get('description'),
                location=item.get('location'),
                color=item['color'],
                source=EventSource(item['source'])
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to CalendarEvent: {e}")
            return None

    def _event_to_item(self, event: CalendarEvent) -> dict:
        """
        Convert CalendarEvent object to DynamoDB item.

        Args:
            event: CalendarEvent object

        Returns:
            DynamoDB item dictionary
        """
        item = {
            'id': event.id,
            'title': event.title,
            'start_date': event.start_date.isoformat(),
            'end_date': event.end_date.isoformat(),
            'all_day': event.all_day,
            'color': event.color,
            'source': event.source.value
        }

        # Add optional fields if present
        if event.description:
            item['description'] = event.description
        if event.location:
            item['location'] = event.location

        return item
