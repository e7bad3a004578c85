"""Unit tests for the event stores."""
from datetime import datetime, timezone
from unittest.mock import Mock

import boto3
import pytest
from moto import mock_aws

from conftest import make_event
from processor.models import EventSource
from storage.dynamodb_store import DynamoDBEventStore
from storage.event_store import InMemoryEventStore
from sync.subscriptions import FeedSubscriptions
from sync.sync_policy import SyncPolicy


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName='test-family-calendar-events',
            KeySchema=[
                {'AttributeName': 'id', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'id', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


@pytest.fixture
def dynamodb_store(dynamodb_table):
    """Create DynamoDBEventStore instance with mock table."""
    return DynamoDBEventStore('test-family-calendar-events')


class TestInMemoryEventStore:
    """Test cases for InMemoryEventStore class."""

    def test_insert_and_query_by_source(self):
        """Test that queries only return events of the requested origin."""
        store = InMemoryEventStore()
        imported = make_event('Swim', EventSource.ICAL)
        local = make_event('Birthday', EventSource.LOCAL)
        other = make_event('School', EventSource.IMPORTED)

        for event in (imported, local, other):
            store.insert(event)

        assert store.query_by_source(EventSource.ICAL) == [imported]
        assert store.query_by_source(EventSource.LOCAL) == [local]
        assert store.query_by_source(EventSource.IMPORTED) == [other]
        assert len(store) == 3

    def test_delete_by_id(self):
        """Test deletion of existing and missing events."""
        event = make_event('Swim')
        store = InMemoryEventStore([event])

        assert store.delete_by_id(event.id) is True
        assert store.delete_by_id(event.id) is False
        assert store.all_events() == []

    def test_all_events_keeps_insertion_order(self):
        """Test that events are returned in insertion order."""
        events = [make_event(f'Event {i}') for i in range(5)]
        store = InMemoryEventStore(events)

        assert store.all_events() == events


def test_dynamodb_insert_and_query(dynamodb_store):
    """Test that inserted events come back from query_by_source."""
    event = make_event(
        'Lunch',
        EventSource.ICAL,
        description='Team lunch',
        location='Cafe'
    )
    dynamodb_store.insert(event)

    events = dynamodb_store.query_by_source(EventSource.ICAL)

    assert len(events) == 1
    retrieved = events[0]
    assert retrieved.id == event.id
    assert retrieved.title == 'Lunch'
    assert retrieved.start_date == datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
    assert retrieved.end_date == event.end_date
    assert retrieved.description == 'Team lunch'
    assert retrieved.location == 'Cafe'
    assert retrieved.color == event.color
    assert retrieved.source == EventSource.ICAL
    assert retrieved.all_day is False


def test_dynamodb_query_filters_by_source(dynamodb_store):
    """Test that other origins are excluded from the query."""
    dynamodb_store.insert(make_event('Imported', EventSource.ICAL))
    dynamodb_store.insert(make_event('Local', EventSource.LOCAL))

    imported = dynamodb_store.query_by_source(EventSource.ICAL)
    local = dynamodb_store.query_by_source(EventSource.LOCAL)

    assert [event.title for event in imported] == ['Imported']
    assert [event.title for event in local] == ['Local']


def test_dynamodb_optional_fields_omitted(dynamodb_store, dynamodb_table):
    """Test that empty optional fields are not written."""
    event = make_event('All day', all_day=True)
    dynamodb_store.insert(event)

    item = dynamodb_table.get_item(Key={'id': event.id})['Item']

    assert 'description' not in item
    assert 'location' not in item
    assert item['all_day'] is True
    assert item['source'] == 'ical'


def test_dynamodb_delete_by_id(dynamodb_store):
    """Test deletion of existing and missing items."""
    event = make_event('Swim')
    dynamodb_store.insert(event)

    assert dynamodb_store.delete_by_id(event.id) is True
    assert dynamodb_store.delete_by_id(event.id) is False
    assert dynamodb_store.query_by_source(EventSource.ICAL) == []


def test_dynamodb_query_skips_malformed_items(dynamodb_store, dynamodb_table):
    """Test that items that cannot be converted are skipped."""
    dynamodb_table.put_item(Item={'id': 'broken', 'source': 'ical'})
    dynamodb_store.insert(make_event('Valid'))

    events = dynamodb_store.query_by_source(EventSource.ICAL)

    assert [event.title for event in events] == ['Valid']


def test_dynamodb_query_ids_include_malformed_items(dynamodb_store, dynamodb_table):
    """Test that id queries cover items query_by_source cannot convert."""
    dynamodb_table.put_item(Item={'id': 'broken', 'source': 'ical'})
    valid = make_event('Valid')
    dynamodb_store.insert(valid)
    dynamodb_store.insert(make_event('Birthday', EventSource.LOCAL))

    ids = dynamodb_store.query_ids_by_source(EventSource.ICAL)

    assert sorted(ids) == sorted(['broken', valid.id])


def test_dynamodb_reconcile_removes_malformed_items(dynamodb_store, dynamodb_table):
    """Test that reconciling clears imported items that fail conversion."""
    dynamodb_table.put_item(Item={'id': 'broken', 'source': 'ical'})
    birthday = make_event('Birthday', EventSource.LOCAL)
    dynamodb_store.insert(birthday)
    policy = SyncPolicy(dynamodb_store, FeedSubscriptions(), fetcher=Mock())

    result = policy.reconcile([make_event('Fresh')])

    assert result.deleted == 1
    assert 'Item' not in dynamodb_table.get_item(Key={'id': 'broken'})
    assert 'Item' in dynamodb_table.get_item(Key={'id': birthday.id})
    assert [e.title for e in dynamodb_store.query_by_source(EventSource.ICAL)] == ['Fresh']
