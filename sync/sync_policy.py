"""Reconciliation of imported feed events with the event store."""
import logging
import time
from typing import Callable, List, Optional

from fetcher.feed_fetcher import FeedFetcher
from processor.feed_parser import FeedParser
from processor.models import CalendarEvent, EventSource, SyncResult
from storage.event_store import EventStore
from sync.subscriptions import (
    FeedSubscription,
    FeedSubscriptions,
    FeedSubscriptionError,
    validate_feed_url,
)

logger = logging.getLogger(__name__)


class SyncPolicy:
    """
    Keeps imported feed events in the event store in step with their feeds.

    Every refresh deletes all events tagged ``EventSource.ICAL`` before the
    freshly parsed events are inserted. Deletion is scoped to the origin tag,
    not to a feed URL, so refreshing one feed also removes the events of every
    other subscribed feed; ``refresh_all`` re-inserts all enabled feeds in one
    pass to compensate. One instance is meant to live for the whole
    application session since it owns the throttle timestamp.
    """

    MIN_REFRESH_INTERVAL = 30  # seconds

    def __init__(
        self,
        store: EventStore,
        subscriptions: FeedSubscriptions,
        fetcher: Optional[FeedFetcher] = None,
        parser: Optional[FeedParser] = None,
        min_interval: float = MIN_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the sync policy.

        Args:
            store: Event store receiving deletions and insertions
            subscriptions: Feed subscriptions taking part in refreshes
            fetcher: Feed fetcher (default: FeedFetcher())
            parser: Feed parser (default: FeedParser())
            min_interval: Minimum seconds between two refresh_all runs
            clock: Monotonic clock returning seconds
        """
        self.store = store
        self.subscriptions = subscriptions
        self.fetcher = fetcher or FeedFetcher()
        self.parser = parser or FeedParser()
        self.min_interval = min_interval
        self._clock = clock
        self._last_refresh: Optional[float] = None

    def reconcile(self, events: List[CalendarEvent]) -> SyncResult:
        """
        Replace every imported feed event in the store with the given events.

        Args:
            events: Freshly parsed events

        Returns:
            SyncResult with counts of deleted and added events
        """
        deleted = self._delete_imported()
        added = self._insert_events(events)

        logger.info(f"Reconcile complete: {deleted} deleted, {added} added")
        return SyncResult(added=added, deleted=deleted)

    def refresh_all(self) -> SyncResult:
        """
        Refresh every enabled subscription.

        Skipped when no subscription is enabled or when the previous attempt
        is less than min_interval seconds old. A failing feed is logged and
        recorded in the result; the remaining feeds are still refreshed.

        Returns:
            SyncResult for the whole batch
        """
        enabled = self.subscriptions.enabled()
        if not enabled:
            logger.info("No enabled feed subscriptions, skipping refresh")
            return SyncResult(skipped=True)

        now = self._clock()
        if self._last_refresh is not None:
            elapsed = now - self._last_refresh
            if elapsed < self.min_interval:
                logger.info(f"Skipping refresh - too soon ({round(elapsed)}s ago)")
                return SyncResult(skipped=True)

        self._last_refresh = now
        logger.info(f"Refreshing {len(enabled)} feed subscriptions")

        result = SyncResult(deleted=self._delete_imported())

        for subscription in enabled:
            try:
                events = self._load_feed(subscription.url)
                result.added += self._insert_events(events)
                result.feeds_refreshed += 1
                logger.info(f"Refreshed {subscription.name}: {len(events)} events")
            except Exception as e:
                error_msg = f"Failed to refresh {subscription.name}: {e}"
                logger.error(
                    error_msg,
                    extra={'feed_url': subscription.url, 'error_type': type(e).__name__}
                )
                result.errors.append(error_msg)
                result.feeds_failed += 1

        logger.info(
            f"Refresh completed: {result.added} events added, "
            f"{result.deleted} deleted, {result.feeds_failed} feeds failed"
        )
        return result

    def refresh_feed(self, url: str) -> SyncResult:
        """
        Refresh a single feed on request.

        Not throttled. Fetch and parse failures propagate to the caller.

        Args:
            url: Feed URL

        Returns:
            SyncResult of the reconciliation

        Raises:
            FeedSubscriptionError: If the URL is not a subscribed feed
            FetchError: If the feed cannot be retrieved
        """
        subscription = self.subscriptions.get(url)
        if subscription is None:
            logger.warning(f"Refresh requested for unknown feed: {url}")
            raise FeedSubscriptionError(f"Not a subscribed calendar: {url}")
        logger.info(f"Refreshing calendar: {subscription.name}")

        events = self._load_feed(subscription.url)
        result = self.reconcile(events)
        result.feeds_refreshed = 1
        return result

    def import_feed(
        self,
        url: str,
        name: Optional[str] = None,
        color: Optional[str] = None
    ) -> SyncResult:
        """
        Import a new feed and subscribe to it.

        Existing events are left in place; the parsed events are added.

        Args:
            url: Feed URL
            name: Display name (default: "Calendar <n>")
            color: Display color of the subscription

        Returns:
            SyncResult, with a warning when the feed holds no events

        Raises:
            FeedSubscriptionError: If the URL is empty or not webcal/http(s)
            FetchError: If the feed cannot be retrieved
        """
        url = validate_feed_url(url)
        logger.info(f"Starting calendar import for URL: {url}")
        events = self._load_feed(url)

        result = SyncResult(feeds_refreshed=1)
        if not events:
            warning = (
                "No events found in this calendar. The calendar may be empty "
                "or the format may not be supported."
            )
            logger.warning(f"{warning} ({url})")
            result.warnings.append(warning)

        subscription = FeedSubscription(
            url=url,
            name=(name or '').strip() or f"Calendar {len(self.subscriptions) + 1}"
        )
        if color:
            subscription.color = color
        self.subscriptions.add(subscription)

        result.added = self._insert_events(events)
        logger.info(f"Imported {subscription.name}: {result.added} events")
        return result

    def _load_feed(self, url: str) -> List[CalendarEvent]:
        text = self.fetcher.fetch(url)
        return self.parser.parse(text)

    def _delete_imported(self) -> int:
        existing_ids = self.store.query_ids_by_source(EventSource.ICAL)
        logger.info(f"Removing {len(existing_ids)} existing imported events")

        deleted = 0
        for event_id in existing_ids:
            if self.store.delete_by_id(event_id):
                deleted += 1
        return deleted

    def _insert_events(self, events: List[CalendarEvent]) -> int:
        for event in events:
            self.store.insert(event)
        return len(events)
