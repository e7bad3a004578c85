"""Calendar feed subscription settings."""
import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
from urllib.parse import urlsplit

from processor.models import LOCAL_EVENT_COLOR

logger = logging.getLogger(__name__)

FEED_SCHEMES = ('webcal', 'http', 'https')


class FeedSubscriptionError(ValueError):
    """Raised for a feed URL that is invalid or not subscribed."""


def validate_feed_url(url: str) -> str:
    """
    Check a user-supplied feed URL.

    Args:
        url: URL as entered

    Returns:
        The URL stripped of surrounding whitespace

    Raises:
        FeedSubscriptionError: If the URL is empty, has no host, or uses a
            scheme other than webcal, http or https
    """
    url = (url or '').strip()
    if not url:
        raise FeedSubscriptionError("Please enter a calendar URL")

    parts = urlsplit(url)
    if parts.scheme.lower() not in FEED_SCHEMES or not parts.netloc:
        raise FeedSubscriptionError(
            f"Invalid calendar URL {url!r}: use webcal://, http:// or https://"
        )
    return url


@dataclass
class FeedSubscription:
    """A subscribed calendar feed."""
    url: str
    name: str
    color: str = LOCAL_EVENT_COLOR
    enabled: bool = True


class FeedSubscriptions:
    """Ordered registry of feed subscriptions keyed by URL."""

    def __init__(self, subscriptions: Optional[List[FeedSubscription]] = None):
        self._subscriptions: Dict[str, FeedSubscription] = {}
        for subscription in subscriptions or []:
            self.add(subscription)

    @classmethod
    def from_json(cls, text: str) -> 'FeedSubscriptions':
        """
        Load subscriptions from JSON.

        Accepts a mapping of URL to ``{"name", "color", "enabled"}`` or a list
        of objects that carry their own ``url``.

        Args:
            text: JSON document

        Returns:
            FeedSubscriptions registry

        Raises:
            ValueError: If the document is not valid JSON or has the wrong shape
        """
        data = json.loads(text) if text and text.strip() else {}

        if isinstance(data, dict):
            entries = [(url, settings) for url, settings in data.items()]
        elif isinstance(data, list):
            entries = [(None, entry) for entry in data]
        else:
            raise ValueError("Feed subscriptions must be a JSON object or list")

        subscriptions = []
        for index, (url, entry) in enumerate(entries):
            try:
                subscriptions.append(FeedSubscription(
                    url=url or entry['url'],
                    name=entry.get('name') or f"Calendar {index + 1}",
                    color=entry.get('color', LOCAL_EVENT_COLOR),
                    enabled=bool(entry.get('enabled', True))
                ))
            except (KeyError, TypeError, AttributeError) as e:
                raise ValueError(f"Invalid feed subscription entry {index}: {e}") from e

        logger.info(f"Loaded {len(subscriptions)} feed subscriptions")
        return cls(subscriptions)

    def to_json(self) -> str:
        return json.dumps({
            sub.url: {'name': sub.name, 'color': sub.color, 'enabled': sub.enabled}
            for sub in self._subscriptions.values()
        })

    def add(self, subscription: FeedSubscription) -> FeedSubscription:
        """Add a subscription, replacing any existing one with the same URL."""
        self._subscriptions[subscription.url] = subscription
        return subscription

    def remove(self, url: str) -> bool:
        if url in self._subscriptions:
            del self._subscriptions[url]
            return True
        return False

    def get(self, url: str) -> Optional[FeedSubscription]:
        return self._subscriptions.get(url)

    def set_enabled(self, url: str, enabled: bool) -> bool:
        subscription = self._subscriptions.get(url)
        if subscription is None:
            return False
        subscription.enabled = enabled
        return True

    def enabled(self) -> List[FeedSubscription]:
        return [sub for sub in self._subscriptions.values() if sub.enabled]

    def __iter__(self) -> Iterator[FeedSubscription]:
        return iter(list(self._subscriptions.values()))

    def __len__(self) -> int:
        return len(self._subscriptions)
