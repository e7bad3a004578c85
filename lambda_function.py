"""AWS Lambda handler for Family Calendar feed sync."""
import json
import logging
import os
import time
from typing import Dict, Any, Optional

from fetcher.feed_fetcher import FeedFetcher, FetchError
from storage.dynamodb_store import DynamoDBEventStore
from sync.subscriptions import FeedSubscriptionError, FeedSubscriptions
from sync.sync_policy import SyncPolicy


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key in ('feed_url', 'error_type', 'duration_seconds'):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


# Kept across warm invocations so the refresh throttle spans the container's life
_sync_policy: Optional[SyncPolicy] = None


def get_sync_policy() -> SyncPolicy:
    """
    Build the SyncPolicy for this container on first use.

    Returns:
        SyncPolicy configured from environment variables
    """
    global _sync_policy
    if _sync_policy is None:
        table_name = os.environ.get('TABLE_NAME', 'family-calendar-events')
        timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
        user_agent = os.environ.get('USER_AGENT', FeedFetcher.DEFAULT_USER_AGENT)
        min_interval = float(
            os.environ.get('MIN_REFRESH_INTERVAL', str(SyncPolicy.MIN_REFRESH_INTERVAL))
        )

        _sync_policy = SyncPolicy(
            store=DynamoDBEventStore(table_name=table_name),
            subscriptions=FeedSubscriptions.from_json(os.environ.get('FEEDS', '{}')),
            fetcher=FeedFetcher(user_agent=user_agent, timeout=timeout_seconds),
            min_interval=min_interval
        )
    return _sync_policy


def reset_sync_policy() -> None:
    """Drop the cached SyncPolicy so the next invocation rebuilds it."""
    global _sync_policy
    _sync_policy = None


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for calendar feed sync.

    A scheduled EventBridge rule invokes the handler every 10 minutes to
    refresh all enabled feeds. A payload carrying ``feed_url`` refreshes that
    subscribed feed and reports its fetch failure to the caller; unknown
    feeds get a 404.

    Args:
        event: EventBridge event payload or manual refresh request
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    feed_url = (event or {}).get('feed_url')
    logger.info("Lambda execution started", extra={'feed_url': feed_url})

    try:
        policy = get_sync_policy()

        if feed_url:
            try:
                sync_result = policy.refresh_feed(feed_url)
            except FeedSubscriptionError as e:
                logger.warning(
                    f"Rejected refresh request: {e}",
                    extra={'feed_url': feed_url, 'error_type': type(e).__name__}
                )
                duration = time.time() - start_time
                return {
                    'statusCode': 404,
                    'body': json.dumps({
                        'message': 'Unknown calendar feed',
                        'error': str(e),
                        'duration_seconds': round(duration, 2)
                    })
                }
            except FetchError as e:
                logger.error(
                    f"Failed to fetch calendar feed: {e}",
                    extra={'feed_url': feed_url, 'error_type': type(e).__name__}
                )
                duration = time.time() - start_time
                return {
                    'statusCode': 502,
                    'body': json.dumps({
                        'message': 'Failed to fetch calendar feed',
                        'error': str(e),
                        'status_code': e.status_code,
                        'duration_seconds': round(duration, 2)
                    })
                }
        else:
            sync_result = policy.refresh_all()

        duration = time.time() - start_time

        if sync_result.skipped:
            logger.info("Refresh skipped", extra={'duration_seconds': round(duration, 2)})
            return {
                'statusCode': 200,
                'body': json.dumps({
                    'message': 'Refresh skipped',
                    'skipped': True,
                    'duration_seconds': round(duration, 2)
                })
            }

        logger.info(
            "Lambda execution completed successfully",
            extra={'duration_seconds': round(duration, 2)}
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Sync completed successfully',
                'skipped': False,
                'statistics': {
                    'feeds_refreshed': sync_result.feeds_refreshed,
                    'feeds_failed': sync_result.feeds_failed,
                    'events_added': sync_result.added,
                    'events_deleted': sync_result.deleted,
                    'duration_seconds': round(duration, 2)
                },
                'errors': sync_result.errors,
                'warnings': sync_result.warnings
            })
        }

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Sync failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }
