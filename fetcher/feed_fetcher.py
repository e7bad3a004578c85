"""HTTP fetcher for calendar feed subscriptions."""
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when a calendar feed cannot be retrieved."""

    def __init__(
        self,
        url: str,
        message: str,
        status_code: Optional[int] = None,
        status_text: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(f"Failed to fetch calendar: {message}")
        self.url = url
        self.status_code = status_code
        self.status_text = status_text
        self.cause = cause


class FeedFetcher:
    """Fetcher returning the raw text of a calendar feed."""

    WEBCAL_PREFIX = 'webcal://'
    HTTPS_PREFIX = 'https://'
    ACCEPT = 'text/calendar, text/plain, */*'
    DEFAULT_USER_AGENT = 'FamilyCalendar/1.0'

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the feed fetcher.

        Args:
            user_agent: Value of the User-Agent request header
            timeout: HTTP request timeout in seconds (default: none)
            session: Optional requests session to issue requests with; a
                caller-supplied session is left open by close()
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self) -> None:
        """Close the HTTP session if this fetcher created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> 'FeedFetcher':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    @classmethod
    def normalize_url(cls, url: str) -> str:
        """Rewrite a webcal:// URL to https://, leaving other URLs as they are."""
        if url[:len(cls.WEBCAL_PREFIX)].lower() == cls.WEBCAL_PREFIX:
            return cls.HTTPS_PREFIX + url[len(cls.WEBCAL_PREFIX):]
        return url

    def fetch(self, url: str) -> str:
        """
        Fetch the feed text behind a subscription URL.

        Args:
            url: webcal://, http:// or https:// URL

        Returns:
            Response body decoded as UTF-8

        Raises:
            FetchError: On a non-2xx status or a transport failure
        """
        request_url = self.normalize_url(url)
        logger.info(f"Fetching calendar feed from: {request_url}")

        try:
            response = self.session.get(
                request_url,
                headers={
                    'Accept': self.ACCEPT,
                    'User-Agent': self.user_agent
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Error fetching calendar feed {request_url}: {e}")
            raise FetchError(url=request_url, message=str(e), cause=e) from e

        if not 200 <= response.status_code < 300:
            message = (
                f"HTTP error! status: {response.status_code} - {response.reason}"
            )
            logger.error(f"Error fetching calendar feed {request_url}: {message}")
            raise FetchError(
                url=request_url,
                message=message,
                status_code=response.status_code,
                status_text=response.reason
            )

        response.encoding = 'utf-8'
        data = response.text
        logger.info(f"Calendar feed received, length: {len(data)}")
        return data
