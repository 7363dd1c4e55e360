"""
Source adapter interface and shared HTTP fetching.

A source adapter implements four operations:
- discover_page(): Get the raw listing page
- parse_listing_page(): Extract (external_id, detail_url) pairs, oldest first
- fetch_detail(): Get the raw detail page of one listing
- parse_detail(): Extract the attribute bag of one listing

Loops depend only on this protocol. Adapters fetch through HttpFetcher,
which paces requests and turns HTTP failures into the error taxonomy
the loops act on.
"""

import logging
import time
from typing import Optional, Protocol, runtime_checkable
import requests

from ..config import SourceConfig, get_source_config
from ..models import ParsedDetail
from ..outcomes import ResourceGoneError, TransientFetchError

logger = logging.getLogger(__name__)

# Status codes meaning the listing has been removed from the site
GONE_STATUS_CODES = (404, 410)


@runtime_checkable
class SourceAdapter(Protocol):
    """Capability the discovery and extraction loops are generic over."""

    name: str

    def discover_page(self) -> str:
        ...

    def parse_listing_page(self, raw: str) -> list[tuple[str, str]]:
        ...

    def fetch_detail(self, detail_url: str) -> str:
        ...

    def parse_detail(self, raw: str) -> ParsedDetail:
        ...


class HttpFetcher:
    """
    requests session with pacing and failure classification.

    Raises:
        ResourceGoneError: the server answered 404 or 410
        TransientFetchError: any other failure
    """

    def __init__(
        self,
        config: Optional[SourceConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or get_source_config()
        self.session = session or requests.Session()

        # Set a reasonable user agent
        self.session.headers.update({
            "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) VehicleAlerts/1.0",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "hu-HU,hu;q=0.9,en;q=0.5",
        })

        self._last_request_time: float = 0

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.config.request_delay:
            time.sleep(self.config.request_delay - elapsed)
        self._last_request_time = time.time()

    def get_text(self, url: str, **kwargs) -> str:
        """
        Make a GET request and return the body.

        Args:
            url: The URL to fetch
            **kwargs: Additional arguments to pass to session.get()
        """
        self._rate_limit()

        kwargs.setdefault("timeout", self.config.request_timeout)
        try:
            response = self.session.get(url, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"Request failed for {url}: {e}")
            raise TransientFetchError(url, str(e)) from e

        if response.status_code in GONE_STATUS_CODES:
            raise ResourceGoneError(url, response.status_code)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.warning(f"Request failed for {url}: {e}")
            raise TransientFetchError(url, str(e), response.status_code) from e
        return response.text

    def close(self) -> None:
        self.session.close()
