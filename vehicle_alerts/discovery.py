"""
Discovery loop.

Each cycle fetches the source's newest listings page, records every
listing not seen before and adapts its polling interval: a busy page
(many new listings) shortens the interval, a quiet one lengthens it.
"""

import logging
from typing import Optional

from .config import RateSettings, DEFAULT_DISCOVERY_RATE
from .db import Database
from .models import Listing
from .outcomes import ResourceGoneError, StageResult, StageStatus, TransientFetchError
from .pacing import RateController
from .sources.base import SourceAdapter

logger = logging.getLogger(__name__)


class Discovery:
    """
    Polls one source for new listings.

    Usage:
        discovery = Discovery(db, AutoScoutAdapter())
        seconds = discovery.run_cycle()
    """

    name = "discovery"

    def __init__(
        self,
        db: Database,
        adapter: SourceAdapter,
        rate_settings: Optional[RateSettings] = None,
        retry_delay: float = 3.0,
        busy_threshold: int = 5,
        error_delay: float = 20.0,
    ):
        self.db = db
        self.adapter = adapter
        self.rate = RateController(rate_settings or DEFAULT_DISCOVERY_RATE, name=self.name)
        self.retry_delay = retry_delay  # minutes
        self.busy_threshold = busy_threshold
        self.error_delay = error_delay  # seconds

    def discover(self) -> StageResult:
        """
        Fetch the listing page and store new listings.

        Returns:
            SUCCESS with the number of inserted listings, or TRANSIENT
            if the page could not be fetched
        """
        try:
            raw = self.adapter.discover_page()
        except (TransientFetchError, ResourceGoneError) as e:
            return StageResult.transient(str(e))

        pairs = self.adapter.parse_listing_page(raw)
        inserted = self.save_listings(pairs)
        return StageResult.success(count=inserted)

    def save_listings(self, pairs: list[tuple[str, str]]) -> int:
        """Insert listings whose external id is new; returns how many were inserted."""
        inserted = 0
        for external_id, detail_url in pairs:
            listing = Listing(
                source=self.adapter.name,
                external_id=external_id,
                detail_url=detail_url,
            )
            if self.db.insert_listing_if_new(listing):
                inserted += 1

        logger.info(f"Saved {inserted} new of {len(pairs)} listed entries into DB")
        return inserted

    def run_cycle(self) -> float:
        """
        Run one discovery cycle.

        Returns:
            Seconds to wait before the next cycle
        """
        result = self.discover()

        if result.status == StageStatus.TRANSIENT:
            logger.warning(
                f"Listing page unavailable ({result.reason}), retry in {self.retry_delay} minutes"
            )
            return self.retry_delay * 60

        if result.count > self.busy_threshold:
            self.rate.speed_up()
        else:
            self.rate.slow_down()
        logger.info(f"Sleeping for {self.rate.interval} minutes")
        return self.rate.seconds
