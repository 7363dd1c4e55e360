"""
Extraction loop.

Each cycle takes the oldest listing of the source that has not been
extracted yet and walks it through:

    Fetching -> Parsing -> Persisting

Persisting stores the category (created on first sight) and the spec,
flips the listing to extracted, queues it for alert evaluation and
refreshes the category's price statistic. If queueing fails the listing
is flipped back so the whole listing is redone.

Failures:
- Page gone, required field missing or page not parseable: the listing
  is deleted
- Any other fetch or store failure: retried on the next cycle with a
  longer interval; after max_error_count failures in a row the listing
  is set aside until the loop runs out of other work
"""

import logging
from typing import Optional

from .config import RateSettings, DEFAULT_EXTRACTION_RATE
from .db import Database
from .models import Listing, ParsedDetail
from .outcomes import (
    ParseIncompleteError,
    ResourceGoneError,
    StageResult,
    StageStatus,
    TransientFetchError,
)
from .pacing import RateController, RetryPolicy
from .price_stats import StatisticsAggregator
from .sources.base import SourceAdapter

logger = logging.getLogger(__name__)


class Extraction:
    """
    Extracts specs for discovered listings, one per cycle.

    Usage:
        extraction = Extraction(db, AutoScoutAdapter())
        seconds = extraction.run_cycle()
    """

    name = "extraction"

    def __init__(
        self,
        db: Database,
        adapter: SourceAdapter,
        aggregator: Optional[StatisticsAggregator] = None,
        rate_settings: Optional[RateSettings] = None,
        max_error_count: int = 5,
        error_delay: float = 20.0,
    ):
        self.db = db
        self.adapter = adapter
        self.aggregator = aggregator or StatisticsAggregator(db)
        self.rate = RateController(rate_settings or DEFAULT_EXTRACTION_RATE, name=self.name)
        self.retry = RetryPolicy(max_error_count)
        self.error_delay = error_delay  # seconds

        # Listings abandoned after repeated transient failures
        self._deferred: set[int] = set()

    def find_listing(self) -> Optional[Listing]:
        """Oldest un-extracted listing that has not been set aside."""
        candidates = self.db.next_unextracted_listings(
            self.adapter.name, limit=len(self._deferred) + 1
        )
        for listing in candidates:
            if listing.id not in self._deferred:
                return listing
        return None

    def process(self, listing: Listing) -> StageResult:
        """Fetch, parse and persist one listing."""
        logger.info(f"Found new entry: {listing.external_id} ({listing.detail_url})")

        try:
            raw = self.adapter.fetch_detail(listing.detail_url)
        except (TransientFetchError, ResourceGoneError) as e:
            return StageResult.from_error(e)

        try:
            detail = self.adapter.parse_detail(raw)
        except ParseIncompleteError as e:
            return StageResult.from_error(e)
        except Exception as e:
            # Re-parsing the same page fails the same way
            logger.exception(f"Parsing listing {listing.id} failed")
            return StageResult.terminal(f"unparseable detail page: {e}")

        try:
            self.persist(listing, detail)
        except Exception as e:
            logger.error(f"Persisting listing {listing.id} failed: {e}")
            return StageResult.transient(f"persisting failed: {e}")

        return StageResult.success()

    def persist(self, listing: Listing, detail: ParsedDetail) -> None:
        category = self.db.get_or_create_category(detail.to_category())
        self.db.save_spec(detail.to_spec(listing.id, category.id))

        # Marked before queueing: a listing is never queued twice, even when
        # the dispatcher already consumed the first entry
        self.db.mark_listing_extracted(listing.id)
        try:
            self.db.enqueue_work(listing.id)
        except Exception:
            self.db.mark_listing_extracted(listing.id, extracted=False)
            raise

        try:
            self.aggregator.update(category.id)
        except Exception as e:
            # Recomputed from scratch next time this category gets a spec
            logger.error(f"Updating price statistic of category {category.id} failed: {e}")

    def run_cycle(self) -> float:
        """
        Run one extraction cycle.

        Returns:
            Seconds to wait before the next cycle
        """
        logger.debug("Querying un-extracted entries")
        listing = self.find_listing()

        if listing is None:
            if self._deferred:
                logger.info(f"Retrying {len(self._deferred)} set-aside listing(s) next cycle")
                self._deferred.clear()
            self.rate.slow_down()
            logger.info(f"No entry found to scrape, sleeping for {self.rate.interval} minutes")
            return self.rate.seconds

        result = self.process(listing)

        if result.ok:
            self.retry.reset()
            self.rate.speed_up()
            logger.info(f"Processing done, sleeping for {self.rate.interval} minutes")
            return self.rate.seconds

        if result.status == StageStatus.TERMINAL:
            logger.warning(f"Dropping listing {listing.id}: {result.reason}")
            self.db.delete_listing(listing.id)
            self.retry.reset()
            return 0.0

        self.rate.slow_down()
        if self.retry.record_failure():
            logger.error(
                f"Error count reached the limit of {self.retry.max_error_count}, "
                f"setting aside listing {listing.id}: {result.reason}"
            )
            self._deferred.add(listing.id)
            self.retry.reset()
        else:
            logger.warning(
                f"Something went wrong ({result.reason}), "
                f"retry {self.retry.error_count}/{self.retry.max_error_count} "
                f"in {self.rate.interval} minutes"
            )
        return self.rate.seconds
