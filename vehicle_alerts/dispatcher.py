"""
Dispatch loop.

Drains the work queue one entry at a time: claims the oldest entry,
loads the flattened vehicle, removes the entry and hands the vehicle to
every registered notifier. The queue only signals that a new spec
exists; it does not track delivery, so the entry is removed whatever
the notifiers do.
"""

import logging
from typing import Optional, Protocol

from .config import RateSettings, DEFAULT_DISPATCH_RATE
from .db import Database
from .models import VehiclePayload
from .outcomes import StageResult, StageStatus
from .pacing import RateController

logger = logging.getLogger(__name__)

CLAIM_LOST = "claimed elsewhere"


class Notifier(Protocol):
    """Receives every newly extracted vehicle."""

    name: str

    def notify(self, payload: VehiclePayload) -> object:
        ...


class Dispatcher:
    """
    Consumes the work queue and fans vehicles out to notifiers.

    Usage:
        dispatcher = Dispatcher(db, [EmailNotifier(db, create_transport())])
        seconds = dispatcher.run_cycle()
    """

    name = "dispatcher"

    def __init__(
        self,
        db: Database,
        notifiers: list[Notifier],
        rate_settings: Optional[RateSettings] = None,
        error_delay: float = 20.0,
    ):
        self.db = db
        self.notifiers = list(notifiers)
        self.rate = RateController(rate_settings or DEFAULT_DISPATCH_RATE, name=self.name)
        self.error_delay = error_delay  # seconds

    def dispatch_next(self) -> StageResult:
        """
        Process the oldest unclaimed work item.

        Returns:
            IDLE if the queue is empty, SUCCESS otherwise (count is the
            number of vehicles handed to notifiers: 0 or 1)
        """
        item = self.db.next_work_item()
        if item is None:
            return StageResult.idle("queue empty")

        listing_id = item.listing_id
        if not self.db.claim_work_item(listing_id):
            logger.info(f"Work item {listing_id} was claimed elsewhere")
            return StageResult.success(count=0, reason=CLAIM_LOST)
        logger.info(f"Found work: listing {listing_id}")

        try:
            payload = self.db.get_vehicle_payload(listing_id)
        except Exception:
            self.db.release_work_item(listing_id)
            raise

        self.db.delete_work_item(listing_id)

        if payload is None:
            logger.warning(f"No spec found for queued listing {listing_id}, skipping")
            return StageResult.success(count=0, reason="spec missing")

        self.notify_all(payload)
        return StageResult.success()

    def notify_all(self, payload: VehiclePayload) -> None:
        """Invoke every notifier; one failing never stops the others."""
        for notifier in self.notifiers:
            try:
                notifier.notify(payload)
            except Exception as e:
                logger.error(
                    f"Notifier {getattr(notifier, 'name', notifier.__class__.__name__)} "
                    f"failed for listing {payload.listing_id}: {e}"
                )

    def run_cycle(self) -> float:
        """
        Run one dispatch cycle.

        Returns:
            Seconds to wait before the next cycle
        """
        result = self.dispatch_next()

        if result.reason == CLAIM_LOST:
            return 0.0

        if result.status == StageStatus.IDLE:
            self.rate.slow_down()
            logger.info(f"No work found, sleeping for {self.rate.interval} minutes")
        else:
            self.rate.speed_up()
        return self.rate.seconds
