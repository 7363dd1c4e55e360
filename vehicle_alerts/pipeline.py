"""
Main Pipeline module for Vehicle Alerts.

Wires the data flow together:
1. Discovery → New listings from the source's result page
2. Extraction → Specs, categories and price statistics per listing
3. Dispatch → New specs handed to notifiers (email alerts)

The store handle and notifiers are built once here and passed into each
loop. Discovery and extraction each get their own source adapter, so no
HTTP session is shared between scheduler threads.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .alerts import EmailNotifier, create_transport
from .config import LoopConfig, get_loop_config
from .db import Database
from .discovery import Discovery
from .dispatcher import Dispatcher, Notifier
from .extraction import Extraction
from .price_stats import StatisticsAggregator
from .sources import AutoScoutAdapter, SourceAdapter

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """The three loops plus the store and the source adapters (one per fetching loop)."""
    db: Database
    adapters: list[SourceAdapter]
    discovery: Discovery
    extraction: Extraction
    dispatcher: Dispatcher

    @property
    def loops(self) -> list:
        return [self.discovery, self.extraction, self.dispatcher]

    def close(self) -> None:
        """Release the HTTP sessions and the store connection."""
        for adapter in self.adapters:
            close_adapter = getattr(adapter, "close", None)
            if close_adapter is not None:
                close_adapter()
        self.db.close()


def build_pipeline(
    db: Optional[Database] = None,
    adapter_factory: Callable[[], SourceAdapter] = AutoScoutAdapter,
    notifiers: Optional[list[Notifier]] = None,
    loop_config: Optional[LoopConfig] = None,
) -> Pipeline:
    """
    Build every loop from configuration.

    Args:
        db: Store handle (opened from SUPABASE_* settings if omitted)
        adapter_factory: Builds one source adapter per loop that fetches
            (discovery and extraction run on different scheduler threads)
        notifiers: Notifiers for the dispatcher (email if omitted)
        loop_config: Loop timings (from environment if omitted)

    Returns:
        Pipeline ready to be scheduled
    """
    db = db or Database.from_config()
    loop_config = loop_config or get_loop_config()
    if notifiers is None:
        notifiers = [EmailNotifier(db, create_transport())]

    discovery_adapter = adapter_factory()
    extraction_adapter = adapter_factory()

    discovery = Discovery(
        db,
        discovery_adapter,
        rate_settings=loop_config.discovery,
        retry_delay=loop_config.discovery_retry_delay,
        busy_threshold=loop_config.discovery_busy_threshold,
        error_delay=loop_config.loop_error_delay,
    )
    extraction = Extraction(
        db,
        extraction_adapter,
        aggregator=StatisticsAggregator(db),
        rate_settings=loop_config.extraction,
        max_error_count=loop_config.extraction_max_error_count,
        error_delay=loop_config.loop_error_delay,
    )
    dispatcher = Dispatcher(
        db,
        notifiers,
        rate_settings=loop_config.dispatch,
        error_delay=loop_config.loop_error_delay,
    )

    logger.info(
        f"Pipeline built for {discovery_adapter.name} with {len(notifiers)} notifier(s)"
    )
    return Pipeline(
        db=db,
        adapters=[discovery_adapter, extraction_adapter],
        discovery=discovery,
        extraction=extraction,
        dispatcher=dispatcher,
    )


def run_once(pipeline: Pipeline, loop_names: Optional[list[str]] = None) -> dict:
    """
    Run a single cycle of each loop (or of the named ones).

    Returns:
        Summary dict with each loop's next delay and any errors
    """
    start_time = datetime.utcnow()
    summary = {
        "started_at": start_time.isoformat(),
        "next_delay_seconds": {},
        "errors": [],
    }

    for loop in pipeline.loops:
        if loop_names and loop.name not in loop_names:
            continue
        try:
            summary["next_delay_seconds"][loop.name] = loop.run_cycle()
        except Exception as e:
            logger.error(f"{loop.name} cycle failed: {e}")
            summary["errors"].append(f"{loop.name}: {e}")

    duration = (datetime.utcnow() - start_time).total_seconds()
    summary["duration_seconds"] = duration
    logger.info(f"Single run complete in {duration:.1f}s: {summary}")
    return summary
