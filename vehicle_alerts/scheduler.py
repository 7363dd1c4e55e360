"""
Scheduler module for Vehicle Alerts.

Uses APScheduler to run the three polling loops indefinitely. Each loop
cycle returns how long to wait before the next one; its LoopRunner then
schedules the next cycle as a one-off job. A loop therefore never
overlaps with itself, waits happen in the scheduler instead of a sleeping
thread, and setting the stop event (or shutting the scheduler down)
cancels every pending cycle.

Can also be run manually via command line.
"""

import logging
import signal
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.date import DateTrigger

from .pipeline import Pipeline, build_pipeline, run_once

logger = logging.getLogger(__name__)


class PollingLoop(Protocol):
    name: str
    error_delay: float

    def run_cycle(self) -> float:
        ...


class LoopRunner:
    """
    Drives one polling loop as a chain of one-off scheduler jobs.

    Usage:
        runner = LoopRunner(scheduler, discovery, stop_event)
        runner.start()
    """

    def __init__(self, scheduler: BaseScheduler, loop: PollingLoop, stop_event: threading.Event):
        self.scheduler = scheduler
        self.loop = loop
        self.stop_event = stop_event
        self.cycles = 0

    def start(self, delay: float = 0.0) -> None:
        """Schedule the first cycle `delay` seconds from now."""
        self._schedule(delay)

    def _schedule(self, delay: float) -> None:
        if self.stop_event.is_set():
            return
        run_date = datetime.now(timezone.utc) + timedelta(seconds=max(0.0, delay))
        self.scheduler.add_job(
            self.tick,
            trigger=DateTrigger(run_date=run_date),
            name=f"{self.loop.name} cycle",
            misfire_grace_time=None,
        )

    def tick(self) -> None:
        """Run one cycle and schedule the next."""
        if self.stop_event.is_set():
            logger.info(f"{self.loop.name}: stop requested, not starting a new cycle")
            return

        try:
            delay = self.loop.run_cycle()
        except Exception:
            logger.exception(f"{self.loop.name}: cycle failed, retrying in {self.loop.error_delay}s")
            delay = self.loop.error_delay

        self.cycles += 1
        self._schedule(delay)


def create_scheduler(
    pipeline: Pipeline,
    stop_event: Optional[threading.Event] = None,
) -> tuple[BlockingScheduler, list[LoopRunner]]:
    """
    Create the scheduler with one runner per loop.

    Jobs:
    1. discovery: poll the listing page for new listings
    2. extraction: extract one listing per cycle
    3. dispatcher: evaluate one queued spec per cycle

    Returns:
        Configured BlockingScheduler and its runners (already started)
    """
    stop_event = stop_event or threading.Event()
    scheduler = BlockingScheduler(timezone="UTC")

    runners = [LoopRunner(scheduler, loop, stop_event) for loop in pipeline.loops]
    for runner in runners:
        runner.start()

    logger.info(f"Scheduler configured with {len(runners)} loops")
    return scheduler, runners


def start_scheduler(pipeline: Pipeline) -> None:
    """Run every loop until interrupted (blocking)."""
    stop_event = threading.Event()
    scheduler, _ = create_scheduler(pipeline, stop_event)

    def _handle_term(signum, frame):
        logger.info("Termination requested")
        stop_event.set()
        scheduler.shutdown(wait=False)

    signal.signal(signal.SIGTERM, _handle_term)

    logger.info("Starting Vehicle Alerts scheduler...")
    logger.info("Press Ctrl+C to stop")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        stop_event.set()
        logger.info("Scheduler stopped")
    finally:
        pipeline.close()


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """CLI entry point for the scheduler."""
    import argparse

    parser = argparse.ArgumentParser(description="Vehicle Alerts Scheduler")
    parser.add_argument(
        "--mode",
        choices=["schedule", "once", "discover", "extract", "dispatch"],
        default="schedule",
        help="Mode to run: schedule (continuous), once (one cycle of every loop), "
             "discover/extract/dispatch (one cycle of a single loop)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    pipeline = build_pipeline()

    if args.mode == "schedule":
        start_scheduler(pipeline)
        return

    single = {"discover": "discovery", "extract": "extraction", "dispatch": "dispatcher"}
    try:
        if args.mode == "once":
            logger.info("Running a single cycle of every loop...")
            result = run_once(pipeline)
        else:
            result = run_once(pipeline, [single[args.mode]])
        print(f"Run complete: {result}")
    finally:
        pipeline.close()


if __name__ == "__main__":
    main()
