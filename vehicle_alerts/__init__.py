"""
Vehicle Alerts - New listing discovery, price statistics and alerts

Watches a used-vehicle listing site, extracts every new listing's
attributes, keeps average/median prices per (make, model, year) and emails
subscribers whose alert filters match a new listing.

Modules:
- config: Configuration and environment variables
- models: Data models (dataclasses)
- db: Supabase integration for storage
- sources: Listing site adapters
- pacing: Adaptive poll intervals and retry policy
- discovery: Finds new listings
- extraction: Extracts specs for discovered listings
- price_stats: Average/median price per category
- dispatcher: Hands new specs to notifiers
- alert_matching: Matches specs against subscriber filters
- alerts: Send email alerts
- pipeline: Wiring of the loops
- scheduler: APScheduler setup and CLI
"""

__version__ = "0.1.0"

# Convenient imports
from .models import (
    Listing,
    VehicleCategory,
    VehicleSpec,
    ParsedDetail,
    PriceStatistic,
    WorkItem,
    AlertFilter,
    VehiclePayload,
)
from .outcomes import (
    StageResult,
    StageStatus,
    TransientFetchError,
    ResourceGoneError,
    ParseIncompleteError,
)
from .pacing import RateController, RetryPolicy, speed_up, slow_down
from .price_stats import StatisticsAggregator, calculate_average, calculate_median
from .alert_matching import AlertMatcher, find_matching_filters
from .discovery import Discovery
from .extraction import Extraction
from .dispatcher import Dispatcher
from .alerts import EmailNotifier, create_transport
from .pipeline import build_pipeline, run_once

__all__ = [
    # Models
    "Listing",
    "VehicleCategory",
    "VehicleSpec",
    "ParsedDetail",
    "PriceStatistic",
    "WorkItem",
    "AlertFilter",
    "VehiclePayload",
    # Outcomes
    "StageResult",
    "StageStatus",
    "TransientFetchError",
    "ResourceGoneError",
    "ParseIncompleteError",
    # Pacing
    "RateController",
    "RetryPolicy",
    "speed_up",
    "slow_down",
    # Statistics
    "StatisticsAggregator",
    "calculate_average",
    "calculate_median",
    # Alert Matching
    "AlertMatcher",
    "find_matching_filters",
    # Loops
    "Discovery",
    "Extraction",
    "Dispatcher",
    # Alerts
    "EmailNotifier",
    "create_transport",
    # Pipeline
    "build_pipeline",
    "run_once",
]
