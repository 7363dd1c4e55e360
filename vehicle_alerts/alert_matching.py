"""
Alert Matching module for Vehicle Alerts.

Decides which subscriber alert filters a freshly extracted vehicle matches.

Rules:
- A bound the filter leaves unset never excludes a vehicle
- A bound the filter sets excludes any vehicle missing that field
- Ranges are inclusive; fuel type, transmission and make are exact;
  model is a substring check (filter "Golf" matches "Golf Variant")
- Zipcodes match by leading digits, so a listed code may be a full
  postal code or a regional prefix
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .models import AlertFilter, VehiclePayload

logger = logging.getLogger(__name__)


# (filter attribute, payload attribute, comparison)
RANGE_BOUNDS = [
    ("age_min", "age_years", "min"),
    ("age_max", "age_years", "max"),
    ("price_min", "price", "min"),
    ("price_max", "price", "max"),
    ("displacement_min", "engine_displacement", "min"),
    ("displacement_max", "engine_displacement", "max"),
    ("mileage_min", "mileage", "min"),
    ("mileage_max", "mileage", "max"),
    ("power_min", "power", "min"),
    ("power_max", "power", "max"),
]

EQUALITY_BOUNDS = [
    ("fuel_type", "fuel_type"),
    ("transmission", "transmission"),
    ("make", "make"),
]


@dataclass
class MatchResult:
    """Outcome of checking one filter against one vehicle."""
    alert_filter: AlertFilter
    payload: VehiclePayload
    is_match: bool
    # Bounds that rejected the vehicle, for debugging
    failed_bounds: list[str] = field(default_factory=list)


class AlertMatcher:
    """
    Matches vehicle payloads against alert filters.

    Usage:
        matcher = AlertMatcher()
        matching = matcher.matching_filters(payload, filters)
    """

    def match(self, payload: VehiclePayload, alert_filter: AlertFilter) -> MatchResult:
        failed = []

        if alert_filter.zipcodes is not None and not self._zipcode_matches(
            payload.postal_code, alert_filter.zipcodes
        ):
            failed.append("zipcodes")

        for bound_name, field_name, kind in RANGE_BOUNDS:
            bound = getattr(alert_filter, bound_name)
            if bound is None:
                continue
            value = getattr(payload, field_name)
            if value is None:
                failed.append(bound_name)
            elif kind == "min" and value < bound:
                failed.append(bound_name)
            elif kind == "max" and value > bound:
                failed.append(bound_name)

        for bound_name, field_name in EQUALITY_BOUNDS:
            expected = getattr(alert_filter, bound_name)
            if expected is None:
                continue
            if getattr(payload, field_name) != expected:
                failed.append(bound_name)

        if alert_filter.model is not None:
            if not payload.model or alert_filter.model not in payload.model:
                failed.append("model")

        return MatchResult(
            alert_filter=alert_filter,
            payload=payload,
            is_match=not failed,
            failed_bounds=failed,
        )

    def matches(self, payload: VehiclePayload, alert_filter: AlertFilter) -> bool:
        return self.match(payload, alert_filter).is_match

    def matching_filters(
        self,
        payload: VehiclePayload,
        filters: list[AlertFilter],
    ) -> list[AlertFilter]:
        """
        Filters (in the given order) that accept the payload.
        """
        matched = [f for f in filters if self.matches(payload, f)]
        logger.info(
            f"Listing {payload.listing_id} matched {len(matched)} of {len(filters)} alert filter(s)"
        )
        return matched

    def _zipcode_matches(self, postal_code: Optional[int], zipcodes: list[int]) -> bool:
        if postal_code is None:
            return False
        code = str(postal_code)
        return any(code.startswith(str(z)) for z in zipcodes)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def find_matching_filters(
    payload: VehiclePayload,
    filters: list[AlertFilter],
) -> list[AlertFilter]:
    """
    Convenience function to find the filters a vehicle matches.

    Args:
        payload: The flattened vehicle
        filters: Every registered alert filter

    Returns:
        The filters that accept the vehicle
    """
    return AlertMatcher().matching_filters(payload, filters)
