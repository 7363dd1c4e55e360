"""
Price statistics for vehicle categories.

Single model-year samples are usually small, so a category's statistic is
computed over the category itself plus the same make and model one year
older and one year newer. Statistics are always recomputed from every
stored price, never updated incrementally.

Median of an even-sized sample: the mean of the two elements straddling
the middle (0-based indices n/2 - 1 and n/2), rounded half up, so
median([10, 20, 30, 40]) == 25.
"""

import logging
from typing import Optional

from .db import Database
from .models import PriceStatistic
from .rounding import round_to_int

logger = logging.getLogger(__name__)

# Below this many prices a statistic is not trustworthy enough to publish
MIN_SAMPLE_SIZE = 5


def calculate_average(prices: list[int]) -> int:
    if not prices:
        raise ValueError("Cannot average an empty sample")
    return round_to_int(sum(prices) / len(prices))


def calculate_median(prices: list[int]) -> int:
    if not prices:
        raise ValueError("Cannot take the median of an empty sample")
    ordered = sorted(prices)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return round_to_int((ordered[middle - 1] + ordered[middle]) / 2)


def format_price(price: Optional[int]) -> str:
    """12345 -> '12.345 €'"""
    if price is None:
        return "n/a"
    return f"{price:,} €".replace(",", ".")


class StatisticsAggregator:
    """
    Recomputes the PriceStatistic of a category.

    Usage:
        aggregator = StatisticsAggregator(db)
        aggregator.update(category_id)
    """

    def __init__(self, db: Database, min_sample_size: int = MIN_SAMPLE_SIZE):
        self.db = db
        self.min_sample_size = min_sample_size

    def neighbour_category_ids(self, category_id: int) -> list[int]:
        """The category plus its one-year-older and one-year-newer siblings."""
        category = self.db.get_category(category_id)
        if category is None:
            return []

        ids = [category_id]
        for age in (category.age_years - 1, category.age_years + 1):
            neighbour = self.db.find_category(category.make, category.model, age)
            if neighbour is not None:
                ids.append(neighbour.id)
        return ids

    def update(self, category_id: int) -> Optional[PriceStatistic]:
        """
        Recompute and store the statistic of one category.

        Returns:
            The stored statistic, or None if the sample was too small
        """
        logger.info(f"Updating average prices for category {category_id}")
        category_ids = self.neighbour_category_ids(category_id)
        prices = self.db.get_prices_for_categories(category_ids)

        if len(prices) < self.min_sample_size:
            logger.info(
                f"Only {len(prices)} price(s) for category {category_id}, "
                f"need {self.min_sample_size}; statistic not updated"
            )
            return None

        statistic = PriceStatistic(
            category_id=category_id,
            average=calculate_average(prices),
            median=calculate_median(prices),
        )
        self.db.upsert_price_statistic(statistic)
        logger.info(
            f"New average/median for category {category_id}: "
            f"{format_price(statistic.average)} / {format_price(statistic.median)}"
        )
        return statistic
