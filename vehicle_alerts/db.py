"""
Supabase database integration module.

Handles every store operation the polling loops need:
- Recording discovered listings (idempotent on source + external_id)
- Saving extracted specs and their categories
- Maintaining price statistics
- Managing the work queue between extraction and dispatch
- Reading alert filters and subscribers

Tables required (see supabase_schema.sql):
- listings: Discovered listings and their extraction flag
- vehicle_categories: (make, model, age_years) groupings
- vehicle_specs: Extracted attributes, one row per listing
- price_statistics: Average/median price per category
- work_queue: Specs awaiting alert evaluation
- alert_filters: Subscriber alert criteria
- subscribers: Alert recipients

The handle is constructed once at startup and passed to each loop.
"""

import logging
from datetime import datetime
from typing import Optional
from supabase import create_client, Client

from .config import SupabaseConfig, get_supabase_config
from .models import (
    AlertFilter,
    Listing,
    PriceStatistic,
    VehicleCategory,
    VehiclePayload,
    VehicleSpec,
    WorkItem,
)

logger = logging.getLogger(__name__)


class Database:
    """
    Supabase database client wrapper.

    Provides methods for all database operations needed by the vehicle alerts system.
    """

    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def from_config(cls, config: Optional[SupabaseConfig] = None) -> "Database":
        """Open a Supabase client from configuration."""
        config = config or get_supabase_config()
        if not config.url or not config.key:
            raise ValueError("Supabase URL and key must be set in environment variables")
        return cls(create_client(config.url, config.key))

    @property
    def client(self) -> Client:
        """Get the Supabase client."""
        return self._client

    def close(self) -> None:
        """Release the HTTP session held by the PostgREST client."""
        self._client.postgrest.session.close()
        logger.info("Database connection closed")

    # =========================================================================
    # LISTING OPERATIONS
    # =========================================================================

    def insert_listing_if_new(self, listing: Listing) -> bool:
        """
        Insert a listing unless (source, external_id) is already known.

        Returns:
            True if a row was inserted, False if it already existed
        """
        result = self._client.table("listings").upsert(
            listing.to_dict(),
            on_conflict="source,external_id",
            ignore_duplicates=True,
        ).execute()
        inserted = bool(result.data)
        if inserted:
            logger.debug(f"Inserted listing {listing.source}/{listing.external_id}")
        return inserted

    def next_unextracted_listings(self, source: str, limit: int = 1) -> list[Listing]:
        """Get the oldest listings of a source that still need extraction."""
        result = (
            self._client.table("listings")
            .select("*")
            .eq("source", source)
            .eq("extracted", False)
            .order("id")
            .limit(limit)
            .execute()
        )
        return [Listing.from_dict(row) for row in result.data]

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        """Get a listing by ID."""
        result = self._client.table("listings").select("*").eq("id", listing_id).execute()
        return Listing.from_dict(result.data[0]) if result.data else None

    def mark_listing_extracted(self, listing_id: int, extracted: bool = True) -> None:
        self._client.table("listings").update({"extracted": extracted}).eq("id", listing_id).execute()

    def delete_listing(self, listing_id: int) -> None:
        """Permanently remove a listing that can never be extracted."""
        self._client.table("listings").delete().eq("id", listing_id).execute()
        logger.info(f"Deleted listing {listing_id}")

    # =========================================================================
    # CATEGORY & SPEC OPERATIONS
    # =========================================================================

    def find_category(self, make: str, model: str, age_years: int) -> Optional[VehicleCategory]:
        result = (
            self._client.table("vehicle_categories")
            .select("*")
            .eq("make", make)
            .eq("model", model)
            .eq("age_years", age_years)
            .execute()
        )
        return VehicleCategory.from_dict(result.data[0]) if result.data else None

    def get_category(self, category_id: int) -> Optional[VehicleCategory]:
        result = self._client.table("vehicle_categories").select("*").eq("id", category_id).execute()
        return VehicleCategory.from_dict(result.data[0]) if result.data else None

    def get_or_create_category(self, category: VehicleCategory) -> VehicleCategory:
        """
        Look up a category, creating it the first time it is seen.

        Returns:
            The stored category (with its id)
        """
        existing = self.find_category(category.make, category.model, category.age_years)
        if existing:
            logger.debug(f"Category already exists: {existing}")
            return existing

        result = self._client.table("vehicle_categories").upsert(
            category.to_dict(),
            on_conflict="make,model,age_years",
            ignore_duplicates=True,
        ).execute()
        if result.data:
            created = VehicleCategory.from_dict(result.data[0])
            logger.info(f"Created category {created.make} {created.model} ({created.age_years}): {created.id}")
            return created

        # Lost an insert race, the row exists now
        stored = self.find_category(category.make, category.model, category.age_years)
        if stored is None:
            raise RuntimeError(f"Category could not be stored: {category}")
        return stored

    def save_spec(self, spec: VehicleSpec) -> None:
        """Insert the spec of a listing (re-running overwrites the same row)."""
        self._client.table("vehicle_specs").upsert(spec.to_dict(), on_conflict="listing_id").execute()
        logger.info(f"Saved spec for listing {spec.listing_id} in category {spec.category_id}")

    def get_spec(self, listing_id: int) -> Optional[VehicleSpec]:
        result = self._client.table("vehicle_specs").select("*").eq("listing_id", listing_id).execute()
        return VehicleSpec.from_dict(result.data[0]) if result.data else None

    def get_prices_for_categories(self, category_ids: list[int]) -> list[int]:
        """Get every spec price recorded for the given categories."""
        if not category_ids:
            return []
        result = (
            self._client.table("vehicle_specs")
            .select("price")
            .in_("category_id", category_ids)
            .execute()
        )
        return [row["price"] for row in result.data if row.get("price") is not None]

    # =========================================================================
    # PRICE STATISTIC OPERATIONS
    # =========================================================================

    def upsert_price_statistic(self, statistic: PriceStatistic) -> None:
        self._client.table("price_statistics").upsert(
            statistic.to_dict(), on_conflict="category_id"
        ).execute()

    def get_price_statistic(self, category_id: int) -> Optional[PriceStatistic]:
        result = self._client.table("price_statistics").select("*").eq("category_id", category_id).execute()
        return PriceStatistic.from_dict(result.data[0]) if result.data else None

    # =========================================================================
    # WORK QUEUE OPERATIONS
    # =========================================================================

    def enqueue_work(self, listing_id: int) -> None:
        """Queue a freshly extracted spec for alert evaluation (once per listing)."""
        item = WorkItem(listing_id=listing_id, enqueued_at=datetime.utcnow())
        self._client.table("work_queue").upsert(
            item.to_dict(), on_conflict="listing_id", ignore_duplicates=True
        ).execute()
        logger.info(f"Queued listing {listing_id} for alert evaluation")

    def next_work_item(self) -> Optional[WorkItem]:
        """Get the oldest unclaimed work item."""
        result = (
            self._client.table("work_queue")
            .select("*")
            .eq("in_progress", False)
            .order("enqueued_at")
            .limit(1)
            .execute()
        )
        return WorkItem.from_dict(result.data[0]) if result.data else None

    def claim_work_item(self, listing_id: int) -> bool:
        """
        Mark a work item in progress, only if nobody else has.

        Returns:
            True if this caller now owns the item
        """
        result = (
            self._client.table("work_queue")
            .update({"in_progress": True})
            .eq("listing_id", listing_id)
            .eq("in_progress", False)
            .execute()
        )
        return bool(result.data)

    def release_work_item(self, listing_id: int) -> None:
        """Return a claimed work item to the queue."""
        self._client.table("work_queue").update({"in_progress": False}).eq("listing_id", listing_id).execute()

    def delete_work_item(self, listing_id: int) -> None:
        self._client.table("work_queue").delete().eq("listing_id", listing_id).execute()
        logger.info(f"Deleted finished work (listing {listing_id}) from queue")

    def get_vehicle_payload(self, listing_id: int) -> Optional[VehiclePayload]:
        """Join spec, category and listing link into one flat payload."""
        spec = self.get_spec(listing_id)
        if spec is None:
            return None
        category = self.get_category(spec.category_id)
        if category is None:
            return None
        listing = self.get_listing(listing_id)
        return VehiclePayload.build(spec, category, listing.detail_url if listing else "")

    # =========================================================================
    # ALERT FILTER & SUBSCRIBER OPERATIONS
    # =========================================================================

    def get_alert_filters(self) -> list[AlertFilter]:
        """Get every registered alert filter."""
        result = self._client.table("alert_filters").select("*").execute()
        return [AlertFilter.from_dict(row) for row in result.data]

    def get_subscriber_email(self, subscriber_id: int) -> Optional[str]:
        result = self._client.table("subscribers").select("email").eq("id", subscriber_id).execute()
        return result.data[0]["email"] if result.data else None
