"""Tests for the Supabase store wrapper."""

import pytest

from vehicle_alerts.config import SupabaseConfig
from vehicle_alerts.db import Database
from vehicle_alerts.models import Listing, VehicleCategory


def test_from_config_requires_credentials():
    with pytest.raises(ValueError):
        Database.from_config(SupabaseConfig(url="", key=""))


def test_listing_insert_is_idempotent(db):
    listing = Listing(source="test-source", external_id="a", detail_url="https://example.test/a")

    assert db.insert_listing_if_new(listing) is True
    assert db.insert_listing_if_new(listing) is False


def test_same_id_on_another_source_is_a_new_listing(db):
    db.insert_listing_if_new(Listing(source="one", external_id="a", detail_url="u"))

    assert db.insert_listing_if_new(Listing(source="two", external_id="a", detail_url="u"))


def test_unextracted_listings_oldest_first(db):
    for external_id in ("a", "b", "c"):
        db.insert_listing_if_new(Listing(source="s", external_id=external_id, detail_url=external_id))
    db.mark_listing_extracted(1)

    assert [listing.external_id for listing in db.next_unextracted_listings("s", limit=5)] == ["b", "c"]


def test_category_is_created_once(db, supabase_client):
    first = db.get_or_create_category(VehicleCategory("Opel", "Astra", 2012))
    second = db.get_or_create_category(VehicleCategory("Opel", "Astra", 2012))

    assert first.id == second.id
    assert len(supabase_client.rows("vehicle_categories")) == 1


def test_category_insert_race_returns_stored_row(db, supabase_client, monkeypatch):
    supabase_client.add_row("vehicle_categories", {"make": "Opel", "model": "Astra", "age_years": 2012})
    real_find = db.find_category
    calls = []

    # First lookup misses as if another worker inserted right after it
    def racing_find(make, model, age_years):
        calls.append(make)
        if len(calls) == 1:
            return None
        return real_find(make, model, age_years)

    monkeypatch.setattr(db, "find_category", racing_find)

    category = db.get_or_create_category(VehicleCategory("Opel", "Astra", 2012))

    assert category.id == 1
    assert len(supabase_client.rows("vehicle_categories")) == 1


def test_work_item_can_only_be_claimed_once(db):
    db.enqueue_work(7)

    assert db.claim_work_item(7) is True
    assert db.claim_work_item(7) is False
    assert db.next_work_item() is None

    db.release_work_item(7)
    assert db.next_work_item().listing_id == 7


def test_work_is_queued_once_per_listing(db, supabase_client):
    db.enqueue_work(7)
    db.enqueue_work(7)

    assert len(supabase_client.rows("work_queue")) == 1
