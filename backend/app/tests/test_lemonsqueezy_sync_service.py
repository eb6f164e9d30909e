"""Unit tests for LemonSqueezy sync service critical paths."""

import asyncio
from datetime import datetime, timezone

import pytest

from app.models import Product, Subscription, Variant
from app.services import lemonsqueezy_sync_service as svc
from app.services.lemonsqueezy_client import LemonSqueezyAPIError

from conftest import product_resource, subscription_resource, variant_resource


class _FakeLemonSqueezyClient:
    def __init__(self, lists=None, fail_on=None):
        self.lists = lists or {}
        self.fail_on = fail_on
        self.requested = []

    async def list_resource(self, resource: str):
        self.requested.append(resource)
        if resource == self.fail_on:
            raise LemonSqueezyAPIError("LemonSqueezy API error 500: boom", status_code=500)
        return self.lists.get(resource, [])


class TestMappers:

    def test_map_subscription(self):
        vendor_id, values = svc.map_subscription(
            subscription_resource("7", status="on_trial", trial_ends_at="2026-11-01T00:00:00.000000Z")
        )

        assert vendor_id == "7"
        assert values["lemonsqueezy_customer_id"] == "987"
        assert values["variant_id"] == "20"
        assert values["status"] == "on_trial"
        assert values["quantity"] == 1
        assert values["metadata_"] == {}
        assert values["cancel_at_period_end"] is False
        assert values["current_period_start"] == datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc)
        assert values["current_period_end"] == datetime(2026, 11, 18, 10, 0, tzinfo=timezone.utc)
        assert values["trial_end"] == datetime(2026, 11, 1, tzinfo=timezone.utc)
        assert values["ended_at"] is None
        assert values["cancel_at"] is None
        assert values["canceled_at"] is None
        assert values["trial_start"] is None

    def test_map_subscription_defaults_missing_fields(self):
        _, values = svc.map_subscription({"id": 8, "attributes": {}})

        assert values["quantity"] == 0
        assert values["cancel_at_period_end"] is False
        assert values["lemonsqueezy_customer_id"] is None
        assert values["current_period_start"] is None

    def test_map_variant(self):
        vendor_id, values = svc.map_variant(variant_resource("20"), currency="EUR")

        assert vendor_id == "20"
        assert values["product_id"] == "10"
        assert values["active"] is True
        assert values["currency"] == "EUR"
        assert values["unit_amount"] == 999
        assert values["type"] == "subscription"
        assert values["interval"] == "month"
        assert values["interval_count"] == 1
        assert values["trial_period_days"] == 14

    def test_map_variant_one_time_without_trial(self):
        _, values = svc.map_variant(
            variant_resource("21", is_subscription=False, has_free_trial=False, status="pending")
        )

        assert values["type"] == "one-time"
        assert values["trial_period_days"] == 0
        assert values["active"] is False
        assert values["currency"] == "USD"

    def test_map_product(self):
        vendor_id, values = svc.map_product(product_resource("10", status="draft"))

        assert vendor_id == "10"
        assert values["active"] is False
        assert values["name"] == "Pro Plan"
        assert values["image"] == "https://cdn.example.com/pro.png"

    def test_parse_datetime_rejects_garbage(self):
        assert svc._parse_datetime("not-a-date") is None
        assert svc._parse_datetime(None) is None


class TestUpsert:

    def test_creates_then_updates(self, test_db_session):
        created = svc.upsert_subscription(test_db_session, subscription_resource("1", status="active"))
        updated = svc.upsert_subscription(test_db_session, subscription_resource("1", status="past_due"))

        assert created is True
        assert updated is False
        rows = test_db_session.query(Subscription).all()
        assert len(rows) == 1
        assert rows[0].status == "past_due"

    def test_recovers_from_concurrent_insert(self, test_db_session, monkeypatch):
        real_query = test_db_session.query
        state = {"first": True}

        class _MissingRow:
            def filter(self, *args, **kwargs):
                return self

            def first(self):
                return None

        def racing_query(model):
            if state["first"]:
                state["first"] = False
                # Another writer commits the same subscription between lookup and insert
                test_db_session.add(Subscription(subscription_id="1", status="on_trial"))
                test_db_session.commit()
                return _MissingRow()
            return real_query(model)

        monkeypatch.setattr(test_db_session, "query", racing_query)

        created = svc.upsert_subscription(test_db_session, subscription_resource("1", status="active"))

        assert created is False
        rows = real_query(Subscription).all()
        assert len(rows) == 1
        assert rows[0].status == "active"


class TestSyncAll:

    def test_empty_lists_perform_no_writes(self, test_db_session):
        client = _FakeLemonSqueezyClient()

        result = asyncio.run(svc.sync_lemonsqueezy_all(test_db_session, client))

        assert client.requested == ["subscriptions", "variants", "products"]
        assert result.stats.subscriptions_created == 0
        assert result.stats.variants_created == 0
        assert result.stats.products_created == 0
        assert test_db_session.query(Subscription).count() == 0
        assert test_db_session.query(Variant).count() == 0
        assert test_db_session.query(Product).count() == 0

    def test_syncs_all_resources(self, test_db_session):
        svc.upsert_subscription(test_db_session, subscription_resource("1", status="on_trial"))
        client = _FakeLemonSqueezyClient(lists={
            "subscriptions": [subscription_resource("1"), subscription_resource("2")],
            "variants": [variant_resource("20")],
            "products": [product_resource("10")],
        })

        result = asyncio.run(svc.sync_lemonsqueezy_all(test_db_session, client, currency="EUR"))

        assert result.stats.subscriptions_created == 1
        assert result.stats.subscriptions_updated == 1
        assert result.stats.variants_created == 1
        assert result.stats.products_created == 1
        assert test_db_session.query(Subscription).count() == 2
        assert test_db_session.query(Variant).one().currency == "EUR"
        assert test_db_session.query(Product).one().name == "Pro Plan"

    def test_item_failure_aborts_remaining_stages(self, test_db_session):
        broken = subscription_resource("2")
        del broken["id"]
        client = _FakeLemonSqueezyClient(lists={
            "subscriptions": [subscription_resource("1"), broken, subscription_resource("3")],
            "variants": [variant_resource("20")],
        })

        with pytest.raises(svc.LemonSqueezySyncError) as exc_info:
            asyncio.run(svc.sync_lemonsqueezy_all(test_db_session, client))

        assert exc_info.value.resource == "subscriptions"
        assert client.requested == ["subscriptions"]
        # Items before the failure stay committed
        assert [s.subscription_id for s in test_db_session.query(Subscription).all()] == ["1"]
        assert test_db_session.query(Variant).count() == 0

    def test_non_object_item_raises_sync_error(self, test_db_session):
        client = _FakeLemonSqueezyClient(lists={
            "subscriptions": [subscription_resource("1"), "not-a-resource"],
        })

        with pytest.raises(svc.LemonSqueezySyncError) as exc_info:
            asyncio.run(svc.sync_lemonsqueezy_all(test_db_session, client))

        assert exc_info.value.resource == "subscriptions"
        assert exc_info.value.vendor_id is None
        assert [s.subscription_id for s in test_db_session.query(Subscription).all()] == ["1"]

    def test_fetch_failure_raises_sync_error(self, test_db_session):
        client = _FakeLemonSqueezyClient(fail_on="variants")

        with pytest.raises(svc.LemonSqueezySyncError) as exc_info:
            asyncio.run(svc.sync_lemonsqueezy_all(test_db_session, client))

        assert exc_info.value.resource == "variants"
        assert exc_info.value.vendor_id is None
        assert "Failed to fetch variants" in str(exc_info.value)
        assert client.requested == ["subscriptions", "variants"]
