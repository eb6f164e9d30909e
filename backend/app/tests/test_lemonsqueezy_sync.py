"""Tests for the manual sync endpoint and the one-shot sync worker.

WHAT: Tests GET /manual-lemonsqueezy-synchronization and app.workers.sync_worker
WHY: Both entry points must report success only when every stage finished

REFERENCES:
  - app/routers/lemonsqueezy_sync.py
  - app/workers/sync_worker.py
  - app/services/lemonsqueezy_sync_service.py
"""

from contextlib import contextmanager

import httpx

from app.models import Product, Subscription, Variant
from app.services.lemonsqueezy_sync_service import (
    LemonSqueezySyncError,
    LemonSqueezySyncResponse,
    LemonSqueezySyncStats,
)
from app.workers import sync_worker

from conftest import product_resource, subscription_resource, variant_resource


def _serve_catalog(vendor):
    vendor.on("GET", "/v1/subscriptions", 200, {"data": [subscription_resource("1")], "links": {}})
    vendor.on("GET", "/v1/variants", 200, {"data": [variant_resource("20")], "links": {}})
    vendor.on("GET", "/v1/products", 200, {"data": [product_resource("10")], "links": {}})


class TestManualSyncEndpoint:

    def test_success(self, client, vendor, test_db_session):
        _serve_catalog(vendor)

        response = client.get("/manual-lemonsqueezy-synchronization")

        assert response.status_code == 200
        assert response.json() == {"message": "success"}
        assert test_db_session.query(Subscription).count() == 1
        assert test_db_session.query(Variant).count() == 1
        assert test_db_session.query(Product).count() == 1

    def test_runs_stages_in_order(self, client, vendor):
        _serve_catalog(vendor)

        client.get("/manual-lemonsqueezy-synchronization")

        assert [r.url.path for r in vendor.requests] == [
            "/v1/subscriptions",
            "/v1/variants",
            "/v1/products",
        ]

    def test_vendor_failure_returns_message(self, client, vendor, test_db_session):
        vendor.on("GET", "/v1/subscriptions", 200, {"data": [subscription_resource("1")]})
        vendor.on(
            "GET", "/v1/variants",
            handler=lambda request: httpx.Response(500, json={"errors": [{"detail": "Server Error"}]}),
        )

        response = client.get("/manual-lemonsqueezy-synchronization")

        assert response.status_code == 400
        assert response.json()["message"].startswith("Failed to fetch variants")
        # Nothing after the failing stage was requested
        assert "/v1/products" not in [r.url.path for r in vendor.requests]
        assert test_db_session.query(Subscription).count() == 1


class TestSyncWorker:

    def test_run_sync_uses_fresh_session(self, monkeypatch, test_db_session, lemonsqueezy_client, vendor):
        _serve_catalog(vendor)

        @contextmanager
        def fake_session():
            yield test_db_session

        monkeypatch.setattr(sync_worker, "get_sync_session", fake_session)

        result = sync_worker.run_sync(client=lemonsqueezy_client)

        assert result.stats.subscriptions_created == 1
        assert result.stats.variants_created == 1
        assert result.stats.products_created == 1

    def test_main_returns_zero_on_success(self, monkeypatch):
        stats = LemonSqueezySyncStats()
        monkeypatch.setattr(sync_worker, "run_sync", lambda: LemonSqueezySyncResponse(stats=stats, message="Synced"))

        assert sync_worker.main() == 0

    def test_main_returns_nonzero_on_failure(self, monkeypatch):
        def failing_sync():
            raise LemonSqueezySyncError("subscriptions", "1", RuntimeError("boom"))

        monkeypatch.setattr(sync_worker, "run_sync", failing_sync)

        assert sync_worker.main() == 1
