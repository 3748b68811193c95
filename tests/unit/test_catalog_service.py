"""Tests for CatalogService - search, clip page and success page lookups."""

from datetime import datetime, timedelta, timezone

import pytest

from clip_storefront.errors import NotFound
from clip_storefront.repositories.purchase_store import PurchaseStore
from clip_storefront.services.catalog_service import CatalogService
from clip_storefront.utils.token_generator import generate_download_token


@pytest.fixture
def service(database, config):
    return CatalogService(database, config)


class TestSearch:
    def test_results_newest_first(self, service, catalog):
        results = service.search("Jane")

        assert [clip.id for clip in results] == [catalog["full"], catalog["priced"]]
        first = results[0]
        assert first.showDate == "2025-01-10"
        assert first.venueName == "The Laugh Cellar"
        assert first.duration == "5:12"
        assert first.price == "$5.00"
        assert results[1].price == "$8.00"

    def test_empty_query(self, service, catalog):
        assert service.search("") == []
        assert service.search(None) == []

    def test_unavailable_clips_still_listed(self, service, catalog):
        results = service.search("obrien")
        assert len(results) == 1
        assert results[0].isAvailable is False


class TestClipDetail:
    def test_clip_detail(self, service, catalog):
        detail = service.get_clip(catalog["full"])

        assert detail.performerName == "Jane Doe"
        assert detail.venueCity == "Austin"
        assert detail.venueState == "TX"
        assert detail.priceCents == 500
        assert detail.availableVariants == ["original", "social", "social_subtitled"]
        assert detail.previewPath == "previews/jane-doe-set1.mp4"

    def test_unknown_duration(self, service, catalog):
        assert service.get_clip(catalog["no_files"]).duration == "--:--"

    def test_unknown_clip(self, service, catalog):
        with pytest.raises(NotFound):
            service.get_clip("missing")


class TestPurchaseStatus:
    """Test the success page lookup."""

    @pytest.fixture
    def pending(self, database, catalog):
        with database.session() as session:
            PurchaseStore(session).add_pending(
                clip_id=catalog["full"],
                checkout_session_id="cs_test_1",
                amount_cents=500,
                currency="usd",
                max_downloads=3,
            )

    def test_pending_hides_token(self, service, pending):
        status = service.get_purchase_status("cs_test_1")

        assert status.status == "pending"
        assert status.downloadToken is None
        assert status.expiresAt is None
        assert status.availableVariants == []
        assert not status.is_ready

    def test_completed_reveals_token(self, service, database, pending):
        token = generate_download_token()
        expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        with database.session() as session:
            PurchaseStore(session).complete_pending(
                checkout_session_id="cs_test_1",
                buyer_email="fan@example.com",
                buyer_name="Sam Fan",
                payment_intent_id="pi_1",
                download_token=token,
                download_expires_at=expires_at,
                completed_at=expires_at - timedelta(hours=48),
            )

        status = service.get_purchase_status("cs_test_1")

        assert status.is_ready
        assert status.downloadToken == token
        assert status.expiresAt == expires_at
        assert status.downloadsRemaining == 3
        assert status.performerName == "Jane Doe"
        assert "social_subtitled" in status.availableVariants

    def test_unknown_session(self, service, catalog):
        with pytest.raises(NotFound):
            service.get_purchase_status("cs_unknown")
