"""Tests for WebhookHandler - authenticated purchase transitions."""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from clip_storefront.errors import BadRequest, InvalidSignature
from clip_storefront.models.base import ensure_utc
from clip_storefront.models.purchase import PurchaseStatus
from clip_storefront.repositories.purchase_store import PurchaseStore
from clip_storefront.services.webhook_handler import WebhookHandler, WebhookOutcome
from clip_storefront.utils.token_generator import validate_download_token


@pytest.fixture
def handler(database, gateway, config, clock):
    return WebhookHandler(database, gateway, config, clock)


@pytest.fixture
def pending_purchase(database, catalog):
    """Pending purchase as left behind by checkout."""
    with database.session() as session:
        purchase = PurchaseStore(session).add_pending(
            clip_id=catalog["full"],
            checkout_session_id="cs_test_1",
            amount_cents=500,
            currency="usd",
            max_downloads=3,
        )
        return purchase.id


def load(database, session_id="cs_test_1"):
    with database.session() as session:
        purchase = PurchaseStore(session).find_by_session(session_id)
        if purchase is not None:
            session.expunge(purchase)
        return purchase


class TestSignatureChecks:
    """Test that nothing changes without a valid signature."""

    def test_missing_signature(self, handler, database, pending_purchase, checkout_completed_event):
        body = checkout_completed_event("cs_test_1", clip_id="x")

        with pytest.raises(InvalidSignature):
            handler.handle(body, None)

        assert load(database).status == PurchaseStatus.PENDING

    def test_bad_signature(self, handler, database, pending_purchase, sign_payload, checkout_completed_event):
        body = checkout_completed_event("cs_test_1", clip_id="x")

        with pytest.raises(InvalidSignature):
            handler.handle(body, sign_payload(body, secret="whsec_wrong"))

        assert load(database).status == PurchaseStatus.PENDING

    def test_signed_but_not_json(self, handler, sign_payload):
        body = b"not json"
        with pytest.raises(BadRequest):
            handler.handle(body, sign_payload(body))


class TestCheckoutCompleted:
    """Test checkout.session.completed processing."""

    def test_completes_pending_purchase(
        self, handler, database, catalog, pending_purchase, clock, sign_payload, checkout_completed_event
    ):
        body = checkout_completed_event("cs_test_1", clip_id=catalog["full"], payment_intent="pi_42")
        before = clock.now()

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.COMPLETED

        purchase = load(database)
        assert purchase.id == pending_purchase
        assert purchase.status == PurchaseStatus.COMPLETED
        assert purchase.buyer_email == "fan@example.com"
        assert purchase.buyer_name == "Sam Fan"
        assert purchase.stripe_payment_intent_id == "pi_42"
        assert validate_download_token(purchase.download_token)
        assert purchase.download_count == 0

        expires_at = ensure_utc(purchase.download_expires_at)
        assert before + timedelta(hours=48) <= expires_at <= clock.now() + timedelta(hours=48)

    def test_expiry_follows_virtual_clock(
        self, handler, database, catalog, pending_purchase, clock, sign_payload, checkout_completed_event
    ):
        clock.advance_time(days=10)
        body = checkout_completed_event("cs_test_1", clip_id=catalog["full"])

        handler.handle(body, sign_payload(body))

        expires_at = ensure_utc(load(database).download_expires_at)
        assert expires_at - clock.now() > timedelta(hours=47)

    def test_redelivery_keeps_first_token(
        self, handler, database, catalog, pending_purchase, sign_payload, checkout_completed_event
    ):
        """Test that a redelivered event does not mint a second credential."""
        body = checkout_completed_event("cs_test_1", clip_id=catalog["full"])

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.COMPLETED
        first = load(database)

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.ALREADY_PROCESSED
        second = load(database)

        assert second.download_token == first.download_token
        assert second.download_expires_at == first.download_expires_at
        assert second.completed_at == first.completed_at
        with database.session() as session:
            assert PurchaseStore(session).count() == 1

    def test_missing_buyer_details_default_to_empty(
        self, handler, database, catalog, pending_purchase, sign_payload
    ):
        body = json.dumps(
            {
                "id": "evt_1",
                "type": "checkout.session.completed",
                "data": {"object": {"id": "cs_test_1", "metadata": {"clip_id": catalog["full"]}}},
            }
        ).encode()

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.COMPLETED
        purchase = load(database)
        assert purchase.buyer_email == ""
        assert purchase.buyer_name == ""

    def test_missing_clip_id_acknowledged(
        self, handler, database, pending_purchase, sign_payload, checkout_completed_event
    ):
        body = checkout_completed_event("cs_test_1", clip_id=None)

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.MISSING_CLIP_ID
        assert load(database).status == PurchaseStatus.PENDING

    def test_completion_for_failed_purchase_not_applied(
        self, handler, database, catalog, sign_payload, checkout_completed_event, monkeypatch
    ):
        with database.session() as session:
            PurchaseStore(session).add_pending(
                clip_id=catalog["full"],
                checkout_session_id="cs_test_1",
                amount_cents=500,
                currency="usd",
                max_downloads=3,
                payment_intent_id="pi_declined",
            )
            PurchaseStore(session).fail_pending_by_payment_intent("pi_declined")

        mock_logger = MagicMock()
        monkeypatch.setattr("clip_storefront.services.webhook_handler.logger", mock_logger)
        body = checkout_completed_event("cs_test_1", clip_id=catalog["full"])

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.ALREADY_PROCESSED
        assert load(database).status == PurchaseStatus.FAILED
        assert load(database).download_token is None
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args[0] == "completed_payment_for_failed_purchase"


class TestReconstruction:
    """Test completion of a session whose pending row was never written."""

    def test_purchase_rebuilt_from_session(
        self, handler, database, catalog, sign_payload, checkout_completed_event
    ):
        body = checkout_completed_event(
            "cs_test_lost", clip_id=catalog["priced"], amount_total=800, currency="USD"
        )

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.RECONSTRUCTED

        purchase = load(database, "cs_test_lost")
        assert purchase.status == PurchaseStatus.COMPLETED
        assert purchase.clip_id == catalog["priced"]
        assert purchase.amount_cents == 800
        assert purchase.currency == "usd"
        assert purchase.max_downloads == 3
        assert validate_download_token(purchase.download_token)

    def test_rebuilt_purchase_converges_on_redelivery(
        self, handler, database, catalog, sign_payload, checkout_completed_event
    ):
        body = checkout_completed_event("cs_test_lost", clip_id=catalog["full"])

        handler.handle(body, sign_payload(body))
        token = load(database, "cs_test_lost").download_token

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.ALREADY_PROCESSED
        assert load(database, "cs_test_lost").download_token == token

    def test_unknown_clip_not_rebuilt(self, handler, database, catalog, sign_payload, checkout_completed_event):
        body = checkout_completed_event("cs_test_lost", clip_id="no-such-clip")

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.NO_MATCHING_PURCHASE
        assert load(database, "cs_test_lost") is None


class TestPaymentFailed:
    """Test payment_intent.payment_failed processing."""

    def test_fails_pending_purchase(self, handler, database, catalog, sign_payload, payment_failed_event):
        with database.session() as session:
            PurchaseStore(session).add_pending(
                clip_id=catalog["full"],
                checkout_session_id="cs_test_1",
                amount_cents=500,
                currency="usd",
                max_downloads=3,
                payment_intent_id="pi_declined",
            )
        body = payment_failed_event("pi_declined")

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.FAILED
        purchase = load(database)
        assert purchase.status == PurchaseStatus.FAILED
        assert purchase.download_token is None

    def test_unknown_payment_intent_acknowledged(self, handler, sign_payload, payment_failed_event):
        body = payment_failed_event("pi_unknown")
        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.NO_MATCHING_PURCHASE

    def test_failure_after_completion_ignored(
        self, handler, database, catalog, pending_purchase, sign_payload, checkout_completed_event, payment_failed_event
    ):
        completed = checkout_completed_event("cs_test_1", clip_id=catalog["full"], payment_intent="pi_late")
        handler.handle(completed, sign_payload(completed))

        failed = payment_failed_event("pi_late")
        assert handler.handle(failed, sign_payload(failed)) == WebhookOutcome.NO_MATCHING_PURCHASE
        assert load(database).status == PurchaseStatus.COMPLETED


class TestOtherEvents:
    def test_unhandled_type_ignored(self, handler, sign_payload):
        body = json.dumps({"id": "evt_x", "type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}).encode()
        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.IGNORED


class TestStoreFailures:
    def test_store_error_acknowledged(
        self, handler, catalog, pending_purchase, sign_payload, checkout_completed_event, monkeypatch
    ):
        """Test that a local write failure is logged, not surfaced to the gateway."""

        def broken_update(self, **kwargs):
            raise OperationalError("UPDATE purchases", {}, Exception("database is locked"))

        monkeypatch.setattr(PurchaseStore, "complete_pending", broken_update)
        body = checkout_completed_event("cs_test_1", clip_id=catalog["full"])

        assert handler.handle(body, sign_payload(body)) == WebhookOutcome.STORE_ERROR
