"""Tests for PurchasePoller - bounded success page polling."""

from unittest.mock import MagicMock

import httpx
import pytest

from clip_storefront.services.purchase_poller import GIVE_UP_MESSAGE, PurchasePoller

READY = {
    "status": "completed",
    "performerName": "Jane Doe",
    "downloadToken": "a" * 64,
    "expiresAt": "2030-01-01T00:00:00Z",
    "maxDownloads": 3,
    "downloadsRemaining": 3,
    "availableVariants": ["original", "social_subtitled"],
}

PENDING = {
    "status": "pending",
    "performerName": "Jane Doe",
    "maxDownloads": 3,
    "downloadsRemaining": 3,
}


def make_poller(responses, max_attempts=10):
    """Poller whose HTTP calls are answered, in order, from ``responses``."""
    calls = []
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        status_code, body = responses[min(len(calls) - 1, len(responses) - 1)]
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status_code, json=body)

    client = httpx.Client(base_url="http://storefront.test", transport=httpx.MockTransport(handler))
    poller = PurchasePoller(
        "http://storefront.test",
        max_attempts=max_attempts,
        delay_seconds=1.0,
        client=client,
        sleep=sleeps.append,
    )
    return poller, calls, sleeps


class TestWaitForDownload:
    def test_ready_on_first_attempt(self):
        poller, calls, sleeps = make_poller([(200, READY)])

        status = poller.wait_for_download("cs_test_1")

        assert status.downloadToken == "a" * 64
        assert calls == ["/api/purchases/session/cs_test_1"]
        assert sleeps == []

    def test_ready_after_webhook_lands(self):
        """Test that 404s and pending responses are retried with the fixed delay."""
        poller, calls, sleeps = make_poller([(404, {"error": "Purchase not found"}), (200, PENDING), (200, READY)])

        status = poller.wait_for_download("cs_test_1")

        assert status.is_ready
        assert len(calls) == 3
        assert sleeps == [1.0, 1.0]

    def test_gives_up_after_max_attempts(self):
        poller, calls, sleeps = make_poller([(200, PENDING)])

        assert poller.wait_for_download("cs_test_1") is None
        assert len(calls) == 10
        assert len(sleeps) == 9

    def test_give_up_logs_refresh_message(self, monkeypatch):
        mock_logger = MagicMock()
        monkeypatch.setattr("clip_storefront.services.purchase_poller.logger", mock_logger)
        poller, _, _ = make_poller([(404, {"error": "Purchase not found"})], max_attempts=2)

        assert poller.wait_for_download("cs_test_1") is None

        mock_logger.info.assert_called_once_with("purchase_poll_gave_up", attempts=2, message=GIVE_UP_MESSAGE)

    def test_failed_payment_stops_polling(self):
        poller, calls, _ = make_poller([(200, {**PENDING, "status": "failed"})])

        status = poller.wait_for_download("cs_test_1")

        assert status.status == "failed"
        assert len(calls) == 1

    def test_transport_errors_are_retried(self):
        poller, calls, _ = make_poller(
            [(0, httpx.ConnectError("refused")), (500, {"error": "Internal server error"}), (200, READY)]
        )

        assert poller.wait_for_download("cs_test_1").is_ready
        assert len(calls) == 3


class TestFetchOnce:
    def test_bad_payload(self):
        poller, _, _ = make_poller([(200, {"unexpected": True})])
        assert poller.fetch_once("cs_test_1") is None

    def test_context_manager_closes_client(self):
        poller, _, _ = make_poller([(200, READY)])
        with poller as p:
            assert p.fetch_once("cs_test_1").is_ready

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            PurchasePoller("http://storefront.test", max_attempts=0)
