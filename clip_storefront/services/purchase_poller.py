"""Purchase Poller - client-side wait for the webhook to complete a purchase.

After the hosted checkout redirects back, the webhook may not have landed
yet. The success page polls the session lookup a fixed number of times with
a fixed delay, then gives up and asks the buyer to refresh. This is UX only;
nothing in the purchase lifecycle depends on it.
"""

import time
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from clip_storefront.logging_config import get_logger
from clip_storefront.models.api_response import PurchaseStatusResponse

logger = get_logger(__name__)

GIVE_UP_MESSAGE = "Purchase is being processed. Please refresh in a moment."


class PurchasePoller:
    """Bounded poll of GET /api/purchases/session/{session_id}."""

    def __init__(
        self,
        base_url: str,
        max_attempts: int = 10,
        delay_seconds: float = 1.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._client = client if client is not None else httpx.Client(base_url=base_url, timeout=5.0)
        self._max_attempts = max_attempts
        self._delay_seconds = delay_seconds
        self._sleep = sleep

    def fetch_once(self, session_id: str) -> Optional[PurchaseStatusResponse]:
        """One lookup. None when the purchase is unknown or the request failed."""
        try:
            response = self._client.get(f"/api/purchases/session/{session_id}")
        except httpx.HTTPError as e:
            logger.warning("purchase_poll_request_failed", error=str(e), error_type=type(e).__name__)
            return None

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.warning("purchase_poll_unexpected_status", status_code=response.status_code)
            return None

        try:
            return PurchaseStatusResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning("purchase_poll_bad_payload", error=str(e))
            return None

    def wait_for_download(self, session_id: str) -> Optional[PurchaseStatusResponse]:
        """Poll until the purchase is completed or the attempt budget runs out.

        Args:
            session_id: Checkout session ID from the success redirect

        Returns:
            Completed purchase status, or None if still processing after
            max_attempts (show GIVE_UP_MESSAGE)
        """
        for attempt in range(1, self._max_attempts + 1):
            status = self.fetch_once(session_id)
            if status is not None and status.is_ready:
                logger.info("purchase_poll_ready", attempts=attempt)
                return status

            if status is not None and status.status == "failed":
                logger.info("purchase_poll_failed_payment", attempts=attempt)
                return status

            if attempt < self._max_attempts:
                self._sleep(self._delay_seconds)

        logger.info("purchase_poll_gave_up", attempts=self._max_attempts, message=GIVE_UP_MESSAGE)
        return None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PurchasePoller":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
