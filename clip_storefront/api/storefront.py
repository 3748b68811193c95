"""Purchase lifecycle endpoints.

Implements:
- POST /api/checkout
- POST /api/webhook
- GET /api/download/{token}
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Path, Query, Request
from starlette.concurrency import run_in_threadpool

from clip_storefront.errors import InvalidSignature
from clip_storefront.logging_config import get_logger
from clip_storefront.middleware import UNKNOWN_CLIENT, client_ip
from clip_storefront.models.api_request import CheckoutRequest
from clip_storefront.models.api_response import (
    CheckoutResponse,
    DownloadResponse,
    ErrorResponse,
    WebhookAck,
)
from clip_storefront.services.checkout_service import CheckoutService
from clip_storefront.services.download_service import DownloadService
from clip_storefront.services.webhook_handler import WebhookHandler

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["Storefront"])


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout_service


def get_webhook_handler(request: Request) -> WebhookHandler:
    return request.app.state.webhook_handler


def get_download_service(request: Request) -> DownloadService:
    return request.app.state.download_service


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def create_checkout(
    body: CheckoutRequest,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Start a purchase: returns the hosted checkout URL to redirect the buyer to."""
    logger.info("checkout_request", clip_id=body.clipId)
    url = service.start_checkout(body.clipId)
    return CheckoutResponse(url=url)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    responses={400: {"model": ErrorResponse}},
)
async def receive_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookAck:
    """Payment gateway event delivery.

    The signature is checked against the raw body, so the body is read as
    bytes and never parsed before verification. Any authenticated event is
    acknowledged, including ones that could not be applied locally.
    """
    payload = await request.body()
    try:
        outcome = await run_in_threadpool(handler.handle, payload, stripe_signature)
    except InvalidSignature as e:
        logger.warning(
            "webhook_signature_invalid",
            reason=e.message,
            client_host=client_ip(request),
            body_bytes=len(payload),
        )
        raise

    logger.debug("webhook_acknowledged", outcome=outcome.value)
    return WebhookAck(received=True)


@router.get(
    "/download/{token}",
    response_model=DownloadResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
    },
)
def download_clip(
    request: Request,
    token: str = Path(..., description="Download token from the purchase link"),
    variant: Optional[str] = Query(
        None, alias="type", description="original | social | social_subtitled | srt"
    ),
    service: DownloadService = Depends(get_download_service),
) -> DownloadResponse:
    """Redeem one download of a purchased clip."""
    logger.info("download_request", token=token, requested_type=variant)
    result = service.redeem(
        token,
        requested_variant=variant,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent") or UNKNOWN_CLIENT,
    )
    return DownloadResponse(
        filePath=result.file_path,
        downloadsRemaining=result.downloads_remaining,
        expiresAt=result.expires_at,
    )
