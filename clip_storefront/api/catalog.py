"""Read-only catalog endpoints backing the search, clip and success pages."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request

from clip_storefront.logging_config import get_logger
from clip_storefront.models.api_response import (
    ClipDetail,
    ClipSummary,
    ErrorResponse,
    PurchaseStatusResponse,
)
from clip_storefront.services.catalog_service import CatalogService

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["Catalog"])


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


@router.get("/clips/search", response_model=list[ClipSummary])
def search_clips(
    q: Optional[str] = Query(None, description="Performer name, or part of it"),
    service: CatalogService = Depends(get_catalog_service),
) -> list[ClipSummary]:
    return service.search(q)


@router.get(
    "/clips/{clip_id}",
    response_model=ClipDetail,
    responses={404: {"model": ErrorResponse}},
)
def get_clip(
    clip_id: str = Path(...),
    service: CatalogService = Depends(get_catalog_service),
) -> ClipDetail:
    return service.get_clip(clip_id)


@router.get(
    "/purchases/session/{session_id}",
    response_model=PurchaseStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_purchase_by_session(
    session_id: str = Path(..., description="Checkout session ID from the success redirect"),
    service: CatalogService = Depends(get_catalog_service),
) -> PurchaseStatusResponse:
    """Success page lookup; the download token appears once the webhook has completed the purchase."""
    status = service.get_purchase_status(session_id)
    logger.debug("purchase_status_lookup", status=status.status)
    return status
