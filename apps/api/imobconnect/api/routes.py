from fastapi import APIRouter, HTTPException, status
from fastapi.responses import Response

from imobconnect.accounts.api import router as accounts_router
from imobconnect.affiliates.api import router as affiliates_router
from imobconnect.core.config import get_settings
from imobconnect.crm.api import leads_router, router as crm_router
from imobconnect.documents.api import router as documents_router
from imobconnect.listings.api import developments_router, router as properties_router
from imobconnect.metrics import render_metrics
from imobconnect.sites.api import router as sites_router

router = APIRouter()
router.include_router(crm_router)
router.include_router(leads_router)
router.include_router(affiliates_router)
router.include_router(properties_router)
router.include_router(developments_router)
router.include_router(documents_router)
router.include_router(sites_router)
router.include_router(accounts_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics() -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
