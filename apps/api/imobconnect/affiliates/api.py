from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from imobconnect.affiliates.schemas import (
    AffiliablePropertyRead,
    AffiliationRead,
    AffiliationRequestCreate,
    AffiliationStatusUpdate,
    MarketplacePropertyRead,
    MyAffiliationRead,
)
from imobconnect.affiliates.service import affiliation_service
from imobconnect.api.errors import http_error
from imobconnect.context import get_correlation_id
from imobconnect.core.auth import ActorUser, AuthUser, get_current_user as get_auth_user
from imobconnect.core.database import get_db

router = APIRouter(prefix="/api/affiliate", tags=["affiliates"])


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return ActorUser(user_id=auth_user.sub, role=auth_user.role, correlation_id=correlation_id)


@router.get("/marketplace", response_model=list[MarketplacePropertyRead])
def get_marketplace(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[MarketplacePropertyRead]:
    return affiliation_service.get_marketplace(db, user.user_id, page=page, limit=limit, search=search)


@router.get("/my-affiliations", response_model=list[MyAffiliationRead])
def list_my_affiliations(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[MyAffiliationRead]:
    return affiliation_service.list_my_affiliations(db, user.user_id)


@router.get("/my-properties", response_model=list[AffiliablePropertyRead])
def list_affiliable_properties(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[AffiliablePropertyRead]:
    return affiliation_service.list_affiliable_properties(db, user.user_id)


@router.post("/request", response_model=AffiliationRead, status_code=status.HTTP_201_CREATED)
def request_affiliation(
    request: Request,
    dto: AffiliationRequestCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> AffiliationRead | JSONResponse:
    try:
        return affiliation_service.request_affiliation(db, user, dto.property_id)
    except HTTPException as exc:
        return http_error(request, exc, "affiliate_request_failed")


@router.patch("/{affiliation_id}", response_model=AffiliationRead)
def update_affiliation_status(
    request: Request,
    affiliation_id: int,
    dto: AffiliationStatusUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> AffiliationRead | JSONResponse:
    try:
        return affiliation_service.update_affiliation_status(db, user, affiliation_id, dto.status)
    except HTTPException as exc:
        return http_error(request, exc, "affiliate_status_update_failed")
