from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from imobconnect.api.errors import http_error
from imobconnect.context import get_correlation_id
from imobconnect.core.auth import ActorUser, AuthUser, get_current_user as get_auth_user
from imobconnect.core.database import get_db
from imobconnect.sites.schemas import WebsiteRead, WebsiteSettings
from imobconnect.sites.service import WebsiteService

router = APIRouter(prefix="/api", tags=["sites"])
service = WebsiteService()


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return ActorUser(user_id=auth_user.sub, role=auth_user.role, correlation_id=correlation_id)


@router.get("/users/me/website", response_model=WebsiteRead)
def get_my_website(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> WebsiteRead:
    return service.get_website(db, user.user_id)


@router.put("/users/me/website", response_model=WebsiteRead)
def update_my_website(
    dto: WebsiteSettings,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> WebsiteRead:
    return service.update_website(db, user.user_id, dto)


@router.get("/users/{user_id}/website", response_model=WebsiteRead)
def get_user_website(
    request: Request,
    user_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> WebsiteRead | JSONResponse:
    try:
        return service.get_user_website(db, user, user_id)
    except HTTPException as exc:
        return http_error(request, exc, "sites_website_get_failed")


@router.get("/agent/{agent_id}/website", response_model=WebsiteRead)
def get_public_website(
    request: Request,
    agent_id: int,
    db: Session = Depends(get_db),
) -> WebsiteRead | JSONResponse:
    try:
        return service.get_public_website(db, agent_id)
    except HTTPException as exc:
        return http_error(request, exc, "sites_public_website_get_failed")
