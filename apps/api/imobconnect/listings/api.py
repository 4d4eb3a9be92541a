from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from imobconnect.api.errors import http_error
from imobconnect.context import get_correlation_id
from imobconnect.core.auth import ActorUser, AuthUser, get_current_user as get_auth_user
from imobconnect.core.database import get_db
from imobconnect.listings.schemas import (
    DevelopmentConversionRead,
    DevelopmentCreate,
    DevelopmentRead,
    DevelopmentUpdate,
    FavoritePropertyRead,
    FavoriteToggleRead,
    PropertyCreate,
    PropertyPage,
    PropertyRead,
    PropertyUpdate,
    UnitCreate,
    UnitRead,
    UnitUpdate,
)
from imobconnect.listings.service import development_service, favorite_service, property_service

router = APIRouter(prefix="/api/properties", tags=["listings.properties"])
developments_router = APIRouter(prefix="/api/developments", tags=["listings.developments"])


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return ActorUser(user_id=auth_user.sub, role=auth_user.role, correlation_id=correlation_id)


@router.get("", response_model=PropertyPage)
def list_properties(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None),
    property_type: str | None = Query(default=None, alias="type"),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PropertyPage:
    return property_service.list_properties(
        db,
        user.user_id,
        page=page,
        limit=limit,
        search=search,
        property_type=property_type,
        status_filter=status_filter,
    )


@router.post("", response_model=PropertyRead, status_code=status.HTTP_201_CREATED)
def create_property(
    request: Request,
    dto: PropertyCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PropertyRead | JSONResponse:
    try:
        return property_service.create_property(db, user, dto)
    except HTTPException as exc:
        return http_error(request, exc, "listings_property_create_failed")


@router.get("/favorites", response_model=list[FavoritePropertyRead])
def list_favorites(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[FavoritePropertyRead]:
    return favorite_service.list_favorites(db, user.user_id)


@router.get("/{property_id}", response_model=PropertyRead)
def get_property(
    request: Request,
    property_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PropertyRead | JSONResponse:
    try:
        return property_service.get_property(db, user, property_id)
    except HTTPException as exc:
        return http_error(request, exc, "listings_property_get_failed")


@router.put("/{property_id}", response_model=PropertyRead)
def update_property(
    request: Request,
    property_id: int,
    dto: PropertyUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PropertyRead | JSONResponse:
    try:
        return property_service.update_property(db, user, property_id, dto)
    except HTTPException as exc:
        return http_error(request, exc, "listings_property_update_failed")


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_property(
    request: Request,
    property_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        property_service.delete_property(db, user, property_id)
    except HTTPException as exc:
        return http_error(request, exc, "listings_property_delete_failed")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{property_id}/convert-to-development",
    response_model=DevelopmentConversionRead,
    status_code=status.HTTP_201_CREATED,
)
def convert_to_development(
    request: Request,
    property_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DevelopmentConversionRead | JSONResponse:
    try:
        return property_service.convert_to_development(db, user, property_id)
    except HTTPException as exc:
        return http_error(request, exc, "listings_property_convert_failed")


@router.post("/{property_id}/favorite", response_model=FavoriteToggleRead)
def toggle_favorite(
    request: Request,
    property_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> FavoriteToggleRead | JSONResponse:
    try:
        return favorite_service.toggle_favorite(db, user.user_id, property_id)
    except HTTPException as exc:
        return http_error(request, exc, "listings_favorite_toggle_failed")


@router.delete("/{property_id}/favorite")
def remove_favorite(
    property_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> dict[str, str]:
    favorite_service.remove_favorite(db, user.user_id, property_id)
    return {"message": "Property removed from favorites"}


@developments_router.get("", response_model=list[DevelopmentRead])
def list_developments(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[DevelopmentRead]:
    return development_service.list_developments(db, user.user_id)


@developments_router.post("", response_model=DevelopmentRead, status_code=status.HTTP_201_CREATED)
def create_development(
    dto: DevelopmentCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DevelopmentRead:
    return development_service.create_development(db, user, dto)


@developments_router.get("/{development_id}", response_model=DevelopmentRead)
def get_development(
    request: Request,
    development_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DevelopmentRead | JSONResponse:
    try:
        return development_service.get_development(db, user.user_id, development_id)
    except HTTPException as exc:
        return http_error(request, exc, "listings_development_get_failed")


@developments_router.patch("/{development_id}", response_model=DevelopmentRead)
def update_development(
    request: Request,
    development_id: int,
    dto: DevelopmentUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DevelopmentRead | JSONResponse:
    try:
        return development_service.update_development(db, user, development_id, dto)
    except HTTPException as exc:
        return http_error(request, exc, "listings_development_update_failed")


@developments_router.delete("/{development_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_development(
    request: Request,
    development_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        development_service.delete_development(db, user, development_id)
    except HTTPException as exc:
        return http_error(request, exc, "listings_development_delete_failed")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@developments_router.get("/{development_id}/units", response_model=list[UnitRead])
def list_units(
    request: Request,
    development_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[UnitRead] | JSONResponse:
    try:
        return development_service.list_units(db, user.user_id, development_id)
    except HTTPException as exc:
        return http_error(request, exc, "listings_unit_list_failed")


@developments_router.post("/{development_id}/units", response_model=UnitRead, status_code=status.HTTP_201_CREATED)
def create_unit(
    request: Request,
    development_id: int,
    dto: UnitCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> UnitRead | JSONResponse:
    try:
        return development_service.create_unit(db, user.user_id, development_id, dto)
    except HTTPException as exc:
        return http_error(request, exc, "listings_unit_create_failed")


@developments_router.patch("/{development_id}/units/{unit_id}", response_model=UnitRead)
def update_unit(
    request: Request,
    development_id: int,
    unit_id: int,
    dto: UnitUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> UnitRead | JSONResponse:
    try:
        return development_service.update_unit(db, user.user_id, development_id, unit_id, dto)
    except HTTPException as exc:
        return http_error(request, exc, "listings_unit_update_failed")
