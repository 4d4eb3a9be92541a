from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from imobconnect.api.errors import http_error
from imobconnect.context import get_correlation_id
from imobconnect.core.auth import ActorUser, AuthUser, get_current_user as get_auth_user
from imobconnect.core.database import get_db
from imobconnect.crm.schemas import (
    BoardBucket,
    ClientRead,
    LeadCreate,
    LeadPage,
    LeadRead,
    LeadStageUpdate,
    PublicLeadCreate,
    RecentActivityRead,
    ScheduleVisitCreate,
    ScheduleVisitRead,
    StageConfigRead,
    StageConfigReplace,
)
from imobconnect.crm.service import ClientService, CrmBoardService, LeadService, StageConfigService
from imobconnect.services.activity import RecentActivityService

router = APIRouter(prefix="/api/crm", tags=["crm.pipeline"])
leads_router = APIRouter(prefix="/api", tags=["crm.leads"])
stage_config_service = StageConfigService()
board_service = CrmBoardService()
lead_service = LeadService()
client_service = ClientService()
recent_activity_service = RecentActivityService()


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return ActorUser(user_id=auth_user.sub, role=auth_user.role, correlation_id=correlation_id)


@router.get("/stages", response_model=list[BoardBucket])
def get_board(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[BoardBucket]:
    return board_service.get_board(db, user.user_id)


@router.get("/stages/config", response_model=list[StageConfigRead])
def get_stage_configs(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[StageConfigRead]:
    return stage_config_service.get_stage_configs(db, user.user_id)


@router.put("/stages/config", response_model=list[StageConfigRead])
def replace_stage_configs(
    request: Request,
    dto: StageConfigReplace,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[StageConfigRead] | JSONResponse:
    try:
        return stage_config_service.replace_stage_configs(db, user, dto.stages)
    except HTTPException as exc:
        return http_error(request, exc, "crm_stage_config_replace_failed")


@router.patch("/leads/{lead_id}", response_model=LeadRead)
def update_lead_stage(
    request: Request,
    lead_id: int,
    dto: LeadStageUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        return lead_service.update_lead_stage(db, user, lead_id, dto.stage_id)
    except HTTPException as exc:
        return http_error(request, exc, "crm_lead_stage_update_failed")


@leads_router.get("/leads", response_model=LeadPage)
def list_leads(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None),
    stage: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadPage:
    return lead_service.list_leads(db, user.user_id, page=page, limit=limit, search=search, stage=stage)


@leads_router.post("/leads", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    request: Request,
    dto: LeadCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        return lead_service.create_lead(db, user, dto)
    except HTTPException as exc:
        return http_error(request, exc, "crm_lead_create_failed")


@leads_router.post("/public/leads", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def capture_public_lead(
    request: Request,
    dto: PublicLeadCreate,
    db: Session = Depends(get_db),
) -> LeadRead | JSONResponse:
    try:
        return lead_service.capture_public_lead(db, dto)
    except HTTPException as exc:
        return http_error(request, exc, "crm_public_lead_capture_failed")


@leads_router.post("/public/schedule-visit", response_model=ScheduleVisitRead, status_code=status.HTTP_201_CREATED)
def schedule_visit(
    request: Request,
    dto: ScheduleVisitCreate,
    db: Session = Depends(get_db),
) -> ScheduleVisitRead | JSONResponse:
    try:
        return lead_service.schedule_visit(db, dto)
    except HTTPException as exc:
        return http_error(request, exc, "crm_public_visit_schedule_failed")


@leads_router.get("/clients", response_model=list[ClientRead])
def list_clients(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ClientRead]:
    return client_service.list_clients(db, user.user_id)


@leads_router.get("/activities/recent", response_model=list[RecentActivityRead])
def recent_activities(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[RecentActivityRead]:
    items = recent_activity_service.get_recent_activities(db, user.user_id)
    return [RecentActivityRead.model_validate(item) for item in items]
