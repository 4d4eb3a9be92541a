from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from imobconnect.api.errors import http_error
from imobconnect.context import get_correlation_id
from imobconnect.core.auth import ActorUser, AuthUser, get_current_user as get_auth_user
from imobconnect.core.database import get_db
from imobconnect.documents.schemas import DocumentCreate, DocumentRead
from imobconnect.documents.service import DocumentService

router = APIRouter(prefix="/api/documents", tags=["documents"])
service = DocumentService()


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return ActorUser(user_id=auth_user.sub, role=auth_user.role, correlation_id=correlation_id)


@router.get("", response_model=list[DocumentRead])
def list_documents(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[DocumentRead]:
    return service.list_documents(db, user.user_id)


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def create_document(
    request: Request,
    dto: DocumentCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DocumentRead | JSONResponse:
    try:
        return service.create_document(db, user, dto)
    except HTTPException as exc:
        return http_error(request, exc, "documents_create_failed")
