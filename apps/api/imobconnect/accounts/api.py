from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from imobconnect.accounts.models import User
from imobconnect.accounts.schemas import UserRead
from imobconnect.api.errors import http_error
from imobconnect.core.auth import AuthUser, get_current_user
from imobconnect.core.database import get_db

router = APIRouter(prefix="/api/users", tags=["accounts"])


def get_user(session: Session, user_id: int) -> UserRead:
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserRead.model_validate(user)


@router.get("/me", response_model=UserRead)
def me(
    request: Request,
    db: Session = Depends(get_db),
    auth_user: AuthUser = Depends(get_current_user),
) -> UserRead | JSONResponse:
    try:
        return get_user(db, auth_user.sub)
    except HTTPException as exc:
        return http_error(request, exc, "accounts_user_get_failed")
