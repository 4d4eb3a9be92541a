from __future__ import annotations

from datetime import datetime

from imobconnect.core.schemas import CamelModel


class UserRead(CamelModel):
    id: int
    username: str
    email: str
    full_name: str
    role: str
    parent_id: int | None
    plan_type: str
    created_at: datetime
