from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from imobconnect.core.schemas import CamelModel


class DocumentCreate(CamelModel):
    title: str = Field(min_length=3)
    type: str = Field(min_length=1)
    lead_id: int | None = None
    file_url: str | None = None
    google_drive_id: str | None = None
    status: Literal["pending", "approved", "rejected"] = "pending"
    notes: str | None = None


class DocumentRead(CamelModel):
    id: int
    user_id: int
    lead_id: int | None
    title: str
    type: str
    file_url: str | None
    google_drive_id: str | None
    status: str
    notes: str | None
    client: str
    created_at: datetime
    updated_at: datetime
