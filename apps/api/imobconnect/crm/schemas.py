from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import AliasChoices, EmailStr, Field

from imobconnect.core.schemas import CamelModel
from imobconnect.crm.stages import STAGE_ID_MAX_LENGTH


class StageConfigInput(CamelModel):
    # The settings dialog posts the slug as ``id``; newer clients send ``stageId``.
    stage_id: str = Field(
        min_length=1,
        max_length=STAGE_ID_MAX_LENGTH,
        validation_alias=AliasChoices("stageId", "stage_id", "id"),
        serialization_alias="stageId",
    )
    name: str = Field(min_length=1, max_length=120)
    color: str | None = Field(default=None, max_length=32)
    position: int
    is_default: bool = False
    is_archive: bool = False


class StageConfigReplace(CamelModel):
    stages: list[StageConfigInput]


class StageConfigRead(CamelModel):
    id: int
    user_id: int
    stage_id: str
    name: str
    color: str | None
    position: int
    is_default: bool
    is_archive: bool


class BoardLead(CamelModel):
    id: int
    name: str
    source: str
    description: str
    time_ago: str
    stage_id: str


class BoardBucket(CamelModel):
    id: str
    name: str
    color: str | None = None
    count: int
    leads: list[BoardLead]


class LeadStageUpdate(CamelModel):
    stage_id: str = Field(min_length=1, max_length=STAGE_ID_MAX_LENGTH)


class LeadCreate(CamelModel):
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=64)
    message: str | None = None
    property_id: int | None = None
    stage: str = Field(default="initial_contact", min_length=1, max_length=STAGE_ID_MAX_LENGTH)
    source: str | None = Field(default=None, max_length=64)
    assigned_to: int | None = None


class PublicLeadCreate(LeadCreate):
    user_id: int


class LeadRead(CamelModel):
    id: int
    user_id: int
    property_id: int | None
    full_name: str
    email: str
    phone: str | None
    message: str | None
    stage: str
    source: str | None
    status: str
    assigned_to: int | None
    custom_fields: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class ScheduleVisitCreate(CamelModel):
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=64)
    visit_date: date = Field(validation_alias=AliasChoices("date", "visitDate", "visit_date"))
    time_slot: str = Field(min_length=1, max_length=32)
    visit_type: str = Field(min_length=1, max_length=32)
    message: str | None = None
    property_id: int
    agent_id: int
    utm_source: str | None = Field(default=None, max_length=64)
    utm_medium: str | None = None
    utm_campaign: str | None = None


class ScheduleVisitRead(CamelModel):
    success: bool = True
    lead: LeadRead


class LeadPage(CamelModel):
    leads: list[LeadRead]
    total: int
    page: int
    limit: int
    total_pages: int


class ClientRead(CamelModel):
    id: int
    name: str
    email: str
    phone: str
    interest: str
    status: str


class RecentActivityRead(CamelModel):
    id: int
    type: Literal["lead", "appointment", "document"]
    name: str
    description: str
    time_ago: str
    icon: str
