from __future__ import annotations

from datetime import datetime
from typing import Literal

from imobconnect.core.schemas import CamelModel
from imobconnect.listings.schemas import PropertyRead


AffiliationStatus = Literal["pending", "approved", "rejected"]


class AffiliationRequestCreate(CamelModel):
    property_id: int


class AffiliationStatusUpdate(CamelModel):
    status: AffiliationStatus


class OwnerSummary(CamelModel):
    id: int
    name: str


class PropertySummary(CamelModel):
    id: int
    title: str
    address: str
    price: float


class AffiliationRead(CamelModel):
    id: int
    property_id: int
    affiliate_id: int
    owner_id: int
    status: str
    commission_rate: float
    created_at: datetime
    updated_at: datetime


class MyAffiliationRead(AffiliationRead):
    property: PropertySummary
    owner: OwnerSummary


class MarketplacePropertyRead(PropertyRead):
    owner: OwnerSummary
    commission_rate: float


class AffiliablePropertyRead(PropertyRead):
    commission_rate: float
    affiliations_count: int
