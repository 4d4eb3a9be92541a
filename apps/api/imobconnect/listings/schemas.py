from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field

from imobconnect.core.schemas import CamelModel


PropertyStatus = Literal["active", "reserved", "sold", "inactive"]
UnitStatus = Literal["available", "reserved", "sold"]


class PropertyCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str | None = None
    address: str = Field(min_length=1)
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    price: Decimal = Field(ge=0)
    property_type: str = Field(min_length=1)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    area: int | None = Field(default=None, ge=0)
    garage_spots: int | None = Field(default=None, ge=0)
    status: PropertyStatus = "active"
    featured: bool = False
    images: list[str] = Field(default_factory=list)
    published: bool = False
    published_portals: list[str] = Field(default_factory=list)
    available_for_affiliation: bool = False
    affiliation_commission_rate: Decimal | None = Field(default=None, ge=0, le=100)
    development_id: int | None = None


class PropertyUpdate(PropertyCreate):
    pass


class PropertyRead(CamelModel):
    id: int
    user_id: int
    development_id: int | None
    title: str
    description: str | None
    address: str
    city: str | None
    state: str | None
    zip_code: str | None
    price: float
    property_type: str
    bedrooms: int | None
    bathrooms: int | None
    area: int | None
    garage_spots: int | None
    status: str
    featured: bool
    images: list[str]
    published: bool
    published_portals: list[str]
    available_for_affiliation: bool
    affiliation_commission_rate: float | None
    created_at: datetime
    updated_at: datetime


class PropertyPage(CamelModel):
    properties: list[PropertyRead]
    total: int
    page: int
    limit: int
    total_pages: int


class FavoritePropertyRead(PropertyRead):
    time_ago: str
    formatted_price: str


class FavoriteToggleRead(CamelModel):
    property_id: int
    favorited: bool


class SalesStatus(CamelModel):
    available: int = 0
    reserved: int = 0
    sold: int = 0
    total: int = 0


class DevelopmentCreate(CamelModel):
    name: str = Field(min_length=1)
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    development_type: str = "residential"
    total_units: int = Field(default=0, ge=0)
    construction_status: str = "planning"
    is_single_property: bool = False


class DevelopmentUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    development_type: str | None = None
    total_units: int | None = Field(default=None, ge=0)
    construction_status: str | None = None
    is_single_property: bool | None = None


class DevelopmentRead(CamelModel):
    id: int
    user_id: int
    name: str
    description: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    development_type: str
    total_units: int
    construction_status: str
    is_single_property: bool
    sales_status: SalesStatus
    created_at: datetime
    updated_at: datetime


class UnitCreate(CamelModel):
    unit_number: str = Field(min_length=1)
    block: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    area: int | None = Field(default=None, ge=0)
    status: UnitStatus = "available"


class UnitUpdate(CamelModel):
    unit_number: str | None = Field(default=None, min_length=1)
    block: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    area: int | None = Field(default=None, ge=0)
    status: UnitStatus | None = None


class UnitRead(CamelModel):
    id: int
    development_id: int
    unit_number: str
    block: str | None
    price: float | None
    bedrooms: int | None
    bathrooms: int | None
    area: int | None
    status: str
    created_at: datetime
    updated_at: datetime


class DevelopmentConversionRead(CamelModel):
    message: str
    development: DevelopmentRead
    unit: UnitRead
