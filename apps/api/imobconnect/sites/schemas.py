"""Website settings as the dashboard and public site see them.

Storage keeps the same data split across ``title``/``logo`` columns and the
``theme``/``layout`` JSON blobs; :mod:`imobconnect.sites.mapping` converts
between the two shapes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import model_validator

from imobconnect.core.schemas import CamelModel


class WebsiteSettings(CamelModel):
    site_name: str = ""
    tagline: str = ""
    description: str = ""
    theme_color: str = ""
    secondary_color: str = ""
    font_family: str = ""
    hero_image_url: str = ""
    logo_url: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    address: str = ""
    whatsapp: str = ""
    creci: str = ""
    show_testimonials: bool = True
    show_featured_properties: bool = True
    show_about_section: bool = True

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null behaves like an omitted field, so flags fall back to True.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class WebsiteRead(WebsiteSettings):
    id: int
    user_id: int
    domain: str | None = None
    created_at: datetime
    updated_at: datetime
