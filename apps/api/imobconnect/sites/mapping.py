from __future__ import annotations

from typing import Any

from imobconnect.sites.models import Website
from imobconnect.sites.schemas import WebsiteSettings


DEFAULT_TITLE = "Meu Site Imobiliário"
DEFAULT_PRIMARY_COLOR = "#FF5A00"
DEFAULT_SECONDARY_COLOR = "#222222"
DEFAULT_FONT_FAMILY = "inter"
DEFAULT_TAGLINE = "Os melhores imóveis da região"
DEFAULT_DESCRIPTION = "Profissional especializado no mercado imobiliário local"
DEFAULT_HERO_IMAGE_URL = (
    "https://images.unsplash.com/photo-1560518883-ce09059eeffa"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=1073&q=80"
)

_LAYOUT_FLAGS = {
    "show_testimonials": "showTestimonials",
    "show_featured_properties": "showFeaturedProperties",
    "show_about_section": "showAboutSection",
}
_CONTACT_FIELDS = {
    "contact_email": "email",
    "contact_phone": "phone",
    "address": "address",
    "whatsapp": "whatsapp",
    "creci": "creci",
}


def default_settings() -> WebsiteSettings:
    return WebsiteSettings(
        site_name=DEFAULT_TITLE,
        tagline=DEFAULT_TAGLINE,
        description=DEFAULT_DESCRIPTION,
        theme_color=DEFAULT_PRIMARY_COLOR,
        secondary_color=DEFAULT_SECONDARY_COLOR,
        font_family=DEFAULT_FONT_FAMILY,
        hero_image_url=DEFAULT_HERO_IMAGE_URL,
    )


def to_storage(settings: WebsiteSettings) -> dict[str, Any]:
    """Column values for a ``websites`` row holding ``settings``."""
    return {
        "title": settings.site_name or DEFAULT_TITLE,
        "logo": settings.logo_url or None,
        "theme": {
            "primaryColor": settings.theme_color or DEFAULT_PRIMARY_COLOR,
            "secondaryColor": settings.secondary_color or DEFAULT_SECONDARY_COLOR,
            "fontFamily": settings.font_family or DEFAULT_FONT_FAMILY,
            "tagline": settings.tagline or DEFAULT_TAGLINE,
            "description": settings.description or DEFAULT_DESCRIPTION,
            "heroImageUrl": settings.hero_image_url or "",
        },
        "layout": {
            **{stored: getattr(settings, attr) for attr, stored in _LAYOUT_FLAGS.items()},
            "contactInfo": {stored: getattr(settings, attr) or "" for attr, stored in _CONTACT_FIELDS.items()},
        },
    }


def _flag(layout: dict[str, Any], key: str) -> bool:
    value = layout.get(key)
    return True if value is None else bool(value)


def from_storage(website: Website) -> WebsiteSettings:
    theme = website.theme or {}
    layout = website.layout or {}
    contact = layout.get("contactInfo") or {}
    return WebsiteSettings(
        site_name=website.title,
        tagline=theme.get("tagline") or "",
        description=theme.get("description") or "",
        theme_color=theme.get("primaryColor") or DEFAULT_PRIMARY_COLOR,
        secondary_color=theme.get("secondaryColor") or DEFAULT_SECONDARY_COLOR,
        font_family=theme.get("fontFamily") or DEFAULT_FONT_FAMILY,
        hero_image_url=theme.get("heroImageUrl") or "",
        logo_url=website.logo or "",
        **{attr: contact.get(stored) or "" for attr, stored in _CONTACT_FIELDS.items()},
        **{attr: _flag(layout, stored) for attr, stored in _LAYOUT_FLAGS.items()},
    )
