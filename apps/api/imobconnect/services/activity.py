from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from imobconnect.core.config import get_settings
from imobconnect.crm.models import Lead
from imobconnect.documents.models import Document
from imobconnect.listings.models import Property
from imobconnect.models.activity import ActivityLog


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def log_activity(
    db: Session,
    user_id: int,
    entity_type: str,
    entity_id: int,
    action: str,
    metadata: dict[str, Any] | None = None,
) -> ActivityLog:
    """Append an activity row to the caller's transaction.

    The row is flushed but not committed; it becomes durable together with the
    mutation it describes, or not at all.
    """
    entry = ActivityLog(
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        event_metadata=metadata or {},
        created_at=utcnow(),
    )
    db.add(entry)
    db.flush()
    logger.info(
        "activity.logged",
        extra={"user_id": user_id, "entity_type": entity_type, "entity_id": entity_id, "action": action},
    )
    return entry


def _plural(count: int, singular: str, plural: str) -> str:
    return f"Há {count} {singular if count == 1 else plural}"


def time_ago(value: datetime, now: datetime | None = None) -> str:
    current = now or utcnow()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)

    seconds = int((current - value).total_seconds())
    minutes = seconds // 60
    hours = seconds // 3600
    days = seconds // 86400
    weeks = days // 7
    months = days // 30

    if minutes < 60:
        return _plural(minutes, "minuto", "minutos")
    if hours < 24:
        return _plural(hours, "hora", "horas")
    if days < 7:
        return _plural(days, "dia", "dias")
    if weeks < 4:
        return _plural(weeks, "semana", "semanas")
    return _plural(months, "mês", "meses")


class RecentActivityService:
    def get_recent_activities(self, db: Session, user_id: int, now: datetime | None = None) -> list[dict[str, Any]]:
        settings = get_settings()
        logs = db.scalars(
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(settings.recent_activity_scan_limit)
        ).all()

        items: list[dict[str, Any]] = []
        for log in logs:
            metadata = log.event_metadata or {}
            item: dict[str, Any] | None = None

            if log.entity_type == "lead" and log.action == "created":
                lead = db.get(Lead, log.entity_id)
                if lead is not None:
                    item = {
                        "type": "lead",
                        "name": lead.full_name,
                        "description": lead.message or "Novo lead interessado em seus imóveis",
                        "icon": "person",
                    }
            elif log.entity_type == "lead" and (
                log.action == "visit_scheduled"
                or (log.action == "stage_changed" and metadata.get("newStage") == "scheduled_visit")
            ):
                lead = db.get(Lead, log.entity_id)
                if lead is not None:
                    prop = db.get(Property, lead.property_id) if lead.property_id else None
                    item = {
                        "type": "appointment",
                        "name": lead.full_name,
                        "description": f"Visita agendada para {prop.title if prop else 'um imóvel'}",
                        "icon": "calendar_today",
                    }
            elif log.entity_type == "document" and log.action == "created":
                document = db.get(Document, log.entity_id)
                if document is not None:
                    lead = db.get(Lead, document.lead_id) if document.lead_id else None
                    item = {
                        "type": "document",
                        "name": lead.full_name if lead else "Cliente",
                        "description": f"Enviou {document.title or 'documentação'} para análise",
                        "icon": "article",
                    }

            if item is not None:
                item["id"] = log.id
                item["timeAgo"] = time_ago(log.created_at, now)
                items.append(item)

        return items[: settings.recent_activity_feed_size]
