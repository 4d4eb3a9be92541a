from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from imobconnect import events
from imobconnect.accounts.models import User
from imobconnect.core.auth import ActorUser
from imobconnect.core.config import get_settings
from imobconnect.crm.models import CrmStageConfig, Lead
from imobconnect.crm.schemas import (
    BoardBucket,
    BoardLead,
    ClientRead,
    LeadCreate,
    LeadPage,
    LeadRead,
    PublicLeadCreate,
    ScheduleVisitCreate,
    ScheduleVisitRead,
    StageConfigInput,
    StageConfigRead,
)
from imobconnect.crm.stages import (
    ORPHAN_POLICY_UNASSIGNED,
    UNASSIGNED_STAGE_ID,
    VISIT_STAGE_ID,
    client_status_for_stage,
    default_board_buckets,
    default_stage_configs,
    stage_metric_label,
)
from imobconnect.listings.models import Property
from imobconnect.metrics import observe_lead_stage_change, observe_stage_config_replacement
from imobconnect.otel import domain_span
from imobconnect.services.activity import log_activity, time_ago


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _paginate(page: int, limit: int) -> tuple[int, int]:
    settings = get_settings()
    safe_limit = max(1, min(limit or settings.page_size_default, settings.page_size_max))
    safe_page = max(1, page)
    return safe_page, safe_limit


class StageConfigService:
    def get_stage_configs(self, session: Session, user_id: int) -> list[StageConfigRead]:
        rows = session.scalars(
            select(CrmStageConfig)
            .where(CrmStageConfig.user_id == user_id)
            .order_by(CrmStageConfig.position.asc(), CrmStageConfig.id.asc())
        ).all()
        if not rows:
            return [StageConfigRead.model_validate(item) for item in default_stage_configs(user_id)]
        return [StageConfigRead.model_validate(row) for row in rows]

    def replace_stage_configs(
        self,
        session: Session,
        actor_user: ActorUser,
        configs: list[StageConfigInput],
    ) -> list[StageConfigRead]:
        """Replace the user's whole pipeline definition.

        Delete and insert share one transaction; if any row fails the previous
        configuration is restored by the rollback.
        """
        with domain_span(
            "crm.stage_configs.replace",
            {"crm.user_id": actor_user.user_id, "crm.stage_count": len(configs), "correlation_id": actor_user.correlation_id},
        ):
            try:
                session.execute(delete(CrmStageConfig).where(CrmStageConfig.user_id == actor_user.user_id))
                inserted: list[CrmStageConfig] = []
                for config in configs:
                    row = CrmStageConfig(
                        user_id=actor_user.user_id,
                        stage_id=config.stage_id,
                        name=config.name,
                        color=config.color,
                        position=config.position,
                        is_default=bool(config.is_default),
                        is_archive=bool(config.is_archive),
                    )
                    session.add(row)
                    inserted.append(row)
                session.flush()
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                observe_stage_config_replacement("failed")
                logger.warning(
                    "crm.stage_configs.replace_failed",
                    extra={"user_id": actor_user.user_id, "error": str(exc.orig)},
                )
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Failed to save stage configuration",
                ) from exc
            except SQLAlchemyError:
                session.rollback()
                observe_stage_config_replacement("failed")
                raise

        observe_stage_config_replacement("replaced")
        logger.info(
            "crm.stage_configs.replaced",
            extra={"user_id": actor_user.user_id, "stage_count": len(inserted)},
        )
        rows = sorted(inserted, key=lambda item: (item.position, item.id))
        return [StageConfigRead.model_validate(row) for row in rows]


class CrmBoardService:
    def get_board(self, session: Session, user_id: int, now: datetime | None = None) -> list[BoardBucket]:
        configs = session.scalars(
            select(CrmStageConfig)
            .where(CrmStageConfig.user_id == user_id)
            .order_by(CrmStageConfig.position.asc(), CrmStageConfig.id.asc())
        ).all()
        if configs:
            buckets = [
                {"id": config.stage_id, "name": config.name, "color": config.color, "count": 0, "leads": []}
                for config in configs
            ]
        else:
            buckets = default_board_buckets()

        by_stage: dict[str, dict[str, Any]] = {}
        for bucket in buckets:
            by_stage.setdefault(bucket["id"], bucket)

        leads = session.scalars(
            select(Lead).where(Lead.user_id == user_id).order_by(Lead.created_at.desc(), Lead.id.desc())
        ).all()

        policy = get_settings().crm_orphan_lead_policy
        unassigned: dict[str, Any] | None = None
        for lead in leads:
            bucket = by_stage.get(lead.stage)
            if bucket is None:
                logger.warning(
                    "crm.lead.orphan_stage",
                    extra={"user_id": user_id, "lead_id": lead.id, "stage": lead.stage},
                )
                if policy == ORPHAN_POLICY_UNASSIGNED:
                    if unassigned is None:
                        unassigned = {"id": UNASSIGNED_STAGE_ID, "name": "Sem etapa", "color": None, "count": 0, "leads": []}
                    bucket = unassigned
                elif buckets:
                    bucket = buckets[0]
                else:
                    continue

            bucket["count"] += 1
            bucket["leads"].append(self._to_board_lead(lead, bucket["id"], now))

        if unassigned is not None:
            buckets.append(unassigned)
        return [BoardBucket.model_validate(bucket) for bucket in buckets]

    def _to_board_lead(self, lead: Lead, stage_id: str, now: datetime | None) -> BoardLead:
        if lead.message:
            description = lead.message
        elif lead.property_id:
            description = "Interessado em imóvel específico"
        else:
            description = "Interessado em imóveis na região"
        return BoardLead(
            id=lead.id,
            name=lead.full_name,
            source=lead.source or "Site",
            description=description,
            time_ago=time_ago(lead.created_at, now),
            stage_id=stage_id,
        )


class LeadService:
    entity_type = "lead"

    def list_leads(
        self,
        session: Session,
        user_id: int,
        *,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        stage: str | None = None,
    ) -> LeadPage:
        page, limit = _paginate(page, limit)
        conditions = [Lead.user_id == user_id]
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Lead.full_name.ilike(pattern), Lead.email.ilike(pattern), Lead.message.ilike(pattern))
            )
        if stage:
            conditions.append(Lead.stage == stage)

        total = session.scalar(select(func.count()).select_from(Lead).where(*conditions)) or 0
        rows = session.scalars(
            select(Lead)
            .where(*conditions)
            .order_by(Lead.created_at.desc(), Lead.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return LeadPage(
            leads=[LeadRead.model_validate(row) for row in rows],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    def create_lead(self, session: Session, actor_user: ActorUser, dto: LeadCreate) -> LeadRead:
        lead = self._lead_from_dto(actor_user.user_id, dto)
        self._persist(session, lead, action="created", metadata={"source": dto.source or "direct"})
        events.publish("crm.lead.created", lead.user_id, {"lead_id": lead.id, "source": lead.source})
        return LeadRead.model_validate(lead)

    def capture_public_lead(self, session: Session, dto: PublicLeadCreate) -> LeadRead:
        if session.get(User, dto.user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")
        lead = self._lead_from_dto(dto.user_id, dto)
        self._persist(session, lead, action="created", metadata={"source": dto.source or "direct"})
        events.publish("crm.lead.created", lead.user_id, {"lead_id": lead.id, "source": lead.source})
        return LeadRead.model_validate(lead)

    def schedule_visit(self, session: Session, dto: ScheduleVisitCreate) -> ScheduleVisitRead:
        """Turn a public visit request into a lead in the agent's visit column."""
        if session.get(User, dto.agent_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")
        if session.get(Property, dto.property_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")

        visit_date = dto.visit_date.isoformat()
        message = dto.message or (
            f"Solicitação de visita {dto.visit_type}: {dto.visit_date:%d/%m/%Y} às {dto.time_slot}"
        )
        lead = Lead(
            user_id=dto.agent_id,
            property_id=dto.property_id,
            full_name=dto.full_name,
            email=str(dto.email),
            phone=dto.phone,
            message=message,
            stage=VISIT_STAGE_ID,
            source=dto.utm_source or "website",
            custom_fields={
                "type": "visit_request",
                "utmSource": dto.utm_source,
                "utmMedium": dto.utm_medium,
                "utmCampaign": dto.utm_campaign,
                "visitDate": visit_date,
                "visitTime": dto.time_slot,
                "visitType": dto.visit_type,
                "scheduledDate": utcnow().isoformat(),
            },
        )
        self._persist(
            session,
            lead,
            action="visit_scheduled",
            metadata={
                "propertyId": dto.property_id,
                "visitType": dto.visit_type,
                "date": visit_date,
                "timeSlot": dto.time_slot,
            },
        )
        logger.info(
            "crm.lead.visit_scheduled",
            extra={"user_id": lead.user_id, "lead_id": lead.id, "property_id": dto.property_id},
        )
        events.publish(
            "crm.lead.visit_scheduled",
            lead.user_id,
            {"lead_id": lead.id, "property_id": dto.property_id, "visit_date": visit_date},
        )
        return ScheduleVisitRead(lead=LeadRead.model_validate(lead))

    def update_lead_stage(self, session: Session, actor_user: ActorUser, lead_id: int, stage_id: str) -> LeadRead:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
        if lead.user_id != actor_user.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to update this lead")

        previous_stage = lead.stage
        lead.stage = stage_id
        lead.updated_at = utcnow()
        log_activity(
            session,
            user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=lead.id,
            action="stage_changed",
            metadata={"previousStage": previous_stage, "newStage": stage_id},
        )
        session.commit()
        session.refresh(lead)

        observe_lead_stage_change(stage_metric_label(stage_id))
        logger.info(
            "crm.lead.stage_changed",
            extra={
                "user_id": actor_user.user_id,
                "lead_id": lead.id,
                "previous_stage": previous_stage,
                "new_stage": stage_id,
            },
        )
        events.publish(
            "crm.lead.stage_changed",
            actor_user.user_id,
            {"lead_id": lead.id, "previous_stage": previous_stage, "new_stage": stage_id},
        )
        return LeadRead.model_validate(lead)

    def _lead_from_dto(self, user_id: int, dto: LeadCreate) -> Lead:
        return Lead(
            user_id=user_id,
            property_id=dto.property_id,
            full_name=dto.full_name,
            email=str(dto.email),
            phone=dto.phone,
            message=dto.message,
            stage=dto.stage,
            source=dto.source,
            assigned_to=dto.assigned_to,
        )

    def _persist(self, session: Session, lead: Lead, action: str, metadata: dict[str, Any]) -> Lead:
        user_id = lead.user_id
        session.add(lead)
        try:
            session.flush()
            log_activity(
                session,
                user_id=user_id,
                entity_type=self.entity_type,
                entity_id=lead.id,
                action=action,
                metadata=metadata,
            )
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            logger.warning("crm.lead.insert_failed", extra={"user_id": user_id, "error": str(exc.orig)})
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid lead reference") from exc
        session.refresh(lead)
        return lead


class ClientService:
    def list_clients(self, session: Session, user_id: int) -> list[ClientRead]:
        rows = session.scalars(
            select(Lead).where(Lead.user_id == user_id).order_by(Lead.created_at.desc(), Lead.id.desc())
        ).all()
        return [
            ClientRead(
                id=lead.id,
                name=lead.full_name,
                email=lead.email,
                phone=lead.phone or "N/A",
                interest=self._interest(lead.message),
                status=client_status_for_stage(lead.stage),
            )
            for lead in rows
        ]

    def _interest(self, message: str | None) -> str:
        if not message:
            return "N/A"
        if len(message) > 30:
            return f"{message[:30]}..."
        return message

