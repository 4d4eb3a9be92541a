from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from imobconnect import events
from imobconnect.accounts.models import User
from imobconnect.affiliates.models import AFFILIATION_UNIQUE_CONSTRAINT, PropertyAffiliation
from imobconnect.affiliates.schemas import (
    AffiliablePropertyRead,
    AffiliationRead,
    MarketplacePropertyRead,
    MyAffiliationRead,
    OwnerSummary,
    PropertySummary,
)
from imobconnect.core.auth import ActorUser
from imobconnect.core.config import get_settings
from imobconnect.listings.models import Property
from imobconnect.listings.schemas import PropertyRead
from imobconnect.metrics import observe_affiliation_request, observe_affiliation_status_change
from imobconnect.otel import domain_span
from imobconnect.services.activity import log_activity


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_duplicate_affiliation(exc: IntegrityError) -> bool:
    """True when ``exc`` was raised by the (property, affiliate) unique constraint."""
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    if constraint is not None:
        return constraint == AFFILIATION_UNIQUE_CONSTRAINT
    # SQLite names the columns rather than the constraint.
    message = str(exc.orig)
    return AFFILIATION_UNIQUE_CONSTRAINT in message or "UNIQUE constraint failed: property_affiliations." in message


def effective_commission_rate(prop: Property) -> Decimal:
    if prop.affiliation_commission_rate:
        return Decimal(prop.affiliation_commission_rate)
    return get_settings().default_affiliation_commission_rate


@dataclass(slots=True)
class AffiliationService:
    entity_type: str = "affiliation"

    def get_marketplace(
        self,
        session: Session,
        user_id: int,
        *,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
    ) -> list[MarketplacePropertyRead]:
        settings = get_settings()
        limit = max(1, min(limit, settings.page_size_max))
        page = max(1, page)

        conditions = [Property.user_id != user_id, Property.available_for_affiliation.is_(True)]
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Property.title.ilike(pattern), Property.description.ilike(pattern), Property.address.ilike(pattern))
            )

        rows = session.execute(
            select(Property, User)
            .join(User, User.id == Property.user_id)
            .where(*conditions)
            .order_by(Property.created_at.desc(), Property.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return [
            MarketplacePropertyRead(
                **PropertyRead.model_validate(prop).model_dump(),
                owner=OwnerSummary(id=owner.id, name=owner.full_name),
                commission_rate=effective_commission_rate(prop),
            )
            for prop, owner in rows
        ]

    def request_affiliation(self, session: Session, actor_user: ActorUser, property_id: int) -> AffiliationRead:
        """Create a pending affiliation for ``actor_user`` on another agent's property.

        Duplicates are detected by the ``(property_id, affiliate_id)`` unique
        constraint, so any existing row for the pair blocks the request no
        matter its status.
        """
        with domain_span(
            "affiliate.request",
            {"affiliate.user_id": actor_user.user_id, "affiliate.property_id": property_id},
        ):

            prop = session.scalar(
                select(Property).where(and_(Property.id == property_id, Property.available_for_affiliation.is_(True)))
            )
            if prop is None:
                observe_affiliation_request("not_found")
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Property not found or not available for affiliation",
                )
            if prop.user_id == actor_user.user_id:
                observe_affiliation_request("self")
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Cannot affiliate with your own property",
                )

            affiliation = PropertyAffiliation(
                property_id=prop.id,
                affiliate_id=actor_user.user_id,
                owner_id=prop.user_id,
                status="pending",
                commission_rate=effective_commission_rate(prop),
            )
            session.add(affiliation)
            try:
                session.flush()
                log_activity(
                    session,
                    user_id=actor_user.user_id,
                    entity_type=self.entity_type,
                    entity_id=affiliation.id,
                    action="requested",
                    metadata={"propertyId": prop.id, "ownerId": prop.user_id},
                )
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if not is_duplicate_affiliation(exc):
                    observe_affiliation_request("invalid")
                    logger.warning(
                        "affiliate.request_failed",
                        extra={"user_id": actor_user.user_id, "property_id": property_id, "error": str(exc.orig)},
                    )
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="Invalid affiliation reference",
                    ) from exc
                observe_affiliation_request("duplicate")
                logger.info(
                    "affiliate.request_duplicate",
                    extra={"user_id": actor_user.user_id, "property_id": property_id},
                )
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Affiliation request already exists",
                ) from exc

        session.refresh(affiliation)
        observe_affiliation_request("created")
        logger.info(
            "affiliate.requested",
            extra={"user_id": actor_user.user_id, "property_id": prop.id, "affiliation_id": affiliation.id},
        )
        events.publish(
            "affiliate.requested",
            actor_user.user_id,
            {"affiliation_id": affiliation.id, "property_id": prop.id, "owner_id": prop.user_id},
        )
        return AffiliationRead.model_validate(affiliation)

    def update_affiliation_status(
        self,
        session: Session,
        actor_user: ActorUser,
        affiliation_id: int,
        new_status: str,
    ) -> AffiliationRead:
        affiliation = session.get(PropertyAffiliation, affiliation_id)
        if affiliation is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Affiliation not found")
        if affiliation.owner_id != actor_user.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to update this affiliation")

        # Owners may move an affiliation between any of the three states.
        previous_status = affiliation.status
        affiliation.status = new_status
        affiliation.updated_at = utcnow()
        log_activity(
            session,
            user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=affiliation.id,
            action="status_changed",
            metadata={"previousStatus": previous_status, "newStatus": new_status},
        )
        session.commit()
        session.refresh(affiliation)

        observe_affiliation_status_change(new_status)
        logger.info(
            "affiliate.status_changed",
            extra={
                "user_id": actor_user.user_id,
                "affiliation_id": affiliation.id,
                "previous_status": previous_status,
                "new_status": new_status,
            },
        )
        events.publish(
            "affiliate.status_changed",
            actor_user.user_id,
            {"affiliation_id": affiliation.id, "previous_status": previous_status, "new_status": new_status},
        )
        return AffiliationRead.model_validate(affiliation)

    def list_my_affiliations(self, session: Session, user_id: int) -> list[MyAffiliationRead]:
        rows = session.execute(
            select(PropertyAffiliation, Property, User)
            .join(Property, Property.id == PropertyAffiliation.property_id)
            .join(User, User.id == PropertyAffiliation.owner_id)
            .where(PropertyAffiliation.affiliate_id == user_id)
            .order_by(PropertyAffiliation.created_at.desc(), PropertyAffiliation.id.desc())
        ).all()
        return [
            MyAffiliationRead(
                **AffiliationRead.model_validate(affiliation).model_dump(),
                property=PropertySummary(id=prop.id, title=prop.title, address=prop.address, price=prop.price),
                owner=OwnerSummary(id=owner.id, name=owner.full_name),
            )
            for affiliation, prop, owner in rows
        ]

    def list_affiliable_properties(self, session: Session, user_id: int) -> list[AffiliablePropertyRead]:
        counts = (
            select(PropertyAffiliation.property_id, func.count(PropertyAffiliation.id).label("affiliations_count"))
            .group_by(PropertyAffiliation.property_id)
            .subquery()
        )
        rows = session.execute(
            select(Property, func.coalesce(counts.c.affiliations_count, 0))
            .outerjoin(counts, counts.c.property_id == Property.id)
            .where(Property.user_id == user_id, Property.available_for_affiliation.is_(True))
            .order_by(Property.created_at.desc(), Property.id.desc())
        ).all()
        return [
            AffiliablePropertyRead(
                **PropertyRead.model_validate(prop).model_dump(),
                commission_rate=effective_commission_rate(prop),
                affiliations_count=int(count),
            )
            for prop, count in rows
        ]

    def is_property_affiliate(self, session: Session, property_id: int, user_id: int) -> bool:
        found = session.scalar(
            select(PropertyAffiliation.id).where(
                PropertyAffiliation.property_id == property_id,
                PropertyAffiliation.affiliate_id == user_id,
                PropertyAffiliation.status == "approved",
            )
        )
        return found is not None


affiliation_service = AffiliationService()
