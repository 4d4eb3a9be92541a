from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from imobconnect.affiliates.models import PropertyAffiliation
from imobconnect.affiliates.service import affiliation_service
from imobconnect.core.auth import ActorUser
from imobconnect.core.config import get_settings
from imobconnect.crm.models import Lead
from imobconnect.listings.models import Development, Favorite, Property, Unit
from imobconnect.listings.schemas import (
    DevelopmentConversionRead,
    DevelopmentCreate,
    DevelopmentRead,
    DevelopmentUpdate,
    FavoritePropertyRead,
    FavoriteToggleRead,
    PropertyCreate,
    PropertyPage,
    PropertyRead,
    PropertyUpdate,
    UnitCreate,
    UnitRead,
    UnitUpdate,
)
from imobconnect.services.activity import log_activity, time_ago


logger = logging.getLogger(__name__)

SINGLE_PROPERTY_DEVELOPMENT_TYPE = "imovel_avulso"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_brl(value: Decimal | float | int) -> str:
    """Format a price the way pt-BR currency formatting renders it, e.g. ``R$ 1.234,56``."""
    formatted = f"{Decimal(value):,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def _filter_value(value: str | None) -> str | None:
    if not value or value == "all":
        return None
    return value


def recompute_sales_status(session: Session, development: Development) -> dict[str, int]:
    statuses = session.scalars(select(Unit.status).where(Unit.development_id == development.id)).all()
    summary = {
        "available": sum(1 for value in statuses if value == "available"),
        "reserved": sum(1 for value in statuses if value == "reserved"),
        "sold": sum(1 for value in statuses if value == "sold"),
        "total": len(statuses),
    }
    development.sales_status = summary
    development.updated_at = utcnow()
    return summary


@dataclass(slots=True)
class PropertyService:
    entity_type: str = "property"

    def list_properties(
        self,
        session: Session,
        user_id: int,
        *,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        property_type: str | None = None,
        status_filter: str | None = None,
    ) -> PropertyPage:
        settings = get_settings()
        limit = max(1, min(limit, settings.page_size_max))
        page = max(1, page)

        conditions = [Property.user_id == user_id]
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Property.title.ilike(pattern), Property.address.ilike(pattern), Property.description.ilike(pattern))
            )
        if _filter_value(property_type):
            conditions.append(Property.property_type == property_type)
        if _filter_value(status_filter):
            conditions.append(Property.status == status_filter)

        total = session.scalar(select(func.count()).select_from(Property).where(*conditions)) or 0
        rows = session.scalars(
            select(Property)
            .where(*conditions)
            .order_by(Property.created_at.desc(), Property.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return PropertyPage(
            properties=[PropertyRead.model_validate(row) for row in rows],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    def get_property(self, session: Session, actor_user: ActorUser, property_id: int) -> PropertyRead:
        prop = session.get(Property, property_id)
        if prop is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")
        is_owner = prop.user_id == actor_user.user_id
        if not is_owner and not affiliation_service.is_property_affiliate(session, property_id, actor_user.user_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to view this property")
        return PropertyRead.model_validate(prop)

    def create_property(self, session: Session, actor_user: ActorUser, dto: PropertyCreate) -> PropertyRead:
        self._check_development(session, actor_user.user_id, dto.development_id)
        prop = Property(user_id=actor_user.user_id, **dto.model_dump())
        session.add(prop)
        try:
            session.flush()
            log_activity(
                session,
                user_id=actor_user.user_id,
                entity_type=self.entity_type,
                entity_id=prop.id,
                action="created",
                metadata={"title": prop.title},
            )
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid property reference") from exc
        session.refresh(prop)
        logger.info("listings.property.created", extra={"user_id": actor_user.user_id, "property_id": prop.id})
        return PropertyRead.model_validate(prop)

    def update_property(
        self,
        session: Session,
        actor_user: ActorUser,
        property_id: int,
        dto: PropertyUpdate,
    ) -> PropertyRead:
        prop = self._get_owned(session, actor_user, property_id, "Unauthorized to update this property")
        if dto.development_id != prop.development_id:
            self._check_development(session, actor_user.user_id, dto.development_id)
        for key, value in dto.model_dump().items():
            setattr(prop, key, value)
        prop.updated_at = utcnow()
        try:
            session.flush()
            log_activity(
                session,
                user_id=actor_user.user_id,
                entity_type=self.entity_type,
                entity_id=prop.id,
                action="updated",
                metadata={"title": prop.title},
            )
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid property reference") from exc
        session.refresh(prop)
        return PropertyRead.model_validate(prop)

    def convert_to_development(
        self,
        session: Session,
        actor_user: ActorUser,
        property_id: int,
    ) -> DevelopmentConversionRead:
        """Wrap a standalone listing in a single-unit development and link the two."""
        prop = self._get_owned(session, actor_user, property_id, "Unauthorized to convert this property")
        if prop.development_id is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Property already belongs to a development")

        development = Development(
            user_id=actor_user.user_id,
            name=prop.title,
            description=prop.description or "Imóvel individual convertido em empreendimento",
            address=prop.address,
            city=prop.city,
            state=prop.state,
            zip_code=prop.zip_code,
            development_type=SINGLE_PROPERTY_DEVELOPMENT_TYPE,
            total_units=1,
            construction_status="pronto",
            is_single_property=True,
        )
        session.add(development)
        session.flush()
        unit = Unit(
            development_id=development.id,
            unit_number="1",
            price=prop.price,
            bedrooms=prop.bedrooms,
            bathrooms=prop.bathrooms,
            area=prop.area,
            status=prop.status if prop.status in ("reserved", "sold") else "available",
        )
        session.add(unit)
        session.flush()
        recompute_sales_status(session, development)
        prop.development_id = development.id
        prop.updated_at = utcnow()
        log_activity(
            session,
            user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=prop.id,
            action="convert_to_development",
            metadata={
                "propertyName": prop.title,
                "developmentId": development.id,
                "developmentName": development.name,
            },
        )
        session.commit()
        session.refresh(development)
        session.refresh(unit)
        logger.info(
            "listings.property.converted",
            extra={"user_id": actor_user.user_id, "property_id": prop.id, "development_id": development.id},
        )
        return DevelopmentConversionRead(
            message="Imóvel convertido em empreendimento com sucesso",
            development=DevelopmentRead.model_validate(development),
            unit=UnitRead.model_validate(unit),
        )

    def delete_property(self, session: Session, actor_user: ActorUser, property_id: int) -> None:
        prop = self._get_owned(session, actor_user, property_id, "Unauthorized to delete this property")
        title = prop.title
        session.execute(delete(Favorite).where(Favorite.property_id == property_id))
        session.execute(delete(PropertyAffiliation).where(PropertyAffiliation.property_id == property_id))
        session.execute(update(Lead).where(Lead.property_id == property_id).values(property_id=None))
        session.delete(prop)
        log_activity(
            session,
            user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=property_id,
            action="deleted",
            metadata={"title": title},
        )
        session.commit()
        logger.info("listings.property.deleted", extra={"user_id": actor_user.user_id, "property_id": property_id})

    def _get_owned(self, session: Session, actor_user: ActorUser, property_id: int, forbidden: str) -> Property:
        prop = session.get(Property, property_id)
        if prop is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")
        if prop.user_id != actor_user.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=forbidden)
        return prop

    def _check_development(self, session: Session, user_id: int, development_id: int | None) -> None:
        if development_id is None:
            return
        owned = session.scalar(
            select(Development.id).where(and_(Development.id == development_id, Development.user_id == user_id))
        )
        if owned is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Development not found")


@dataclass(slots=True)
class FavoriteService:
    def list_favorites(self, session: Session, user_id: int, now: datetime | None = None) -> list[FavoritePropertyRead]:
        rows = session.scalars(
            select(Favorite).where(Favorite.user_id == user_id).order_by(Favorite.created_at.desc(), Favorite.id.desc())
        ).all()
        result: list[FavoritePropertyRead] = []
        for favorite in rows:
            prop = favorite.property
            base = PropertyRead.model_validate(prop).model_dump()
            result.append(
                FavoritePropertyRead(
                    **base,
                    time_ago=time_ago(prop.created_at, now),
                    formatted_price=format_brl(prop.price),
                )
            )
        return result

    def toggle_favorite(self, session: Session, user_id: int, property_id: int) -> FavoriteToggleRead:
        if session.get(Property, property_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")

        existing = session.scalar(
            select(Favorite).where(and_(Favorite.user_id == user_id, Favorite.property_id == property_id))
        )
        if existing is not None:
            session.delete(existing)
            favorited = False
        else:
            session.add(Favorite(user_id=user_id, property_id=property_id))
            favorited = True

        try:
            session.commit()
        except IntegrityError:
            # A concurrent toggle inserted the same pair first.
            session.rollback()
            favorited = True
        return FavoriteToggleRead(property_id=property_id, favorited=favorited)

    def remove_favorite(self, session: Session, user_id: int, property_id: int) -> None:
        session.execute(delete(Favorite).where(and_(Favorite.user_id == user_id, Favorite.property_id == property_id)))
        session.commit()


@dataclass(slots=True)
class DevelopmentService:
    entity_type: str = "development"

    def list_developments(self, session: Session, user_id: int) -> list[DevelopmentRead]:
        rows = session.scalars(
            select(Development)
            .where(Development.user_id == user_id)
            .order_by(Development.created_at.desc(), Development.id.desc())
        ).all()
        return [DevelopmentRead.model_validate(row) for row in rows]

    def get_development(self, session: Session, user_id: int, development_id: int) -> DevelopmentRead:
        return DevelopmentRead.model_validate(self._get_owned(session, user_id, development_id))

    def create_development(self, session: Session, actor_user: ActorUser, dto: DevelopmentCreate) -> DevelopmentRead:
        development = Development(user_id=actor_user.user_id, **dto.model_dump())
        session.add(development)
        session.flush()
        log_activity(
            session,
            user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=development.id,
            action="created",
            metadata={"name": development.name},
        )
        session.commit()
        session.refresh(development)
        return DevelopmentRead.model_validate(development)

    def update_development(
        self,
        session: Session,
        actor_user: ActorUser,
        development_id: int,
        dto: DevelopmentUpdate,
    ) -> DevelopmentRead:
        development = self._get_owned(session, actor_user.user_id, development_id)
        for key, value in dto.model_dump(exclude_unset=True).items():
            setattr(development, key, value)
        development.updated_at = utcnow()
        session.commit()
        session.refresh(development)
        return DevelopmentRead.model_validate(development)

    def delete_development(self, session: Session, actor_user: ActorUser, development_id: int) -> None:
        development = self._get_owned(session, actor_user.user_id, development_id)
        session.execute(delete(Unit).where(Unit.development_id == development_id))
        session.delete(development)
        log_activity(
            session,
            user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=development_id,
            action="deleted",
        )
        session.commit()

    def list_units(self, session: Session, user_id: int, development_id: int) -> list[UnitRead]:
        self._get_owned(session, user_id, development_id)
        rows = session.scalars(
            select(Unit)
            .where(Unit.development_id == development_id)
            .order_by(Unit.block.asc(), Unit.unit_number.asc())
        ).all()
        return [UnitRead.model_validate(row) for row in rows]

    def create_unit(self, session: Session, user_id: int, development_id: int, dto: UnitCreate) -> UnitRead:
        development = self._get_owned(session, user_id, development_id)
        unit = Unit(development_id=development_id, **dto.model_dump())
        session.add(unit)
        session.flush()
        recompute_sales_status(session, development)
        session.commit()
        session.refresh(unit)
        return UnitRead.model_validate(unit)

    def update_unit(
        self,
        session: Session,
        user_id: int,
        development_id: int,
        unit_id: int,
        dto: UnitUpdate,
    ) -> UnitRead:
        development = self._get_owned(session, user_id, development_id)
        unit = session.scalar(select(Unit).where(and_(Unit.id == unit_id, Unit.development_id == development_id)))
        if unit is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unit not found")

        payload = dto.model_dump(exclude_unset=True)
        status_changed = "status" in payload and payload["status"] is not None and payload["status"] != unit.status
        for key, value in payload.items():
            setattr(unit, key, value)
        unit.updated_at = utcnow()
        session.flush()
        if status_changed:
            recompute_sales_status(session, development)
        session.commit()
        session.refresh(unit)
        return UnitRead.model_validate(unit)

    def _get_owned(self, session: Session, user_id: int, development_id: int) -> Development:
        development = session.scalar(
            select(Development).where(and_(Development.id == development_id, Development.user_id == user_id))
        )
        if development is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Development not found")
        return development


property_service = PropertyService()
favorite_service = FavoriteService()
development_service = DevelopmentService()
