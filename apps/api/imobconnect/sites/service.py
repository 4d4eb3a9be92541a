from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from imobconnect.accounts.models import User
from imobconnect.core.auth import ActorUser
from imobconnect.sites.mapping import default_settings, from_storage, to_storage
from imobconnect.sites.models import Website
from imobconnect.sites.schemas import WebsiteRead, WebsiteSettings


logger = logging.getLogger(__name__)


class WebsiteService:
    def get_website(self, session: Session, user_id: int) -> WebsiteRead:
        website = session.scalar(select(Website).where(Website.user_id == user_id))
        if website is None:
            website = self._create(session, user_id, default_settings())
        return self._to_read(website)

    def get_public_website(self, session: Session, agent_id: int) -> WebsiteRead:
        if session.get(User, agent_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")
        return self.get_website(session, agent_id)

    def get_user_website(self, session: Session, actor_user: ActorUser, user_id: int) -> WebsiteRead:
        if actor_user.user_id != user_id and not actor_user.is_admin:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to view this website")
        return self.get_website(session, user_id)

    def update_website(self, session: Session, user_id: int, settings: WebsiteSettings) -> WebsiteRead:
        website = session.scalar(select(Website).where(Website.user_id == user_id))
        if website is None:
            website = self._create(session, user_id, settings)
        else:
            for key, value in to_storage(settings).items():
                setattr(website, key, value)
            session.commit()
            session.refresh(website)
        logger.info("sites.website.updated", extra={"user_id": user_id, "entity_id": website.id})
        return self._to_read(website)

    def _create(self, session: Session, user_id: int, settings: WebsiteSettings) -> Website:
        website = Website(user_id=user_id, **to_storage(settings))
        session.add(website)
        try:
            session.commit()
        except IntegrityError:
            # Another request created the row first; the unique user_id wins.
            session.rollback()
            existing = session.scalar(select(Website).where(Website.user_id == user_id))
            if existing is None:
                raise
            return existing
        session.refresh(website)
        logger.info("sites.website.created", extra={"user_id": user_id, "entity_id": website.id})
        return website

    def _to_read(self, website: Website) -> WebsiteRead:
        return WebsiteRead(
            **from_storage(website).model_dump(),
            id=website.id,
            user_id=website.user_id,
            domain=website.domain,
            created_at=website.created_at,
            updated_at=website.updated_at,
        )
