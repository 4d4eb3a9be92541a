from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from imobconnect.core.auth import ActorUser
from imobconnect.crm.models import Lead
from imobconnect.documents.models import Document
from imobconnect.documents.schemas import DocumentCreate, DocumentRead
from imobconnect.services.activity import log_activity


logger = logging.getLogger(__name__)


class DocumentService:
    entity_type = "document"

    def list_documents(self, session: Session, user_id: int) -> list[DocumentRead]:
        rows = session.scalars(
            select(Document).where(Document.user_id == user_id).order_by(Document.created_at.desc(), Document.id.desc())
        ).all()
        return [self._to_read(row) for row in rows]

    def create_document(self, session: Session, actor_user: ActorUser, dto: DocumentCreate) -> DocumentRead:
        if dto.lead_id is not None:
            lead = session.get(Lead, dto.lead_id)
            if lead is None or lead.user_id != actor_user.user_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

        document = Document(user_id=actor_user.user_id, **dto.model_dump())
        session.add(document)
        session.flush()
        log_activity(
            session,
            user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=document.id,
            action="created",
        )
        session.commit()
        session.refresh(document)
        logger.info(
            "documents.created",
            extra={"user_id": actor_user.user_id, "entity_type": self.entity_type, "entity_id": document.id},
        )
        return self._to_read(document)

    def _to_read(self, document: Document) -> DocumentRead:
        return DocumentRead(
            id=document.id,
            user_id=document.user_id,
            lead_id=document.lead_id,
            title=document.title,
            type=document.type,
            file_url=document.file_url,
            google_drive_id=document.google_drive_id,
            status=document.status,
            notes=document.notes,
            client=document.lead.full_name if document.lead is not None else "Cliente",
            created_at=document.created_at,
            updated_at=document.updated_at,
        )
