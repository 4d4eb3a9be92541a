from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imobconnect.core.database import Base
from imobconnect.listings.models import Property


AFFILIATION_UNIQUE_CONSTRAINT = "uq_property_affiliations_property_affiliate"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PropertyAffiliation(Base):
    __tablename__ = "property_affiliations"
    __table_args__ = (UniqueConstraint("property_id", "affiliate_id", name=AFFILIATION_UNIQUE_CONSTRAINT),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    affiliate_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    property: Mapped[Property] = relationship(Property)
