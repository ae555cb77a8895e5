"""Membership model: one recurring billing relationship per Supporter."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from supporter360.db.base import Base


class Membership(Base):
    __tablename__ = "membership"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    supporter_id = Column(UUID(as_uuid=True), ForeignKey("supporter.supporter_id"), nullable=False, unique=True)
    tier = Column(String(20), nullable=True)  # Full, OAP, Student, Overseas
    cadence = Column(String(20), nullable=True)  # Monthly, Annual
    billing_method = Column(String(20), nullable=True)  # stripe, gocardless
    status = Column(String(20), nullable=False, default="Unknown")
    last_payment_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
