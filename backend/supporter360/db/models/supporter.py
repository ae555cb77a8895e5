"""Supporter model: the deduplicated person/account root identity."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB, UUID

from supporter360.db.base import Base


class Supporter(Base):
    __tablename__ = "supporter"

    supporter_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=True)
    primary_email = Column(String(320), nullable=True, index=True)
    phone = Column(String(64), nullable=True)
    supporter_type = Column(String(50), nullable=False, default="Unknown")
    supporter_type_source = Column(String(20), nullable=False, default="auto")  # auto | admin_override

    # provider name -> provider-native customer id
    linked_ids = Column(JSONB, nullable=False, default=dict)
    flags = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
