"""EmailAlias model: additional addresses that resolve to a Supporter."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from supporter360.db.base import Base


class EmailAlias(Base):
    __tablename__ = "email_alias"
    __table_args__ = (UniqueConstraint("email", "supporter_id", name="uq_email_alias_email_supporter"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    supporter_id = Column(UUID(as_uuid=True), ForeignKey("supporter.supporter_id"), nullable=False, index=True)
    email = Column(String(320), nullable=False, index=True)  # stored lower-cased
    is_shared = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
