"""Cursor storage for pull-based integrations."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String

from supporter360.db.base import Base


class IntegrationCheckpoint(Base):
    __tablename__ = "integration_checkpoint"

    name = Column(String(100), primary_key=True)
    value = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
