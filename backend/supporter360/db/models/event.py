"""Event model: immutable facts on a Supporter's timeline."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID

from supporter360.db.base import Base


class Event(Base):
    __tablename__ = "event"
    __table_args__ = (UniqueConstraint("source_system", "external_id", name="uq_event_source_external"),)

    event_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    supporter_id = Column(UUID(as_uuid=True), ForeignKey("supporter.supporter_id"), nullable=False, index=True)
    source_system = Column(String(32), nullable=False)
    event_type = Column(String(32), nullable=False)  # TicketPurchase, StadiumEntry, ShopOrder, ...
    event_time = Column(DateTime(timezone=True), nullable=False, index=True)
    external_id = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONB, nullable=False, default=dict)
    raw_payload_ref = Column(String(512), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    # NO updated_at -- only metadata/raw_payload_ref change, via upsert on conflict
