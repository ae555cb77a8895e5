"""Per-supporter Mailchimp engagement counters."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlalchemy.dialects.postgresql import UUID

from supporter360.db.base import Base


class MailchimpAggregate(Base):
    __tablename__ = "supporter_mailchimp_aggregate"

    supporter_id = Column(UUID(as_uuid=True), ForeignKey("supporter.supporter_id"), primary_key=True)
    click_count = Column(Integer, nullable=False, default=0)
    last_click_date = Column(DateTime(timezone=True), nullable=True)
