"""Future Ticketing product/category classification table."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from supporter360.db.base import Base


class ProductMapping(Base):
    __tablename__ = "future_ticketing_product_mapping"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(64), nullable=True, index=True)
    category_id = Column(String(64), nullable=True, index=True)
    meaning = Column(String(100), nullable=False)  # free text, e.g. "Season Ticket", "Away Supporter"
    effective_from = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    notes = Column(Text, nullable=True)
