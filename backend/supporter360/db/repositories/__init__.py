"""Persistence boundary: one repository per aggregate, each owning short-lived sessions."""

from supporter360.db.repositories.checkpoint import CheckpointRepository
from supporter360.db.repositories.event import EventRepository
from supporter360.db.repositories.membership import MembershipRepository
from supporter360.db.repositories.product_mapping import ProductMappingRepository
from supporter360.db.repositories.supporter import SupporterRepository

__all__ = [
    "CheckpointRepository",
    "EventRepository",
    "MembershipRepository",
    "ProductMappingRepository",
    "SupporterRepository",
]
