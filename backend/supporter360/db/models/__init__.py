"""Re-export all models so Base.metadata sees them."""

from supporter360.db.models.email_alias import EmailAlias
from supporter360.db.models.event import Event
from supporter360.db.models.integration_checkpoint import IntegrationCheckpoint
from supporter360.db.models.mailchimp_aggregate import MailchimpAggregate
from supporter360.db.models.membership import Membership
from supporter360.db.models.product_mapping import ProductMapping
from supporter360.db.models.supporter import Supporter

__all__ = [
    "EmailAlias",
    "Event",
    "IntegrationCheckpoint",
    "MailchimpAggregate",
    "Membership",
    "ProductMapping",
    "Supporter",
]
