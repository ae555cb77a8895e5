"""Canonical enumerations shared by persistence, processors and services."""

from enum import Enum


class SourceSystem(str, Enum):
    SHOPIFY = "shopify"
    STRIPE = "stripe"
    GOCARDLESS = "gocardless"
    FUTURETICKETING = "futureticketing"
    MAILCHIMP = "mailchimp"


class EventType(str, Enum):
    TICKET_PURCHASE = "TicketPurchase"
    STADIUM_ENTRY = "StadiumEntry"
    SHOP_ORDER = "ShopOrder"
    MEMBERSHIP_EVENT = "MembershipEvent"
    PAYMENT_EVENT = "PaymentEvent"
    EMAIL_CLICK = "EmailClick"


class MembershipStatus(str, Enum):
    ACTIVE = "Active"
    PAST_DUE = "Past Due"
    CANCELLED = "Cancelled"
    UNKNOWN = "Unknown"


class Cadence(str, Enum):
    MONTHLY = "Monthly"
    ANNUAL = "Annual"


class BillingMethod(str, Enum):
    STRIPE = "stripe"
    GOCARDLESS = "gocardless"


class Tier(str, Enum):
    FULL = "Full"
    OAP = "OAP"
    STUDENT = "Student"
    OVERSEAS = "Overseas"


class SupporterType(str, Enum):
    MEMBER = "Member"
    SEASON_TICKET_HOLDER = "Season Ticket Holder"
    TICKET_BUYER = "Ticket Buyer"
    SHOP_BUYER = "Shop Buyer"
    AWAY_SUPPORTER = "Away Supporter"
    STAFF_VIP = "Staff/VIP"
    UNKNOWN = "Unknown"


class SupporterTypeSource(str, Enum):
    AUTO = "auto"
    ADMIN_OVERRIDE = "admin_override"


def parse_enum(enum_cls, value):
    """Return the member of ``enum_cls`` whose value equals ``value``, else None."""
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None
