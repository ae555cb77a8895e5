"""Mailchimp event processor.

- click: EmailClick for exactly one matching Supporter; never creates Supporters
- subscribe/profile: link the list member id to the Supporter
- upemail: register the new address as an alias
- unsubscribe/cleaned/campaign: acknowledged, no writes
"""

from __future__ import annotations

from enum import Enum
from typing import Any, assert_never

import structlog

from supporter360.domain.types import EventType, SourceSystem, parse_enum
from supporter360.integrations.mailchimp import MailchimpClient
from supporter360.processors.base import EventProcessor, parse_timestamp
from supporter360.services.identity import CandidateLinkage, display_name, normalize_email
from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)


class MailchimpEventType(str, Enum):
    CLICK = "click"
    SUBSCRIBE = "subscribe"
    PROFILE = "profile"
    UPEMAIL = "upemail"
    UNSUBSCRIBE = "unsubscribe"
    CLEANED = "cleaned"
    CAMPAIGN = "campaign"


class MailchimpProcessor(EventProcessor):
    provider = SourceSystem.MAILCHIMP

    def __init__(self, supporters, events, memberships, client: MailchimpClient | None = None) -> None:
        super().__init__(supporters, events, memberships)
        self.client = client

    async def handle(self, message: QueueMessage) -> None:
        event = message.event
        event_type = parse_enum(MailchimpEventType, event.get("type"))
        if event_type is None:
            logger.warning("mailchimp_event_type_unhandled", event_type=event.get("type"))
            return

        data = event.get("data") or {}
        match event_type:
            case MailchimpEventType.CLICK:
                await self._click(data, event.get("fired_at"), message.s3_key)
            case MailchimpEventType.SUBSCRIBE | MailchimpEventType.PROFILE:
                await self._member(data)
            case MailchimpEventType.UPEMAIL:
                await self._email_changed(data)
            case MailchimpEventType.UNSUBSCRIBE | MailchimpEventType.CLEANED | MailchimpEventType.CAMPAIGN:
                logger.info("mailchimp_event_acknowledged", event_type=event_type.value)
            case _:
                assert_never(event_type)

    async def _click(self, data: dict[str, Any], fired_at: str | None, s3_key: str | None) -> None:
        email = normalize_email(data.get("email"))
        if email is None:
            logger.warning("mailchimp_click_without_email")
            return

        supporters = await self.supporters.find_by_email(email)
        if not supporters:
            logger.info("mailchimp_click_unknown_email")
            return
        if len(supporters) > 1:
            logger.warning("mailchimp_click_shared_email", match_count=len(supporters))
            return
        supporter = supporters[0]

        timestamp = data.get("timestamp") or fired_at
        event_time = parse_timestamp(timestamp)
        external_id = f"mailchimp-click-{data.get('campaign_id') or 'unknown'}-{email}-{timestamp or event_time.isoformat()}"
        if not await self.guard.is_new(self.provider.value, external_id, "Click"):
            return

        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.EMAIL_CLICK.value,
            event_time=event_time,
            external_id=external_id,
            metadata={
                "email": email,
                "campaign_id": data.get("campaign_id"),
                "url": data.get("url"),
            },
            raw_payload_ref=s3_key,
        )
        await self.supporters.increment_click_count(supporter.supporter_id, event_time)
        logger.info("mailchimp_click_recorded", supporter_id=str(supporter.supporter_id))

    async def _member(self, data: dict[str, Any]) -> None:
        email = normalize_email(data.get("email"))
        if email is None:
            logger.warning("mailchimp_member_without_email", member_id=data.get("id"))
            return

        merges = data.get("merges") or {}
        name = display_name(merges.get("FNAME"), merges.get("LNAME"))
        phone = merges.get("PHONE") or None
        member_id = data.get("id") or data.get("web_id")

        if (not name or not member_id) and self.client is not None and data.get("list_id"):
            member = await self.client.get_member(data["list_id"], email)
            if member:
                fields = member.get("merge_fields") or {}
                name = name or display_name(fields.get("FNAME"), fields.get("LNAME"))
                member_id = member_id or member.get("id")

        await self.identity.resolve(
            email,
            CandidateLinkage(
                provider=self.provider.value,
                customer_id=str(member_id) if member_id else None,
                name=name,
                phone=phone,
            ),
        )

    async def _email_changed(self, data: dict[str, Any]) -> None:
        old_email = normalize_email(data.get("old_email"))
        new_email = normalize_email(data.get("new_email"))
        if old_email is None or new_email is None:
            logger.warning("mailchimp_upemail_incomplete")
            return

        supporters = await self.supporters.find_by_email(old_email)
        if len(supporters) != 1:
            logger.warning("mailchimp_upemail_ambiguous", match_count=len(supporters))
            return

        await self.supporters.add_email_alias(supporters[0].supporter_id, new_email, is_shared=False)
        logger.info("mailchimp_email_alias_added", supporter_id=str(supporters[0].supporter_id))
