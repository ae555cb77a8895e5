"""Builds receivers, processors and clients from Settings."""

from __future__ import annotations

from supporter360.core.config import Settings, get_settings
from supporter360.db.repositories import (
    CheckpointRepository,
    EventRepository,
    MembershipRepository,
    ProductMappingRepository,
    SupporterRepository,
)
from supporter360.domain.types import SourceSystem
from supporter360.integrations.future_ticketing import FutureTicketingClient
from supporter360.integrations.gocardless import GoCardlessClient
from supporter360.integrations.mailchimp import MailchimpClient
from supporter360.integrations.shopify import ShopifyClient
from supporter360.integrations.stripe import StripeClient
from supporter360.pollers.futureticketing import FutureTicketingPoller
from supporter360.processors.base import EventProcessor
from supporter360.processors.futureticketing import FutureTicketingProcessor
from supporter360.processors.gocardless import GoCardlessProcessor
from supporter360.processors.mailchimp import MailchimpProcessor
from supporter360.processors.shopify import ShopifyProcessor
from supporter360.processors.stripe import StripeProcessor
from supporter360.queue.event_queue import EventQueue
from supporter360.storage.payload_store import RawPayloadStore
from supporter360.webhooks.receiver import (
    GoCardlessReceiver,
    MailchimpReceiver,
    ShopifyReceiver,
    StripeReceiver,
    WebhookReceiver,
)


def build_queue(provider: SourceSystem, settings: Settings | None = None) -> EventQueue:
    settings = settings or get_settings()
    return EventQueue(settings.queue_url_for(provider.value), region=settings.aws_region)


def build_receiver(provider: SourceSystem, settings: Settings | None = None) -> WebhookReceiver:
    settings = settings or get_settings()
    store = RawPayloadStore(settings.raw_payloads_bucket, region=settings.aws_region)
    queue = build_queue(provider, settings)

    match provider:
        case SourceSystem.SHOPIFY:
            return ShopifyReceiver(store, queue, settings.shopify_webhook_secret)
        case SourceSystem.STRIPE:
            return StripeReceiver(
                store,
                queue,
                settings.stripe_webhook_secret,
                tolerance=settings.stripe_webhook_tolerance_seconds,
            )
        case SourceSystem.GOCARDLESS:
            return GoCardlessReceiver(store, queue, settings.gocardless_webhook_secret)
        case SourceSystem.MAILCHIMP:
            return MailchimpReceiver(store, queue)
        case _:
            raise ValueError(f"{provider.value} has no webhook receiver")


def _client_options(settings: Settings) -> dict:
    return {"timeout": settings.provider_timeout_seconds, "retry_attempts": settings.provider_retry_attempts}


def build_processor(provider: SourceSystem, settings: Settings | None = None) -> EventProcessor:
    settings = settings or get_settings()
    repos = (SupporterRepository(), EventRepository(), MembershipRepository())

    match provider:
        case SourceSystem.STRIPE:
            client = StripeClient(settings.stripe_api_key, settings.provider_retry_attempts) if settings.stripe_api_key else None
            return StripeProcessor(*repos, client=client)
        case SourceSystem.GOCARDLESS:
            client = GoCardlessClient(
                settings.gocardless_access_token,
                settings.gocardless_environment,
                **_client_options(settings),
            )
            return GoCardlessProcessor(*repos, client=client)
        case SourceSystem.SHOPIFY:
            client = None
            if settings.shopify_access_token and settings.shopify_shop_domain:
                client = ShopifyClient(
                    settings.shopify_shop_domain,
                    settings.shopify_access_token,
                    settings.shopify_api_version,
                    **_client_options(settings),
                )
            return ShopifyProcessor(*repos, client=client)
        case SourceSystem.MAILCHIMP:
            client = MailchimpClient(settings.mailchimp_api_key, **_client_options(settings)) if settings.mailchimp_api_key else None
            return MailchimpProcessor(*repos, client=client)
        case SourceSystem.FUTURETICKETING:
            return FutureTicketingProcessor(*repos, product_mappings=ProductMappingRepository())
        case _:
            raise ValueError(f"No processor for {provider.value}")


def build_futureticketing_poller(settings: Settings | None = None) -> FutureTicketingPoller:
    settings = settings or get_settings()
    client = FutureTicketingClient(
        settings.future_ticketing_api_url,
        settings.future_ticketing_api_key,
        settings.future_ticketing_private_key,
        timeout=settings.provider_timeout_seconds,
    )
    return FutureTicketingPoller(client, build_queue(SourceSystem.FUTURETICKETING, settings), CheckpointRepository())
