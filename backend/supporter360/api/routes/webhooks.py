"""Webhook ingress: verify, store raw, enqueue, acknowledge.

Processing happens asynchronously on the provider queues, so every route
answers as soon as the payload is durable.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from supporter360.domain.types import SourceSystem
from supporter360.registry import build_receiver
from supporter360.webhooks.receiver import WebhookReceiver

router = APIRouter()


def get_shopify_receiver() -> WebhookReceiver:
    return build_receiver(SourceSystem.SHOPIFY)


def get_stripe_receiver() -> WebhookReceiver:
    return build_receiver(SourceSystem.STRIPE)


def get_gocardless_receiver() -> WebhookReceiver:
    return build_receiver(SourceSystem.GOCARDLESS)


def get_mailchimp_receiver() -> WebhookReceiver:
    return build_receiver(SourceSystem.MAILCHIMP)


async def _receive(request: Request, receiver: WebhookReceiver) -> JSONResponse:
    body = await request.body()
    result = await receiver.receive(body, request.headers)
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.post("/shopify")
async def shopify_webhook(request: Request, receiver: WebhookReceiver = Depends(get_shopify_receiver)):
    return await _receive(request, receiver)


@router.post("/stripe")
async def stripe_webhook(request: Request, receiver: WebhookReceiver = Depends(get_stripe_receiver)):
    return await _receive(request, receiver)


@router.post("/gocardless")
async def gocardless_webhook(request: Request, receiver: WebhookReceiver = Depends(get_gocardless_receiver)):
    return await _receive(request, receiver)


@router.post("/mailchimp")
async def mailchimp_webhook(request: Request, receiver: WebhookReceiver = Depends(get_mailchimp_receiver)):
    return await _receive(request, receiver)


@router.get("/mailchimp")
async def mailchimp_webhook_validation():
    """Mailchimp issues a GET when the webhook URL is registered."""
    return {"status": "ok"}
