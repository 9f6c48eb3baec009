"""
Stripe Webhook Handler

Verifies the Stripe signature over the raw body and hands the event to
the reconciler. Every verified delivery is acknowledged with 200, even
when its handler failed; only a missing or invalid signature is rejected.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from postgen.api.dependencies import WebhookProcessorDep
from postgen.infrastructure.exceptions import SignatureError
from postgen.infrastructure.payments.stripe_service import (
    StripeService,
    get_stripe_service,
    stripe_field,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    processor: WebhookProcessorDep,
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Handle Stripe webhook events.

    Returns 400 if the signature is missing or invalid; otherwise 200.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        logger.warning("Webhook request without Stripe signature")
        return JSONResponse(status_code=400, content={"error": "Missing signature"})

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except SignatureError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid signature"})

    outcome = await processor.process(event)
    logger.debug(f"Webhook {stripe_field(event, 'id')} outcome: {outcome.value}")

    return {"received": True}
