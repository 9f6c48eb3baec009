"""
Stripe Payment Service

Infrastructure service for Stripe payment processing.
Handles customers, hosted checkout sessions, subscription lookups and
webhook signature verification.

Stripe's client is synchronous; calls run in a worker thread so they do
not block the event loop.
"""

import asyncio
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

import stripe
from stripe import SignatureVerificationError, StripeError

from postgen.config.settings import Settings, get_settings
from postgen.domain.subscription import ProcessorSubscription
from postgen.infrastructure.exceptions import ProcessorError, SignatureError


logger = logging.getLogger(__name__)


# =============================================================================
# Stripe object helpers
# =============================================================================

def stripe_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a StripeObject or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return getattr(obj, key, default)
    return default if value is None else value


def stripe_id(value: Any) -> Optional[str]:
    """Reference that may be a bare id or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return stripe_field(value, "id")


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _period_bound(subscription: Any, key: str) -> Optional[datetime]:
    # Newer API versions report the period on subscription items only.
    value = stripe_field(subscription, key)
    if value is None:
        items = stripe_field(stripe_field(subscription, "items"), "data") or []
        if items:
            value = stripe_field(items[0], key)
    return from_timestamp(value)


def to_processor_subscription(subscription: Any) -> ProcessorSubscription:
    """Convert a Stripe subscription object into a domain snapshot."""
    metadata = stripe_field(subscription, "metadata") or {}
    return ProcessorSubscription(
        subscription_id=stripe_field(subscription, "id"),
        status=stripe_field(subscription, "status"),
        customer_id=stripe_id(stripe_field(subscription, "customer")),
        current_period_start=_period_bound(subscription, "current_period_start"),
        current_period_end=_period_bound(subscription, "current_period_end"),
        cancel_at_period_end=bool(stripe_field(subscription, "cancel_at_period_end", False)),
        user_id=stripe_field(metadata, "user_id"),
        plan_id=stripe_field(metadata, "plan_id"),
    )


def invoice_subscription_id(invoice: Any) -> Optional[str]:
    """Subscription an invoice belongs to (top-level or under ``parent``)."""
    reference = stripe_field(invoice, "subscription")
    if reference is None:
        details = stripe_field(stripe_field(invoice, "parent"), "subscription_details")
        reference = stripe_field(details, "subscription")
    return stripe_id(reference)


class StripeService:
    """
    Stripe payment processing service.

    Processor failures surface as ``ProcessorError``; signature problems as
    ``SignatureError``.
    """

    def __init__(self, settings: Settings):
        """Initialize Stripe with the API key from settings."""
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        stripe.api_key = self._api_key

    # =========================================================================
    # Customer Management
    # =========================================================================

    async def find_or_create_customer(
        self,
        user_id: str,
        email: Optional[str],
        existing_customer_id: Optional[str] = None,
    ) -> str:
        """
        Resolve the Stripe customer for a user.

        Order: stored customer id, then a customer with the same email,
        then a new customer carrying the user id in metadata.

        Returns:
            Stripe customer id
        """
        try:
            if existing_customer_id:
                customer = await asyncio.to_thread(stripe.Customer.retrieve, existing_customer_id)
                if not stripe_field(customer, "deleted"):
                    logger.info(f"Reusing stored Stripe customer {existing_customer_id}")
                    return existing_customer_id
                logger.warning(f"Stored customer {existing_customer_id} was deleted")

            if email:
                customers = await asyncio.to_thread(stripe.Customer.list, email=email, limit=1)
                data = stripe_field(customers, "data") or []
                if data:
                    customer_id = stripe_field(data[0], "id")
                    logger.info(f"Found existing Stripe customer {customer_id} for user {user_id}")
                    return customer_id

            customer = await asyncio.to_thread(
                stripe.Customer.create,
                email=email,
                metadata={"user_id": user_id},
            )
            logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
            return customer.id

        except StripeError as e:
            logger.error(f"Failed to resolve Stripe customer: {e}")
            raise ProcessorError(
                "Fehler beim Erstellen der Zahlungssitzung",
                operation="customer",
                original_error=e,
            ) from e

    # =========================================================================
    # Checkout Session
    # =========================================================================

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: str,
        plan_id: str,
        success_url: str,
        cancel_url: str,
    ) -> stripe.checkout.Session:
        """
        Create a hosted Checkout Session in subscription mode.

        user_id and plan_id are attached to both the session and the
        subscription it creates, so webhook events can be attributed
        without a secondary lookup.
        """
        metadata = {"user_id": user_id, "plan_id": plan_id}
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price": price_id,
                        "quantity": 1,
                    }
                ],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data={"metadata": metadata},
            )

            logger.info(
                f"Created checkout session {session.id} for user {user_id}, plan={plan_id}"
            )
            return session

        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise ProcessorError(
                "Fehler beim Erstellen der Zahlungssitzung",
                operation="checkout",
                original_error=e,
            ) from e

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def retrieve_subscription(self, subscription_id: str) -> ProcessorSubscription:
        """
        Fetch the processor's current view of a subscription.

        Raises:
            ProcessorError if Stripe cannot be reached or the id is unknown
        """
        try:
            subscription = await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
        except StripeError as e:
            logger.warning(f"Failed to retrieve subscription {subscription_id}: {e}")
            raise ProcessorError(
                "Abonnement konnte nicht abgerufen werden",
                operation="retrieve_subscription",
                original_error=e,
            ) from e
        return to_processor_subscription(subscription)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> stripe.Event:
        """
        Verify webhook signature over the raw body and construct the event.

        Raises:
            SignatureError if the payload or signature is invalid
        """
        try:
            return stripe.Webhook.construct_event(
                payload,
                signature,
                self._webhook_secret,
            )
        except ValueError as e:
            raise SignatureError(f"Invalid payload: {e}", operation="webhook") from e
        except SignatureVerificationError as e:
            raise SignatureError(f"Invalid signature: {e}", operation="webhook") from e


@lru_cache
def get_stripe_service() -> StripeService:
    """Get the Stripe service built from application settings."""
    return StripeService(get_settings())
