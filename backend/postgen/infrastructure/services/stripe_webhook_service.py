"""
Stripe Webhook Reconciler

Applies verified Stripe events to the stored subscription records.

Handled events:
- checkout.session.completed: Activate subscription after payment
- invoice.payment_succeeded: Refresh status and billing period
- customer.subscription.updated: Sync status, period and cancel flag
- customer.subscription.deleted: Mark subscription canceled

Rows are located by the user id in event metadata, falling back to the
stored Stripe subscription id. Every handler writes absolute values, so
replaying an event leaves the row unchanged.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from postgen.domain.subscription import (
    DEFAULT_PERIOD_DAYS,
    ProcessorSubscription,
    Subscription,
    SubscriptionStatus,
    default_period,
    snapshot_changes,
)
from postgen.infrastructure.db.repositories import (
    SubscriptionRepository,
    WebhookEventRepository,
)
from postgen.infrastructure.exceptions import ProcessorError
from postgen.infrastructure.payments.stripe_service import (
    StripeService,
    invoice_subscription_id,
    stripe_field,
    stripe_id,
    to_processor_subscription,
)


logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    FAILED = "failed"


class StripeWebhookProcessor:
    """Dispatches Stripe events to their state transitions."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        events: WebhookEventRepository,
        stripe_service: StripeService,
        period_days: int = DEFAULT_PERIOD_DAYS,
    ):
        self._subscriptions = subscriptions
        self._events = events
        self._stripe = stripe_service
        self._period_days = period_days
        self._handlers: dict[str, Callable[[Any], Awaitable[None]]] = {
            "checkout.session.completed": self.handle_checkout_completed,
            "invoice.payment_succeeded": self.handle_invoice_payment_succeeded,
            "customer.subscription.updated": self.handle_subscription_updated,
            "customer.subscription.deleted": self.handle_subscription_deleted,
        }

    @property
    def handled_event_types(self) -> list[str]:
        return list(self._handlers)

    async def process(self, event: Any) -> WebhookOutcome:
        """
        Process one verified event.

        Handler failures are logged and reported as ``FAILED``; the caller
        still acknowledges the delivery. An event is recorded as processed
        only after its handler succeeded.
        """
        event_id = stripe_field(event, "id")
        event_type = stripe_field(event, "type")

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled event type: {event_type} ({event_id})")
            return WebhookOutcome.IGNORED

        if event_id and await self._events.is_processed(event_id):
            logger.info(f"Event {event_id} already processed, skipping")
            return WebhookOutcome.DUPLICATE

        logger.info(f"Processing webhook event: {event_type} ({event_id})")
        payload = stripe_field(stripe_field(event, "data"), "object")

        try:
            async with self._subscriptions.savepoint():
                await handler(payload)
                if event_id:
                    await self._events.mark_processed(event_id, event_type)
        except Exception as e:
            logger.error(f"Error processing webhook {event_type} ({event_id}): {e}")
            return WebhookOutcome.FAILED

        return WebhookOutcome.PROCESSED

    # =========================================================================
    # Event Handlers
    # =========================================================================

    async def handle_checkout_completed(self, session: Any) -> None:
        """
        Activate the subscription bought through a checkout session.

        The processor subscription is fetched for accurate period bounds;
        without it a provisional period is stored on insert.
        """
        metadata = stripe_field(session, "metadata") or {}
        user_id = stripe_field(metadata, "user_id")
        plan_id = stripe_field(metadata, "plan_id")
        subscription_ref = stripe_id(stripe_field(session, "subscription"))

        if not subscription_ref or not user_id or not plan_id:
            logger.warning(
                f"Checkout session {stripe_field(session, 'id')} lacks subscription "
                f"or user/plan metadata, skipping"
            )
            return

        snapshot: Optional[ProcessorSubscription] = None
        try:
            snapshot = await self._stripe.retrieve_subscription(subscription_ref)
        except ProcessorError as e:
            logger.warning(f"Using provisional period for {subscription_ref}: {e}")

        start, end = default_period(days=self._period_days)
        fields = [
            "subscription_plan_id",
            "status",
            "stripe_customer_id",
            "stripe_subscription_id",
        ]
        cancel_at_period_end = False
        if snapshot is not None:
            if snapshot.current_period_start is not None:
                start = snapshot.current_period_start
                fields.append("current_period_start")
            if snapshot.current_period_end is not None:
                end = snapshot.current_period_end
                fields.append("current_period_end")
            cancel_at_period_end = snapshot.cancel_at_period_end
            fields.append("cancel_at_period_end")

        subscription = Subscription(
            user_id=user_id,
            subscription_plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE.value,
            stripe_customer_id=stripe_id(stripe_field(session, "customer")),
            stripe_subscription_id=subscription_ref,
            current_period_start=start,
            current_period_end=end,
            cancel_at_period_end=cancel_at_period_end,
        )
        await self._subscriptions.upsert(subscription, fields)
        logger.info(f"Activated subscription {subscription_ref} for user {user_id}")

    async def handle_invoice_payment_succeeded(self, invoice: Any) -> None:
        """
        Refresh status and period after a paid invoice.

        Invoices carry no custom metadata; the parent subscription is
        fetched to obtain it.
        """
        subscription_ref = invoice_subscription_id(invoice)
        if not subscription_ref:
            logger.info(f"Invoice {stripe_field(invoice, 'id')} has no subscription, skipping")
            return

        snapshot = await self._stripe.retrieve_subscription(subscription_ref)
        if await self._apply(snapshot, snapshot_changes(snapshot)):
            logger.info(f"Renewed subscription {subscription_ref} ({snapshot.status})")

    async def handle_subscription_updated(self, subscription: Any) -> None:
        """Sync status, period bounds and the cancel flag."""
        snapshot = to_processor_subscription(subscription)
        if await self._apply(snapshot, snapshot_changes(snapshot)):
            logger.info(f"Synced subscription {snapshot.subscription_id} ({snapshot.status})")

    async def handle_subscription_deleted(self, subscription: Any) -> None:
        snapshot = to_processor_subscription(subscription)
        if await self._apply(snapshot, {"status": SubscriptionStatus.CANCELED.value}):
            logger.info(f"Canceled subscription {snapshot.subscription_id}")

    async def _superseded(self, snapshot: ProcessorSubscription) -> bool:
        """True when the user's row already tracks a different subscription."""
        current = await self._subscriptions.get_by_user_id(snapshot.user_id)
        return (
            current is not None
            and bool(current.stripe_subscription_id)
            and current.stripe_subscription_id != snapshot.subscription_id
        )

    async def _apply(self, snapshot: ProcessorSubscription, changes: dict) -> bool:
        """
        Update by metadata user id, else by stored subscription id.

        Events for a subscription the user has since replaced never touch
        the row. Returns whether a row was updated.
        """
        if snapshot.user_id:
            if await self._superseded(snapshot):
                logger.info(
                    f"Ignoring event for superseded subscription {snapshot.subscription_id} "
                    f"of user {snapshot.user_id}"
                )
                return False
            changes = {**changes, "stripe_subscription_id": snapshot.subscription_id}
            updated = await self._subscriptions.update_by_user_id(snapshot.user_id, changes)
            target = f"user {snapshot.user_id}"
        else:
            updated = await self._subscriptions.update_by_stripe_subscription_id(
                snapshot.subscription_id, changes
            )
            target = f"subscription {snapshot.subscription_id}"

        if not updated:
            logger.warning(f"No subscription row found for {target}")
        return bool(updated)
