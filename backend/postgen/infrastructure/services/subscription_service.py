"""
Subscription Service

Application service behind the subscription endpoints:

- status query with processor corroboration and usage seeding
- hosted checkout initiation
- free plan self-activation

The webhook reconciler owns every other status transition.
"""

import asyncio
import logging
from typing import Optional

from postgen.config.settings import Settings
from postgen.domain.auth import AuthenticatedUser
from postgen.domain.subscription import (
    Subscription,
    SubscriptionCheckResult,
    SubscriptionPlan,
    SubscriptionStatus,
    default_period,
    effective_usage,
    snapshot_changes,
)
from postgen.infrastructure.auth.user_directory import SupabaseUserDirectory
from postgen.infrastructure.db.repositories import (
    PlanRepository,
    SubscriptionRepository,
    UsageRepository,
)
from postgen.infrastructure.exceptions import (
    DatabaseError,
    MissingPriceMappingError,
    PlanNotFoundError,
    ValidationError,
)
from postgen.infrastructure.payments.stripe_service import StripeService


logger = logging.getLogger(__name__)

SUCCESS_PATH = "/subscription-success?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "/subscriptions"

# Columns the pending checkout row overwrites; processor references stay.
PENDING_FIELDS = (
    "subscription_plan_id",
    "status",
    "stripe_customer_id",
    "current_period_start",
    "current_period_end",
)


class SubscriptionService:
    """Subscription use cases for the authenticated user."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        usage: UsageRepository,
        plans: PlanRepository,
        stripe_service: StripeService,
        settings: Settings,
        user_directory: Optional[SupabaseUserDirectory] = None,
    ):
        self._subscriptions = subscriptions
        self._usage = usage
        self._plans = plans
        self._stripe = stripe_service
        self._user_directory = user_directory
        self._corroborate_status = settings.stripe_corroborate_status
        self._corroboration_timeout = settings.stripe_corroboration_timeout_seconds
        self._period_days = settings.subscription_period_days
        self._frontend_url = settings.frontend_url

    # =========================================================================
    # Status Query
    # =========================================================================

    async def check_status(self, user: AuthenticatedUser) -> SubscriptionCheckResult:
        """
        Report whether the user may use paid features right now.

        The stored row is authoritative unless the processor, when reachable,
        reports the subscription as no longer active. In that case the row is
        downgraded before answering.
        """
        subscription = await self._subscriptions.get_active_by_user_id(user.id)
        if subscription is not None:
            subscription = await self._corroborate(subscription)

        usage = effective_usage(await self._usage.ensure(user.id), period_days=self._period_days)
        active = subscription is not None and subscription.is_active

        logger.info(
            f"Subscription check for user {user.id}: active={active}, used={usage.count}"
        )
        return SubscriptionCheckResult(
            has_active_subscription=active,
            subscription=subscription,
            usage=usage,
        )

    async def _corroborate(self, subscription: Subscription) -> Subscription:
        reference = subscription.stripe_subscription_id
        if not self._corroborate_status or not reference:
            return subscription

        try:
            snapshot = await asyncio.wait_for(
                self._stripe.retrieve_subscription(reference),
                timeout=self._corroboration_timeout,
            )
        except Exception as e:
            # Stored state stands when the processor cannot answer.
            logger.warning(f"Could not corroborate subscription {reference}: {e}")
            return subscription

        if snapshot.status == SubscriptionStatus.ACTIVE.value:
            return subscription

        changes = snapshot_changes(snapshot)
        await self._subscriptions.update_by_user_id(subscription.user_id, changes)
        logger.info(
            f"Processor reports subscription {reference} as {snapshot.status}; "
            f"downgraded user {subscription.user_id}"
        )
        return subscription.model_copy(update=changes)

    # =========================================================================
    # Checkout
    # =========================================================================

    async def create_checkout(
        self,
        user: AuthenticatedUser,
        plan_id: Optional[str],
        origin: Optional[str] = None,
    ) -> str:
        """
        Start a hosted checkout for a paid plan.

        Args:
            user: Authenticated user
            plan_id: Plan to subscribe to
            origin: Browser origin used for the return URLs

        Returns:
            Checkout URL to redirect the browser to
        """
        if not plan_id:
            raise ValidationError("Plan ID fehlt")

        plan = await self._get_plan(plan_id)
        if not plan.stripe_price_id:
            raise MissingPriceMappingError(plan_id)

        existing = await self._subscriptions.get_by_user_id(user.id)
        email = user.email
        if not email and self._user_directory is not None:
            email = await self._user_directory.get_email(user.id)

        customer_id = await self._stripe.find_or_create_customer(
            user_id=user.id,
            email=email,
            existing_customer_id=existing.stripe_customer_id if existing else None,
        )

        base_url = (origin or self._frontend_url).rstrip("/")
        session = await self._stripe.create_checkout_session(
            customer_id=customer_id,
            price_id=plan.stripe_price_id,
            user_id=user.id,
            plan_id=plan.id,
            success_url=f"{base_url}{SUCCESS_PATH}",
            cancel_url=f"{base_url}{CANCEL_PATH}",
        )

        await self._record_pending(user.id, plan, customer_id)
        return session.url

    async def _record_pending(
        self,
        user_id: str,
        plan: SubscriptionPlan,
        customer_id: str,
    ) -> None:
        start, end = default_period(days=self._period_days)
        pending = Subscription(
            user_id=user_id,
            subscription_plan_id=plan.id,
            status=SubscriptionStatus.INCOMPLETE.value,
            stripe_customer_id=customer_id,
            current_period_start=start,
            current_period_end=end,
        )
        try:
            async with self._subscriptions.savepoint():
                await self._subscriptions.upsert(pending, PENDING_FIELDS)
        except DatabaseError as e:
            # The webhook creates the row on completion; checkout proceeds.
            logger.error(f"Failed to record pending subscription for user {user_id}: {e}")

    # =========================================================================
    # Free Plan
    # =========================================================================

    async def activate_free_plan(
        self,
        user: AuthenticatedUser,
        plan_id: Optional[str],
    ) -> Subscription:
        """
        Activate a zero-price plan without the processor.

        Raises:
            ValidationError: plan id missing, plan not free, or a paid
                processor subscription is still running
            PlanNotFoundError: unknown plan id
        """
        if not plan_id:
            raise ValidationError("Plan ID fehlt")

        plan = await self._get_plan(plan_id)
        if not plan.is_free:
            raise ValidationError("Dieser Plan ist nicht kostenlos")

        existing = await self._subscriptions.get_by_user_id(user.id)
        if (
            existing is not None
            and existing.is_active
            and existing.stripe_subscription_id
            and existing.plan is not None
            and not existing.plan.is_free
        ):
            raise ValidationError(
                "Bitte kündige zuerst dein bezahltes Abonnement",
                details={"stripe_subscription_id": existing.stripe_subscription_id},
            )

        start, end = default_period(days=self._period_days)
        subscription = Subscription(
            user_id=user.id,
            subscription_plan_id=plan.id,
            status=SubscriptionStatus.ACTIVE.value,
            stripe_customer_id=existing.stripe_customer_id if existing else None,
            stripe_subscription_id=None,
            current_period_start=start,
            current_period_end=end,
            cancel_at_period_end=False,
        )
        stored = await self._subscriptions.upsert(subscription)
        await self._usage.ensure(user.id)

        logger.info(f"Activated free plan {plan.name} for user {user.id}")
        return stored

    async def _get_plan(self, plan_id: str) -> SubscriptionPlan:
        plan = await self._plans.get_plan(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan
