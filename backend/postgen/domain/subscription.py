"""
Subscription Domain Models

Domain models for plans, subscriptions and post usage.
Enums, entities, request/response DTOs and the quota rules shared by the
status query and the post generation gate.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


UNLIMITED_POSTS = -1
DEFAULT_PERIOD_DAYS = 30


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status (Stripe vocabulary)."""
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


# =============================================================================
# Domain Entities
# =============================================================================

class SubscriptionPlan(BaseModel):
    """A priced tier defining a monthly post quota."""
    id: str
    name: str
    price: int = Field(ge=0, description="Price in minor currency units (0 = free)")
    monthly_post_limit: int = Field(ge=UNLIMITED_POSTS, description="-1 means unlimited")
    stripe_price_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_unlimited(self) -> bool:
        return self.monthly_post_limit == UNLIMITED_POSTS


class Subscription(BaseModel):
    """A user's current subscription record."""
    id: Optional[str] = None
    user_id: str
    subscription_plan_id: str
    # Stored verbatim; Stripe may introduce statuses we do not enumerate.
    status: str = SubscriptionStatus.INCOMPLETE.value
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    plan: Optional[SubscriptionPlan] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value


class Usage(BaseModel):
    """Posts generated by a user in the current period."""
    user_id: str
    count: int = Field(default=0, ge=0)
    reset_date: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


@dataclass(frozen=True)
class ProcessorSubscription:
    """Snapshot of a subscription as reported by the payment processor."""
    subscription_id: str
    status: str
    customer_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    user_id: Optional[str] = None
    plan_id: Optional[str] = None


# =============================================================================
# Quota Rules
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_period(
    now: Optional[datetime] = None,
    days: int = DEFAULT_PERIOD_DAYS,
) -> tuple[datetime, datetime]:
    """Provisional billing period used before the processor reports one."""
    start = now or utcnow()
    return start, start + timedelta(days=days)


def snapshot_changes(snapshot: ProcessorSubscription) -> dict:
    """
    Record fields to overwrite from a processor snapshot.

    Period bounds the processor did not report are left untouched.
    """
    changes = {
        "status": snapshot.status,
        "cancel_at_period_end": snapshot.cancel_at_period_end,
    }
    if snapshot.current_period_start is not None:
        changes["current_period_start"] = snapshot.current_period_start
    if snapshot.current_period_end is not None:
        changes["current_period_end"] = snapshot.current_period_end
    return changes


def remaining_posts(monthly_post_limit: int, used: int) -> float:
    """
    Posts left in the current period.

    Returns ``math.inf`` for unlimited plans, otherwise ``limit - used``
    floored at zero.
    """
    if monthly_post_limit == UNLIMITED_POSTS:
        return math.inf
    return max(0, monthly_post_limit - used)


def effective_usage(
    usage: Usage,
    now: Optional[datetime] = None,
    period_days: int = DEFAULT_PERIOD_DAYS,
) -> Usage:
    """
    Usage as it applies right now.

    Once ``reset_date`` has passed the stored count belongs to a finished
    period: it reads as zero and the reset date as the end of the period
    the next increment will open. The row itself is rolled on that increment.
    """
    now = now or utcnow()
    if usage.reset_date <= now:
        return usage.model_copy(
            update={"count": 0, "reset_date": now + timedelta(days=period_days)}
        )
    return usage


def remaining_for(
    subscription: Optional[Subscription],
    usage: Optional[Usage],
    now: Optional[datetime] = None,
) -> float:
    """Remaining posts for a subscription/usage pair; 0 without an active plan."""
    if subscription is None or not subscription.is_active or subscription.plan is None:
        return 0
    used = effective_usage(usage, now).count if usage else 0
    return remaining_posts(subscription.plan.monthly_post_limit, used)


def remaining_to_json(remaining: float) -> Optional[int]:
    """JSON has no infinity; unlimited is reported as null."""
    if math.isinf(remaining):
        return None
    return int(remaining)


# =============================================================================
# Request/Response DTOs
# =============================================================================

class PlanSelectionRequest(BaseModel):
    """Request body carrying a plan id (checkout and free activation)."""
    plan_id: Optional[str] = Field(default=None, alias="planId")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutResponse(BaseModel):
    """Hosted checkout URL to redirect the browser to."""
    url: str


class PlanResponse(BaseModel):
    id: str
    name: str
    price: int
    monthly_post_limit: int

    model_config = ConfigDict(from_attributes=True)


class SubscriptionResponse(BaseModel):
    """Subscription joined with its plan, shaped like the client expects."""
    id: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    subscription_plans: Optional[PlanResponse] = None

    @classmethod
    def from_domain(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            status=subscription.status,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
            subscription_plans=(
                PlanResponse.model_validate(subscription.plan)
                if subscription.plan else None
            ),
        )


class UsageResponse(BaseModel):
    count: int
    reset_date: datetime


class SubscriptionCheckResponse(BaseModel):
    """Response of the subscription status query."""
    has_active_subscription: bool = Field(alias="hasActiveSubscription")
    subscription: Optional[SubscriptionResponse] = None
    usage: UsageResponse
    remaining_posts: Optional[int] = Field(
        default=0,
        alias="remainingPosts",
        description="null means unlimited",
    )

    model_config = ConfigDict(populate_by_name=True)


@dataclass
class SubscriptionCheckResult:
    """Outcome of a status query before serialization."""
    has_active_subscription: bool
    subscription: Optional[Subscription]
    usage: Usage

    def to_response(self) -> SubscriptionCheckResponse:
        remaining = (
            remaining_for(self.subscription, self.usage)
            if self.has_active_subscription else 0
        )
        return SubscriptionCheckResponse(
            has_active_subscription=self.has_active_subscription,
            subscription=(
                SubscriptionResponse.from_domain(self.subscription)
                if self.subscription else None
            ),
            usage=UsageResponse(count=self.usage.count, reset_date=self.usage.reset_date),
            remaining_posts=remaining_to_json(remaining),
        )
