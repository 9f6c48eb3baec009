"""
Subscription Database Models

SQLModel tables for plans, user subscriptions and monthly post usage.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlmodel import Field, SQLModel

from postgen.infrastructure.db.models.base import TimestampMixin, UUIDMixin, utc_now


class SubscriptionPlanModel(UUIDMixin, SQLModel, table=True):
    """
    Plan catalog. Read-only to the API; seeded by scripts/seed_plans.py.

    monthly_post_limit = -1 means unlimited.
    """

    __tablename__ = "subscription_plans"

    name: str = Field(max_length=100, nullable=False)
    price: int = Field(default=0, nullable=False)
    monthly_post_limit: int = Field(default=0, nullable=False)
    stripe_price_id: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        sa_type=DateTime(timezone=True),
    )


class UserSubscriptionModel(UUIDMixin, TimestampMixin, table=True):
    """
    Current subscription per user (unique user_id, upserted).

    Rows transition between statuses and are never hard-deleted.
    """

    __tablename__ = "user_subscriptions"

    user_id: UUID = Field(sa_column=Column(PGUUID(as_uuid=True), unique=True, index=True, nullable=False))
    subscription_plan_id: UUID = Field(foreign_key="subscription_plans.id", nullable=False)
    status: str = Field(default="incomplete", max_length=32, index=True)

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, index=True, max_length=255)
    stripe_subscription_id: Optional[str] = Field(default=None, unique=True, index=True, max_length=255)

    # Billing period dates
    current_period_start: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    current_period_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    cancel_at_period_end: bool = Field(default=False)


class UserPostUsageModel(UUIDMixin, TimestampMixin, table=True):
    """Posts generated per user in the current period."""

    __tablename__ = "user_post_usage"

    user_id: UUID = Field(sa_column=Column(PGUUID(as_uuid=True), unique=True, index=True, nullable=False))
    count: int = Field(default=0, nullable=False)
    reset_date: datetime = Field(nullable=False, sa_type=DateTime(timezone=True))
