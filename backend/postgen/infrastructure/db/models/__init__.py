"""
SQLModel ORM Models for PostGen API

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from postgen.infrastructure.db.models.base import (
    TimestampMixin,
    UUIDMixin,
)
from postgen.infrastructure.db.models.subscription import (
    SubscriptionPlanModel,
    UserSubscriptionModel,
    UserPostUsageModel,
)
from postgen.infrastructure.db.models.saved_post import SavedPostModel
from postgen.infrastructure.db.models.webhook_event import ProcessedWebhookEventModel


__all__ = [
    # Base
    "TimestampMixin",
    "UUIDMixin",
    # Subscriptions
    "SubscriptionPlanModel",
    "UserSubscriptionModel",
    "UserPostUsageModel",
    # Library
    "SavedPostModel",
    # Webhooks
    "ProcessedWebhookEventModel",
]
