"""
Repository Layer for PostGen API

Exports all repository classes for dependency injection.
"""

from postgen.infrastructure.db.repositories.base_repository import BaseRepository
from postgen.infrastructure.db.repositories.plan_repository import PlanRepository
from postgen.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from postgen.infrastructure.db.repositories.usage_repository import UsageRepository
from postgen.infrastructure.db.repositories.saved_post_repository import (
    SavedPostRepository,
)
from postgen.infrastructure.db.repositories.webhook_event_repository import (
    WebhookEventRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    # Repositories
    "PlanRepository",
    "SubscriptionRepository",
    "UsageRepository",
    "SavedPostRepository",
    "WebhookEventRepository",
]
