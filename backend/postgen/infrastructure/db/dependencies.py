"""
Dependency Injection Providers for PostGen API

Provides FastAPI dependencies for database sessions and repositories.
All repositories of one request share the request's session.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from postgen.config.settings import get_settings
from postgen.infrastructure.db.database import get_session
from postgen.infrastructure.db.repositories import (
    PlanRepository,
    SavedPostRepository,
    SubscriptionRepository,
    UsageRepository,
    WebhookEventRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_plan_repository(
    session: SessionDep,
) -> AsyncGenerator[PlanRepository, None]:
    yield PlanRepository(session)


async def get_subscription_repository(
    session: SessionDep,
) -> AsyncGenerator[SubscriptionRepository, None]:
    """
    Dependency provider for SubscriptionRepository.

    Usage:
        @router.get("/subscriptions/check")
        async def check(
            repo: SubscriptionRepository = Depends(get_subscription_repository)
        ):
            ...
    """
    yield SubscriptionRepository(session)


async def get_usage_repository(
    session: SessionDep,
) -> AsyncGenerator[UsageRepository, None]:
    yield UsageRepository(session, period_days=get_settings().subscription_period_days)


async def get_saved_post_repository(
    session: SessionDep,
) -> AsyncGenerator[SavedPostRepository, None]:
    yield SavedPostRepository(session)


async def get_webhook_event_repository(
    session: SessionDep,
) -> AsyncGenerator[WebhookEventRepository, None]:
    yield WebhookEventRepository(session)


# Type aliases for repository dependencies
PlanRepoDep = Annotated[PlanRepository, Depends(get_plan_repository)]
SubscriptionRepoDep = Annotated[SubscriptionRepository, Depends(get_subscription_repository)]
UsageRepoDep = Annotated[UsageRepository, Depends(get_usage_repository)]
SavedPostRepoDep = Annotated[SavedPostRepository, Depends(get_saved_post_repository)]
WebhookEventRepoDep = Annotated[WebhookEventRepository, Depends(get_webhook_event_repository)]
