"""
Post Generation Service

Quota gate in front of the generation webhook: only users with an active
subscription and posts left in the period may generate, and only a
successful generation is counted.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from postgen.domain.auth import AuthenticatedUser
from postgen.domain.generation import GeneratePostRequest, GeneratedPost
from postgen.domain.subscription import (
    effective_usage,
    remaining_posts,
    remaining_to_json,
)
from postgen.infrastructure.db.repositories import SubscriptionRepository, UsageRepository
from postgen.infrastructure.exceptions import QuotaExceededError, SubscriptionRequiredError
from postgen.infrastructure.generation.webhook_client import GenerationWebhookClient


logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    post: GeneratedPost
    remaining_posts: Optional[int]


class PostGenerationService:
    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        usage: UsageRepository,
        client: GenerationWebhookClient,
    ):
        self._subscriptions = subscriptions
        self._usage = usage
        self._client = client

    async def generate(
        self,
        user: AuthenticatedUser,
        request: GeneratePostRequest,
    ) -> GenerationResult:
        """
        Generate one post for the user.

        The check and the increment are separate statements: two concurrent
        requests with one post left may both pass. The increment itself is
        atomic, so the overshoot is always counted.

        Raises:
            SubscriptionRequiredError: no active subscription
            QuotaExceededError: no posts left this period
            GenerationError: the webhook failed (usage unchanged)
        """
        subscription = await self._subscriptions.get_active_by_user_id(user.id)
        if subscription is None or subscription.plan is None:
            raise SubscriptionRequiredError()

        limit = subscription.plan.monthly_post_limit
        usage = effective_usage(await self._usage.ensure(user.id))
        if remaining_posts(limit, usage.count) <= 0:
            logger.info(f"Post limit reached for user {user.id} ({usage.count}/{limit})")
            raise QuotaExceededError(limit=limit, used=usage.count)

        post = await self._client.generate(request.platform, request.webhook_payload())

        usage = await self._usage.increment(user.id)
        remaining = remaining_posts(limit, usage.count)
        return GenerationResult(post=post, remaining_posts=remaining_to_json(remaining))
