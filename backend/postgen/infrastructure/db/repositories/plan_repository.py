"""
Subscription Plan Repository

Read-only access to the plan catalog.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from postgen.domain.subscription import SubscriptionPlan
from postgen.infrastructure.db.models.subscription import SubscriptionPlanModel
from postgen.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid


def plan_to_domain(model: SubscriptionPlanModel) -> SubscriptionPlan:
    return SubscriptionPlan(
        id=str(model.id),
        name=model.name,
        price=model.price,
        monthly_post_limit=model.monthly_post_limit,
        stripe_price_id=model.stripe_price_id,
    )


class PlanRepository(BaseRepository[SubscriptionPlanModel]):
    """Repository for the subscription_plans table."""

    def __init__(self, session: AsyncSession):
        super().__init__(SubscriptionPlanModel, session)

    async def list_plans(self) -> List[SubscriptionPlan]:
        """All plans, cheapest first."""
        stmt = select(SubscriptionPlanModel).order_by(
            SubscriptionPlanModel.price, SubscriptionPlanModel.name
        )
        result = await self.session.execute(stmt)
        return [plan_to_domain(model) for model in result.scalars().all()]

    async def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        """
        Get a plan by id.

        Returns:
            SubscriptionPlan or None if the id is unknown or malformed
        """
        plan_uuid = to_uuid(plan_id)
        if plan_uuid is None:
            return None
        model = await self.get_by_id(plan_uuid)
        return plan_to_domain(model) if model else None
