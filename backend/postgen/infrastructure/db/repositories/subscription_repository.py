"""
Subscription Repository

Data access layer for user subscriptions.
Every read and write is scoped by user id or by the Stripe subscription
reference; there is no version column, so writes are last-write-wins.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from postgen.domain.subscription import Subscription, SubscriptionStatus
from postgen.infrastructure.db.models.subscription import (
    SubscriptionPlanModel,
    UserSubscriptionModel,
)
from postgen.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid
from postgen.infrastructure.db.repositories.plan_repository import plan_to_domain
from postgen.infrastructure.exceptions import DatabaseError


logger = logging.getLogger(__name__)

TABLE = "user_subscriptions"

MUTABLE_FIELDS = (
    "subscription_plan_id",
    "status",
    "stripe_customer_id",
    "stripe_subscription_id",
    "current_period_start",
    "current_period_end",
    "cancel_at_period_end",
)


class SubscriptionRepository(BaseRepository[UserSubscriptionModel]):
    """
    Repository for subscription data access.

    Returns domain models joined with their plan.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UserSubscriptionModel, session)

    # =========================================================================
    # Query Methods
    # =========================================================================

    def _joined(self):
        # Core upserts/updates bypass the identity map; reload what we read.
        return (
            select(UserSubscriptionModel, SubscriptionPlanModel)
            .join(
                SubscriptionPlanModel,
                UserSubscriptionModel.subscription_plan_id == SubscriptionPlanModel.id,
            )
            .execution_options(populate_existing=True)
        )

    async def _first(self, statement) -> Optional[Subscription]:
        result = await self.session.execute(statement.limit(1))
        row = result.first()
        if row is None:
            return None
        return self._to_domain(row[0], row[1])

    async def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        """
        Get a user's subscription regardless of status.

        Args:
            user_id: Auth user id

        Returns:
            Subscription with plan, or None
        """
        user_uuid = to_uuid(user_id)
        if user_uuid is None:
            return None
        return await self._first(
            self._joined().where(UserSubscriptionModel.user_id == user_uuid)
        )

    async def get_active_by_user_id(self, user_id: str) -> Optional[Subscription]:
        """Get a user's subscription only if its status is active."""
        user_uuid = to_uuid(user_id)
        if user_uuid is None:
            return None
        return await self._first(
            self._joined().where(
                UserSubscriptionModel.user_id == user_uuid,
                UserSubscriptionModel.status == SubscriptionStatus.ACTIVE.value,
            )
        )

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def upsert(
        self,
        subscription: Subscription,
        fields: Optional[Iterable[str]] = None,
    ) -> Optional[Subscription]:
        """
        Create or update the subscription keyed by user_id.

        Args:
            subscription: Full desired state (used for inserts)
            fields: Columns to overwrite when the row already exists;
                all mutable columns by default

        Returns:
            The stored subscription joined with its plan
        """
        now = datetime.now(timezone.utc)
        columns = tuple(fields) if fields is not None else MUTABLE_FIELDS

        values = {
            "user_id": to_uuid(subscription.user_id),
            "subscription_plan_id": to_uuid(subscription.subscription_plan_id),
            "status": subscription.status,
            "stripe_customer_id": subscription.stripe_customer_id,
            "stripe_subscription_id": subscription.stripe_subscription_id,
            "current_period_start": subscription.current_period_start,
            "current_period_end": subscription.current_period_end,
            "cancel_at_period_end": subscription.cancel_at_period_end,
            "updated_at": now,
        }

        stmt = pg_insert(UserSubscriptionModel).values(
            id=uuid4(),
            created_at=now,
            **values,
        )
        set_ = {column: stmt.excluded[column] for column in columns}
        set_["updated_at"] = now
        stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=set_)

        try:
            await self.session.execute(stmt)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Abonnement konnte nicht gespeichert werden",
                operation="upsert",
                table=TABLE,
                original_error=e,
            ) from e

        logger.info(
            f"Upserted subscription for user {subscription.user_id} "
            f"(status={subscription.status}, fields={','.join(columns)})"
        )
        return await self.get_by_user_id(subscription.user_id)

    async def update_by_user_id(self, user_id: str, changes: dict[str, Any]) -> int:
        """
        Apply field changes to the row owned by ``user_id``.

        Returns:
            Number of rows updated (0 or 1)
        """
        user_uuid = to_uuid(user_id)
        if user_uuid is None:
            return 0
        return await self._update(
            UserSubscriptionModel.user_id == user_uuid, changes, f"user {user_id}"
        )

    async def update_by_stripe_subscription_id(
        self,
        stripe_subscription_id: str,
        changes: dict[str, Any],
    ) -> int:
        """Apply field changes to the row linked to a Stripe subscription."""
        return await self._update(
            UserSubscriptionModel.stripe_subscription_id == stripe_subscription_id,
            changes,
            f"stripe subscription {stripe_subscription_id}",
        )

    async def _update(self, condition, changes: dict[str, Any], target: str) -> int:
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")

        values = dict(changes)
        if "subscription_plan_id" in values:
            values["subscription_plan_id"] = to_uuid(values["subscription_plan_id"])
        values["updated_at"] = datetime.now(timezone.utc)

        stmt = (
            update(UserSubscriptionModel)
            .where(condition)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Abonnement konnte nicht aktualisiert werden",
                operation="update",
                table=TABLE,
                original_error=e,
            ) from e

        logger.info(f"Updated subscription for {target}: {sorted(changes)} ({result.rowcount} rows)")
        return result.rowcount

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(
        self,
        model: UserSubscriptionModel,
        plan: Optional[SubscriptionPlanModel] = None,
    ) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=str(model.id),
            user_id=str(model.user_id),
            subscription_plan_id=str(model.subscription_plan_id),
            status=model.status,
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=model.cancel_at_period_end or False,
            created_at=model.created_at,
            updated_at=model.updated_at,
            plan=plan_to_domain(plan) if plan else None,
        )
