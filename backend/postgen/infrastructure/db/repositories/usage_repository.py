"""
Post Usage Repository

Per-user monthly post counter. The period restarts lazily: the first
increment after ``reset_date`` sets the count back to 1 and moves the
reset date forward, in the same statement as the increment.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import case, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from postgen.domain.subscription import DEFAULT_PERIOD_DAYS, Usage
from postgen.infrastructure.db.models.subscription import UserPostUsageModel
from postgen.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid
from postgen.infrastructure.exceptions import DatabaseError


logger = logging.getLogger(__name__)

TABLE = "user_post_usage"


class UsageRepository(BaseRepository[UserPostUsageModel]):
    """Repository for the user_post_usage table."""

    def __init__(self, session: AsyncSession, period_days: int = DEFAULT_PERIOD_DAYS):
        super().__init__(UserPostUsageModel, session)
        self._period = timedelta(days=period_days)

    async def get_by_user_id(self, user_id: str) -> Optional[Usage]:
        user_uuid = to_uuid(user_id)
        if user_uuid is None:
            return None
        stmt = (
            select(UserPostUsageModel)
            .where(UserPostUsageModel.user_id == user_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def ensure(self, user_id: str) -> Usage:
        """
        Return the user's usage row, creating ``count=0`` if absent.

        Concurrent callers converge on one row (ON CONFLICT DO NOTHING).
        """
        now = datetime.now(timezone.utc)
        stmt = pg_insert(UserPostUsageModel).values(
            id=uuid4(),
            user_id=to_uuid(user_id),
            count=0,
            reset_date=now + self._period,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=["user_id"])

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Nutzungsdaten konnten nicht angelegt werden",
                operation="ensure",
                table=TABLE,
                original_error=e,
            ) from e

        if result.rowcount:
            logger.info(f"Seeded post usage for user {user_id}")

        usage = await self.get_by_user_id(user_id)
        if usage is None:
            raise DatabaseError("Nutzungsdaten fehlen", operation="ensure", table=TABLE)
        return usage

    async def increment(self, user_id: str) -> Usage:
        """
        Count one generated post.

        Creates the row with count=1 if absent; restarts the period when
        ``reset_date`` has passed. A single statement, so concurrent
        increments are never lost.
        """
        now = datetime.now(timezone.utc)
        next_reset = now + self._period
        stmt = pg_insert(UserPostUsageModel).values(
            id=uuid4(),
            user_id=to_uuid(user_id),
            count=1,
            reset_date=next_reset,
            created_at=now,
            updated_at=now,
        )
        expired = UserPostUsageModel.reset_date <= now
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "count": case((expired, 1), else_=UserPostUsageModel.count + 1),
                "reset_date": case((expired, next_reset), else_=UserPostUsageModel.reset_date),
                "updated_at": now,
            },
        ).returning(
            UserPostUsageModel.user_id,
            UserPostUsageModel.count,
            UserPostUsageModel.reset_date,
            UserPostUsageModel.updated_at,
        )

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Nutzung konnte nicht gezählt werden",
                operation="increment",
                table=TABLE,
                original_error=e,
            ) from e

        row = result.mappings().one()
        logger.info(f"Post usage for user {user_id} is now {row['count']}")
        return Usage(
            user_id=str(row["user_id"]),
            count=row["count"],
            reset_date=row["reset_date"],
            updated_at=row["updated_at"],
        )

    def _to_domain(self, model: UserPostUsageModel) -> Usage:
        return Usage(
            user_id=str(model.user_id),
            count=model.count or 0,
            reset_date=model.reset_date,
            updated_at=model.updated_at,
        )
