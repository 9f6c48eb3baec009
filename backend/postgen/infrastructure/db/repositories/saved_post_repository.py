"""
Saved Post Repository

Owner-scoped CRUD for the saved posts library.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from postgen.infrastructure.db.models.saved_post import SavedPostModel
from postgen.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid


logger = logging.getLogger(__name__)


class SavedPostRepository(BaseRepository[SavedPostModel]):
    """
    Repository for saved posts.

    Every method takes the owner's user id; rows of other users are
    invisible to it.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(SavedPostModel, session)

    async def list_for_user(
        self,
        user_id: str,
        platform: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> List[SavedPostModel]:
        """Owner's posts, newest first, optionally filtered."""
        stmt = select(SavedPostModel).where(SavedPostModel.user_id == to_uuid(user_id))
        if platform:
            stmt = stmt.where(SavedPostModel.platform == platform)
        if tag:
            stmt = stmt.where(SavedPostModel.tags.contains([tag.strip().lower()]))
        stmt = stmt.order_by(SavedPostModel.created_at.desc())

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_user(self, user_id: str, post_id: str) -> Optional[SavedPostModel]:
        post_uuid = to_uuid(post_id)
        if post_uuid is None:
            return None
        stmt = select(SavedPostModel).where(
            SavedPostModel.id == post_uuid,
            SavedPostModel.user_id == to_uuid(user_id),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        user_id: str,
        platform: str,
        post_text: str,
        image_url: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> SavedPostModel:
        post = SavedPostModel(
            user_id=to_uuid(user_id),
            platform=platform,
            post_text=post_text,
            image_url=image_url,
            tags=tags or [],
        )
        self.session.add(post)
        await self.session.flush()
        await self.session.refresh(post)
        logger.info(f"Saved post {post.id} for user {user_id}")
        return post

    async def update_tags(
        self,
        user_id: str,
        post_id: str,
        tags: List[str],
    ) -> Optional[SavedPostModel]:
        post = await self.get_for_user(user_id, post_id)
        if post is None:
            return None
        post.tags = tags
        self.session.add(post)
        await self.session.flush()
        await self.session.refresh(post)
        return post

    async def delete_for_user(self, user_id: str, post_id: str) -> bool:
        """
        Delete one post.

        Returns:
            True only if a row was actually removed
        """
        post_uuid = to_uuid(post_id)
        if post_uuid is None:
            return False
        stmt = delete(SavedPostModel).where(
            SavedPostModel.id == post_uuid,
            SavedPostModel.user_id == to_uuid(user_id),
        )
        result = await self.session.execute(stmt)
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted saved post {post_id} for user {user_id}")
        return deleted
