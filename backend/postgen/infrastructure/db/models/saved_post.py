"""
Saved Post Database Model
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import ARRAY, UUID as PGUUID
from sqlmodel import Field, SQLModel

from postgen.infrastructure.db.models.base import UUIDMixin, utc_now


class SavedPostModel(UUIDMixin, SQLModel, table=True):
    """Generated posts a user chose to keep, with free-form tags."""

    __tablename__ = "saved_posts"

    user_id: UUID = Field(sa_column=Column(PGUUID(as_uuid=True), index=True, nullable=False))
    platform: str = Field(max_length=32, index=True)
    post_text: str = Field(nullable=False)
    image_url: Optional[str] = Field(default=None)
    tags: list[str] = Field(default_factory=list, sa_column=Column(ARRAY(String), nullable=False, server_default="{}"))
    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        sa_type=DateTime(timezone=True),
    )
