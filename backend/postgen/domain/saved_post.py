"""
Saved Post Domain Models

DTOs for the saved posts library and tag normalization.
"""

from datetime import datetime
from typing import Iterable, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from postgen.domain.generation import Platform


MAX_TAGS = 20


def normalize_tags(tags: Optional[Iterable[str]]) -> list[str]:
    """Strip, lower-case and de-duplicate tags, keeping first-seen order."""
    seen: list[str] = []
    for tag in tags or []:
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen[:MAX_TAGS]


class SavedPostCreateRequest(BaseModel):
    platform: Platform
    post_text: str = Field(alias="postText", min_length=1)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    tags: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class SavedPostTagsRequest(BaseModel):
    tags: list[str]

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class SavedPostResponse(BaseModel):
    id: str
    platform: str
    post_text: str = Field(alias="postText")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    tags: list[str] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True)
