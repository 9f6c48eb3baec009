"""
Post API Routes

Post generation behind the subscription quota, and the saved posts
library. Every saved post query is scoped to the authenticated user.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query, Response, status

from postgen.api.dependencies import (
    CurrentUserDep,
    PostGenerationServiceDep,
    SavedPostRepoDep,
)
from postgen.domain.generation import GeneratePostRequest, GeneratePostResponse, Platform
from postgen.domain.saved_post import (
    SavedPostCreateRequest,
    SavedPostResponse,
    SavedPostTagsRequest,
)
from postgen.infrastructure.db.models import SavedPostModel
from postgen.infrastructure.exceptions import NotFoundError


logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(post: SavedPostModel) -> SavedPostResponse:
    return SavedPostResponse(
        id=str(post.id),
        platform=post.platform,
        post_text=post.post_text,
        image_url=post.image_url,
        tags=list(post.tags or []),
        created_at=post.created_at,
    )


def _not_found(post_id: str) -> NotFoundError:
    error = NotFoundError("Post nicht gefunden", table="saved_posts")
    error.details["post_id"] = post_id
    return error


# =============================================================================
# Generation
# =============================================================================

@router.post("/posts/generate", response_model=GeneratePostResponse)
async def generate_post(
    request: GeneratePostRequest,
    user: CurrentUserDep,
    service: PostGenerationServiceDep,
):
    """
    Generate a post for the selected platform.

    Returns 403 when the user has no active subscription or no posts left,
    502 when the generator fails. Only successful generations are counted.
    """
    result = await service.generate(user, request)
    return GeneratePostResponse(
        post_text=result.post.text,
        image_url=result.post.image_url,
        platform=request.platform,
        remaining_posts=result.remaining_posts,
    )


# =============================================================================
# Saved Posts
# =============================================================================

@router.get("/posts/saved", response_model=List[SavedPostResponse])
async def list_saved_posts(
    user: CurrentUserDep,
    posts: SavedPostRepoDep,
    platform: Optional[Platform] = Query(default=None),
    tag: Optional[str] = Query(default=None, max_length=50),
):
    """List the user's saved posts, newest first."""
    records = await posts.list_for_user(
        user.id,
        platform=platform.value if platform else None,
        tag=tag,
    )
    return [_to_response(post) for post in records]


@router.post(
    "/posts/saved",
    response_model=SavedPostResponse,
    status_code=status.HTTP_201_CREATED,
)
async def save_post(
    request: SavedPostCreateRequest,
    user: CurrentUserDep,
    posts: SavedPostRepoDep,
):
    post = await posts.create(
        user.id,
        platform=request.platform.value,
        post_text=request.post_text,
        image_url=request.image_url,
        tags=request.tags,
    )
    return _to_response(post)


@router.patch("/posts/saved/{post_id}/tags", response_model=SavedPostResponse)
async def update_saved_post_tags(
    post_id: str,
    request: SavedPostTagsRequest,
    user: CurrentUserDep,
    posts: SavedPostRepoDep,
):
    """Replace the tags of a saved post."""
    post = await posts.update_tags(user.id, post_id, request.tags)
    if post is None:
        raise _not_found(post_id)
    return _to_response(post)


@router.delete("/posts/saved/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_saved_post(
    post_id: str,
    user: CurrentUserDep,
    posts: SavedPostRepoDep,
):
    """Delete a saved post; 404 unless a row was actually removed."""
    if not await posts.delete_for_user(user.id, post_id):
        raise _not_found(post_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
