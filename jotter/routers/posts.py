import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from jotter import dependencies as deps
from jotter.errors import ServerError, ServiceError
from jotter.schemas.post import (
    LikeResponse,
    MessageResponse,
    PostListResponse,
    PostResponse,
    UserPostsResponse,
)
from jotter.schemas.user import Identity
from jotter.security import get_current_identity, get_optional_identity
from jotter.services.posts_service import PostsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("", response_model=PostListResponse)
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    tags: Optional[str] = Query(None, description="technical, personal, or both"),
    search: Optional[str] = Query(None),
    identity: Optional[Identity] = Depends(get_optional_identity),
    service: PostsService = Depends(deps.get_posts_service),
):
    """List published posts visible to the caller, newest first."""
    try:
        return service.list_posts(
            identity, page=page, limit=limit, tags=tags, search=search
        )
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error listing posts: {e}")
        raise ServerError("Server error")


@router.get("/id/{post_id}", response_model=PostResponse)
def get_post_by_id(
    post_id: str,
    identity: Identity = Depends(get_current_identity),
    service: PostsService = Depends(deps.get_posts_service),
):
    """Get a post for editing (author only)."""
    try:
        return {"post": service.get_post_by_id(post_id, identity)}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error retrieving post {post_id}: {e}")
        raise ServerError("Server error")


@router.get("/user/{user_id}", response_model=UserPostsResponse)
def list_user_posts(
    user_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    service: PostsService = Depends(deps.get_posts_service),
):
    try:
        return {"posts": service.list_user_posts(user_id, identity)}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error listing posts of {user_id}: {e}")
        raise ServerError("Server error")


@router.get("/{slug}", response_model=PostResponse)
def get_post(
    slug: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    service: PostsService = Depends(deps.get_posts_service),
):
    """Get a single post by slug."""
    try:
        return {"post": service.get_post_by_slug(slug, identity)}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error retrieving post {slug}: {e}")
        raise ServerError("Server error")


@router.post("", response_model=PostResponse, status_code=201)
def create_post(
    payload: Any = Body(...),
    identity: Identity = Depends(get_current_identity),
    service: PostsService = Depends(deps.get_posts_service),
):
    try:
        post = service.create_post(payload, identity)
        return {"message": "Post created successfully", "post": post}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error creating post: {e}")
        raise ServerError("Server error")


@router.put("/{post_id}", response_model=PostResponse)
def update_post(
    post_id: str,
    payload: Any = Body(...),
    identity: Identity = Depends(get_current_identity),
    service: PostsService = Depends(deps.get_posts_service),
):
    try:
        post = service.update_post(post_id, payload, identity)
        return {"message": "Post updated successfully", "post": post}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error updating post {post_id}: {e}")
        raise ServerError("Server error")


@router.delete("/{post_id}", response_model=MessageResponse)
def delete_post(
    post_id: str,
    identity: Identity = Depends(get_current_identity),
    service: PostsService = Depends(deps.get_posts_service),
):
    try:
        service.delete_post(post_id, identity)
        return {"message": "Post deleted successfully"}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error deleting post {post_id}: {e}")
        raise ServerError("Server error")


@router.post("/{post_id}/like", response_model=LikeResponse)
def toggle_like(
    post_id: str,
    identity: Identity = Depends(get_current_identity),
    service: PostsService = Depends(deps.get_posts_service),
) -> Dict[str, Any]:
    try:
        return service.toggle_like(post_id, identity)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error toggling like on {post_id}: {e}")
        raise ServerError("Server error")
