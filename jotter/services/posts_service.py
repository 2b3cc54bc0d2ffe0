import logging
import math
from typing import Any, Dict, List, Optional

import pycouchdb

from jotter.errors import AccessDenied, Conflict, NotFound, ServerError, ValidationFailed
from jotter.repos.posts_repo import SlugTakenError, WriteConflictError
from jotter.schemas.post import (
    AuthorDetail,
    AuthorSummary,
    Pagination,
    PostDetail,
    PostSummary,
)
from jotter.schemas.user import Identity
from jotter.services.post_query import build_post_query
from jotter.services.validation import (
    UPDATABLE_FIELDS,
    FieldError,
    parse_tags_filter,
    validate_post_payload,
)
from jotter.utils import (
    calculate_read_time,
    is_valid_id,
    make_excerpt,
    slugify,
    utcnow_iso,
)

logger = logging.getLogger(__name__)


class PostsService:
    def __init__(self, repo, users_repo):
        self.repo = repo
        self.users_repo = users_repo

    def list_posts(
        self,
        identity: Optional[Identity] = None,
        page: int = 1,
        limit: int = 10,
        tags: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        tag_filter, errors = parse_tags_filter(tags)
        if errors:
            raise ValidationFailed(errors)

        query = build_post_query(identity, tags=tag_filter, search=search)
        docs, total = self.repo.find(query, skip=(page - 1) * limit, limit=limit)
        pagination = Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
            hasNext=page * limit < total,
            hasPrev=page > 1,
        )
        return {"posts": self._summaries(docs), "pagination": pagination}

    def list_user_posts(
        self, author_id: str, identity: Optional[Identity] = None
    ) -> List[PostSummary]:
        if not is_valid_id(author_id):
            raise ValidationFailed([FieldError("userId", "Invalid user ID")])
        query = build_post_query(identity, author_id=author_id)
        docs, _total = self.repo.find(query)
        return self._summaries(docs)

    def get_post_by_slug(
        self, slug: str, identity: Optional[Identity] = None
    ) -> PostDetail:
        if not slug:
            raise ValidationFailed([FieldError("slug", "Slug is required")])
        doc = self.repo.get_by_slug(slug)
        if not doc:
            raise NotFound("Post not found")

        is_author = identity is not None and identity.id == doc.get("author")
        if doc.get("privacy") == "private" and not is_author:
            raise AccessDenied("Access denied to private post")

        if doc.get("privacy") == "public" and not is_author:
            doc = self._record_view(doc)
        return self._detail(doc)

    def get_post_by_id(self, post_id: str, identity: Identity) -> PostDetail:
        doc = self._get_existing(post_id)
        if doc.get("author") != identity.id:
            raise AccessDenied("Access denied - not the author")
        return self._detail(doc)

    def create_post(self, payload: Any, identity: Identity) -> PostDetail:
        errors = validate_post_payload(payload, partial=False)
        if errors:
            raise ValidationFailed(errors)

        title = payload["title"].strip()
        content = payload["content"]
        excerpt = payload.get("excerpt") or None
        now = utcnow_iso()
        doc = {
            "title": title,
            "slug": slugify(title),
            "content": content,
            "excerpt": excerpt or make_excerpt(content),
            "excerptGenerated": excerpt is None,
            "tags": list(payload["tags"]),
            "privacy": payload["privacy"],
            "status": payload.get("status", "published"),
            "coverImage": payload.get("coverImage") or "",
            "featured": bool(payload.get("featured")) and identity.is_admin,
            "author": identity.id,
            "likes": [],
            "views": 0,
            "readTime": calculate_read_time(content),
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            saved = self.repo.create(doc)
        except SlugTakenError:
            raise Conflict("Slug already exists, please change the title")
        logger.info(f"Post {saved['_id']} created by {identity.id}")
        return self._detail(saved)

    def update_post(self, post_id: str, payload: Any, identity: Identity) -> PostDetail:
        doc = self._get_existing(post_id)

        is_author = doc.get("author") == identity.id
        touches_only_featured = isinstance(payload, dict) and set(payload) == {
            "featured"
        }
        if not is_author and not (identity.is_admin and touches_only_featured):
            raise AccessDenied("Access denied")

        errors = validate_post_payload(payload, partial=True)
        if errors:
            raise ValidationFailed(errors)

        changes = self._build_changes(doc, payload, identity)
        if not changes:
            return self._detail(doc)

        try:
            updated = self.repo.update(post_id, changes)
        except SlugTakenError:
            raise Conflict("Slug already exists, please change the title")
        except pycouchdb.exceptions.NotFound:
            raise NotFound("Post not found")
        except WriteConflictError as e:
            logger.error(f"Giving up on update of {post_id}: {e}")
            raise ServerError("Server error")
        return self._detail(updated)

    def delete_post(self, post_id: str, identity: Identity) -> None:
        doc = self._get_existing(post_id)
        if doc.get("author") != identity.id and not identity.is_admin:
            raise AccessDenied("Access denied")
        try:
            self.repo.delete(doc)
        except pycouchdb.exceptions.NotFound:
            raise NotFound("Post not found")
        logger.info(f"Post {post_id} deleted by {identity.id}")

    def toggle_like(self, post_id: str, identity: Identity) -> Dict[str, Any]:
        doc = self._get_existing(post_id)
        if doc.get("privacy") == "private" and doc.get("author") != identity.id:
            raise AccessDenied("Access denied")

        try:
            liked, count = self.repo.toggle_like(post_id, identity.id)
        except pycouchdb.exceptions.NotFound:
            raise NotFound("Post not found")
        except WriteConflictError as e:
            logger.error(f"Giving up on like toggle of {post_id}: {e}")
            raise ServerError("Server error")
        return {
            "message": "Post liked" if liked else "Post unliked",
            "liked": liked,
            "likesCount": count,
        }

    def _build_changes(self, doc: dict, payload: dict, identity: Identity) -> dict:
        changes = {
            field: payload[field] for field in UPDATABLE_FIELDS if field in payload
        }
        if "featured" in payload and identity.is_admin:
            changes["featured"] = payload["featured"]

        if "title" in changes:
            changes["title"] = changes["title"].strip()
            slug = slugify(changes["title"])
            if slug != doc.get("slug"):
                changes["slug"] = slug

        if "excerpt" in changes:
            if changes["excerpt"]:
                changes["excerptGenerated"] = False
            else:
                changes["excerpt"] = make_excerpt(changes.get("content", doc["content"]))
                changes["excerptGenerated"] = True

        if "content" in changes and changes["content"] != doc.get("content"):
            changes["readTime"] = calculate_read_time(changes["content"])
            if "excerpt" not in changes and doc.get("excerptGenerated", True):
                changes["excerpt"] = make_excerpt(changes["content"])
                changes["excerptGenerated"] = True

        if "coverImage" in changes and changes["coverImage"] is None:
            changes["coverImage"] = ""
        return changes

    def _get_existing(self, post_id: str) -> dict:
        if not is_valid_id(post_id):
            raise ValidationFailed([FieldError("id", "Invalid post ID")])
        doc = self.repo.get(post_id)
        if not doc:
            raise NotFound("Post not found")
        return doc

    def _record_view(self, doc: dict) -> dict:
        try:
            return self.repo.increment_views(doc["_id"])
        except Exception as e:
            logger.warning(f"Failed to record view for {doc['_id']}: {e}")
            return doc

    def _summaries(self, docs: List[dict]) -> List[PostSummary]:
        authors = self.users_repo.get_many(doc.get("author") for doc in docs)
        return [
            PostSummary(
                **_post_fields(doc),
                author=_author(AuthorSummary, doc.get("author"), authors),
            )
            for doc in docs
        ]

    def _detail(self, doc: dict) -> PostDetail:
        authors = self.users_repo.get_many([doc.get("author")])
        return PostDetail(
            **_post_fields(doc),
            content=doc.get("content", ""),
            author=_author(AuthorDetail, doc.get("author"), authors),
        )


def _post_fields(doc: dict) -> dict:
    return {
        "id": doc["_id"],
        "title": doc.get("title", ""),
        "slug": doc.get("slug", ""),
        "excerpt": doc.get("excerpt"),
        "tags": doc.get("tags", []),
        "privacy": doc.get("privacy", "public"),
        "status": doc.get("status", "published"),
        "featured": bool(doc.get("featured", False)),
        "coverImage": doc.get("coverImage") or "",
        "readTime": doc.get("readTime") or 1,
        "views": doc.get("views") or 0,
        "likes": doc.get("likes", []),
        "createdAt": doc.get("createdAt"),
        "updatedAt": doc.get("updatedAt"),
    }


def _author(model, author_id: Optional[str], users: Dict[str, dict]):
    user = users.get(author_id) or {}
    fields = {
        "id": author_id or "",
        "username": user.get("username"),
        "avatar": user.get("avatar"),
    }
    if model is AuthorDetail:
        fields["bio"] = user.get("bio")
    return model(**fields)
