import logging
from typing import Callable, List, Optional, Tuple

import pycouchdb

from jotter.services.post_query import PostQuery
from jotter.utils import new_id, utcnow_iso

logger = logging.getLogger(__name__)

POST_TYPE = "post"
SLUG_CLAIM_TYPE = "slug"
MAX_WRITE_ATTEMPTS = 5


class SlugTakenError(Exception):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Slug {slug!r} is already taken")


class WriteConflictError(Exception):
    """Raised when a document kept changing under every retry."""


def slug_claim_id(slug: str) -> str:
    return f"slug:{slug}"


class CouchPostsRepo:
    def __init__(self, couch_db):
        self.db = couch_db

    def list_post_docs(self) -> List[dict]:
        all_docs = [row.get("doc", row) for row in self.db.all(include_docs=True)]
        return [doc for doc in all_docs if self._is_valid(doc)]

    def find(
        self, query: PostQuery, skip: int = 0, limit: Optional[int] = None
    ) -> Tuple[List[dict], int]:
        matched = [doc for doc in self.list_post_docs() if query.matches(doc)]
        matched.sort(key=lambda d: d.get("createdAt") or "", reverse=True)
        end = None if limit is None else skip + limit
        return matched[skip:end], len(matched)

    def get(self, post_id: str) -> Optional[dict]:
        try:
            doc = self.db.get(post_id)
        except pycouchdb.exceptions.NotFound:
            return None
        return doc if self._is_valid(doc) else None

    def get_by_slug(self, slug: str) -> Optional[dict]:
        try:
            claim = self.db.get(slug_claim_id(slug))
            doc = self.get(claim.get("post", ""))
            if doc and doc.get("slug") == slug:
                return doc
        except pycouchdb.exceptions.NotFound:
            pass
        except Exception as e:
            logger.warning(f"Slug claim lookup failed for {slug}: {e}")

        for doc in self.list_post_docs():
            if doc.get("slug") == slug:
                return doc
        return None

    def create(self, doc: dict) -> dict:
        doc = {**doc, "_id": doc.get("_id") or new_id(), "type": POST_TYPE}
        self._claim_slug(doc["slug"], doc["_id"])
        try:
            return self.db.save(doc)
        except Exception:
            self._release_slug(doc["slug"], doc["_id"])
            raise

    def update(self, post_id: str, changes: dict) -> dict:
        """Apply ``changes`` to the latest revision of a post.

        A changed ``slug`` is claimed before the write and the previous
        claim is released after it.
        """
        new_slug = changes.get("slug")
        claimed = False
        if new_slug is not None:
            current = self.get(post_id)
            if current is not None and current.get("slug") != new_slug:
                self._claim_slug(new_slug, post_id)
                claimed = True

        previous = {}

        def apply(doc: dict) -> dict:
            previous["slug"] = doc.get("slug")
            return {**doc, **changes, "updatedAt": utcnow_iso()}

        try:
            updated = self._mutate(post_id, apply)
        except Exception:
            if claimed:
                self._release_slug(new_slug, post_id)
            raise

        old_slug = previous.get("slug")
        if old_slug and old_slug != updated.get("slug"):
            self._release_slug(old_slug, post_id)
        return updated

    def delete(self, doc: dict) -> None:
        self.db.delete(doc["_id"])
        if doc.get("slug"):
            self._release_slug(doc["slug"], doc["_id"])

    def increment_views(self, post_id: str) -> dict:
        def bump(doc: dict) -> dict:
            return {**doc, "views": int(doc.get("views") or 0) + 1}

        return self._mutate(post_id, bump)

    def toggle_like(self, post_id: str, user_id: str) -> Tuple[bool, int]:
        outcome = {}

        def flip(doc: dict) -> dict:
            likes = [uid for uid in doc.get("likes") or [] if uid != user_id]
            liked = len(likes) == len(doc.get("likes") or [])
            if liked:
                likes.append(user_id)
            outcome["liked"] = liked
            return {**doc, "likes": likes}

        updated = self._mutate(post_id, flip)
        return outcome["liked"], len(updated["likes"])

    def _mutate(self, post_id: str, fn: Callable[[dict], dict]) -> dict:
        """Read-modify-write guarded by the document revision."""
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            doc = self.db.get(post_id)
            try:
                return self.db.save(fn(doc))
            except pycouchdb.exceptions.Conflict:
                logger.debug(f"Revision conflict on {post_id} (attempt {attempt})")
        raise WriteConflictError(f"Post {post_id} changed on every write attempt")

    def _claim_slug(self, slug: str, post_id: str) -> None:
        claim = {"_id": slug_claim_id(slug), "type": SLUG_CLAIM_TYPE, "post": post_id}
        try:
            self.db.save(claim)
            return
        except pycouchdb.exceptions.Conflict:
            pass

        existing = self.db.get(slug_claim_id(slug))
        owner = existing.get("post")
        if owner == post_id:
            return
        owner_doc = self.get(owner) if owner else None
        if owner_doc is not None and owner_doc.get("slug") == slug:
            raise SlugTakenError(slug)

        # the owning post is gone or has moved to another slug
        logger.warning(f"Reclaiming stale slug claim {slug} from {owner}")
        try:
            self.db.save({**existing, "post": post_id})
        except pycouchdb.exceptions.Conflict:
            raise SlugTakenError(slug)

    def _release_slug(self, slug: str, post_id: str) -> None:
        try:
            claim = self.db.get(slug_claim_id(slug))
            if claim.get("post") == post_id:
                self.db.delete(claim["_id"])
        except pycouchdb.exceptions.NotFound:
            pass
        except Exception as e:
            logger.warning(f"Failed to release slug claim {slug}: {e}")

    @staticmethod
    def _is_valid(doc: dict | None) -> bool:
        if not doc:
            return False
        return doc.get("type") == POST_TYPE and not doc.get("deleted", False)
