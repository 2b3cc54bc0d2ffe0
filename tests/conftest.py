import copy
import uuid

import pycouchdb
import pytest

from jotter.repos.posts_repo import CouchPostsRepo
from jotter.repos.users_repo import CouchUsersRepo
from jotter.schemas.user import Identity
from jotter.services.posts_service import PostsService


class FakeCouchDB:
    """
    Minimal in-memory CouchDB stand-in with revision checks.
    Set track_calls=True to record the order of get()/save() calls.
    """

    def __init__(self, docs: dict | None = None, track_calls: bool = False):
        self.docs = {}
        for key, doc in (docs or {}).items():
            doc_id = doc.get("_id", key)
            self.docs[doc_id] = {**doc, "_id": doc_id, "_rev": doc.get("_rev", "1-seed")}
        self.track_calls = track_calls
        self.calls = []

    def get(self, doc_id: str) -> dict:
        if self.track_calls:
            self.calls.append(doc_id)
        if doc_id not in self.docs:
            raise pycouchdb.exceptions.NotFound(doc_id)
        return copy.deepcopy(self.docs[doc_id])

    def save(self, doc: dict) -> dict:
        doc = copy.deepcopy(doc)
        doc_id = doc.setdefault("_id", uuid.uuid4().hex)
        if self.track_calls:
            self.calls.append(f"save({doc_id})")
        current = self.docs.get(doc_id)
        expected_rev = current.get("_rev") if current else None
        if doc.get("_rev") != expected_rev:
            raise pycouchdb.exceptions.Conflict(f"Document update conflict: {doc_id}")
        generation = int(expected_rev.split("-")[0]) + 1 if expected_rev else 1
        doc["_rev"] = f"{generation}-{uuid.uuid4().hex[:8]}"
        self.docs[doc_id] = doc
        return copy.deepcopy(doc)

    def delete(self, doc_or_id) -> None:
        doc_id = doc_or_id["_id"] if isinstance(doc_or_id, dict) else doc_or_id
        if self.track_calls:
            self.calls.append(f"delete({doc_id})")
        if doc_id not in self.docs:
            raise pycouchdb.exceptions.NotFound(doc_id)
        del self.docs[doc_id]

    def all(self, include_docs: bool = True):
        if self.track_calls:
            self.calls.append(f"all(include_docs={include_docs})")
        if include_docs:
            return [{"doc": copy.deepcopy(doc)} for doc in self.docs.values()]
        return [{"id": doc_id} for doc_id in self.docs]


class RacingCouchDB(FakeCouchDB):
    """
    Saves ``interleave(current_doc)`` right before the first ``races`` saves of
    ``doc_id``, imitating a concurrent request that wins the write.
    """

    def __init__(self, doc_id: str, interleave, races: int = 1, **kwargs):
        super().__init__(**kwargs)
        self.race_doc_id = doc_id
        self.interleave = interleave
        self.races = races

    def save(self, doc: dict) -> dict:
        if doc.get("_id") == self.race_doc_id and self.races > 0:
            self.races -= 1
            current = copy.deepcopy(self.docs[self.race_doc_id])
            FakeCouchDB.save(self, self.interleave(current))
        return super().save(doc)


class FakePostsService:
    """
    Posts service stand-in for router tests. Each operation returns the
    configured value, or raises it when it is an exception.
    """

    def __init__(self, **returns):
        self.returns = returns
        self.calls = []

    def _answer(self, name, *args):
        self.calls.append((name, *args))
        value = self.returns.get(name)
        if isinstance(value, Exception):
            raise value
        return value

    def list_posts(self, identity, page=1, limit=10, tags=None, search=None):
        return self._answer("list_posts", identity, page, limit, tags, search)

    def list_user_posts(self, author_id, identity):
        return self._answer("list_user_posts", author_id, identity)

    def get_post_by_slug(self, slug, identity):
        return self._answer("get_post_by_slug", slug, identity)

    def get_post_by_id(self, post_id, identity):
        return self._answer("get_post_by_id", post_id, identity)

    def create_post(self, payload, identity):
        return self._answer("create_post", payload, identity)

    def update_post(self, post_id, payload, identity):
        return self._answer("update_post", post_id, payload, identity)

    def delete_post(self, post_id, identity):
        return self._answer("delete_post", post_id, identity)

    def toggle_like(self, post_id, identity):
        return self._answer("toggle_like", post_id, identity)


class FakeUsersRepo:
    """Users repo stand-in keyed by user id."""

    def __init__(self, users: dict | None = None):
        self.users = users or {}

    def get(self, user_id):
        return self.users.get(user_id)

    def get_many(self, user_ids):
        return {uid: self.users[uid] for uid in user_ids if uid in self.users}


def make_user(users_repo, username: str, role: str = "user") -> Identity:
    saved = users_repo.create(
        {
            "username": username,
            "email": f"{username}@example.com",
            "passwordHash": "",
            "bio": f"{username} writes here",
            "avatar": "",
            "role": role,
        }
    )
    return Identity(id=saved["_id"], username=username, role=role)


def post_payload(**overrides) -> dict:
    payload = {
        "title": "Hello World",
        "content": "Some *markdown* content for the post.",
        "tags": ["technical"],
        "privacy": "public",
    }
    payload.update(overrides)
    return payload


def post_detail_dict(**overrides) -> dict:
    post = {
        "id": "a" * 32,
        "title": "Hello",
        "slug": "hello",
        "excerpt": "hi...",
        "tags": ["personal"],
        "privacy": "public",
        "status": "published",
        "author": {"id": "b" * 32, "username": "alice", "avatar": "", "bio": ""},
        "featured": False,
        "coverImage": "",
        "readTime": 1,
        "views": 3,
        "likes": [],
        "createdAt": "2024-01-01T00:00:00+00:00",
        "updatedAt": "2024-01-01T00:00:00+00:00",
        "content": "hi",
    }
    post.update(overrides)
    return post


@pytest.fixture
def couch():
    return FakeCouchDB()


@pytest.fixture
def posts_repo(couch):
    return CouchPostsRepo(couch)


@pytest.fixture
def users_repo(couch):
    return CouchUsersRepo(couch)


@pytest.fixture
def service(posts_repo, users_repo):
    return PostsService(repo=posts_repo, users_repo=users_repo)


@pytest.fixture
def alice(users_repo):
    return make_user(users_repo, "alice")


@pytest.fixture
def bob(users_repo):
    return make_user(users_repo, "bob")


@pytest.fixture
def admin(users_repo):
    return make_user(users_repo, "root", role="admin")
