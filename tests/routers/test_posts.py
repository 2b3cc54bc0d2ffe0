from fastapi import FastAPI
from fastapi.testclient import TestClient

from jotter import dependencies as deps
from jotter.errors import (
    AccessDenied,
    Conflict,
    NotFound,
    ValidationFailed,
    register_error_handlers,
)
from jotter.routers import posts
from jotter.schemas.post import Pagination
from jotter.schemas.user import Identity
from jotter.security import get_current_identity, get_optional_identity
from jotter.services.validation import FieldError
from tests.conftest import FakePostsService, FakeUsersRepo, post_detail_dict

ALICE = Identity(id="b" * 32, username="alice")


def make_app(fake_service: FakePostsService, identity=ALICE):
    app = FastAPI()
    register_error_handlers(app)
    app.dependency_overrides[deps.get_posts_service] = lambda: fake_service
    app.dependency_overrides[deps.get_users_repo] = lambda: FakeUsersRepo()
    app.dependency_overrides[get_optional_identity] = lambda: identity
    if identity is not None:
        app.dependency_overrides[get_current_identity] = lambda: identity
    app.include_router(posts.router)
    return app


def summary_dict(**overrides):
    post = post_detail_dict(**overrides)
    post.pop("content")
    return post


def test_list_posts_returns_envelope_with_pagination():
    pagination = Pagination(
        page=1, limit=10, total=1, pages=1, hasNext=False, hasPrev=False
    )
    service = FakePostsService(
        list_posts={"posts": [summary_dict()], "pagination": pagination}
    )
    client = TestClient(make_app(service, identity=None))

    res = client.get("/posts", params={"tags": "technical", "search": "py"})

    assert res.status_code == 200
    body = res.json()
    assert body["posts"][0]["slug"] == "hello"
    assert "content" not in body["posts"][0]
    assert body["pagination"]["total"] == 1
    assert service.calls == [("list_posts", None, 1, 10, "technical", "py")]


def test_list_posts_rejects_out_of_range_paging():
    client = TestClient(make_app(FakePostsService(), identity=None))

    res = client.get("/posts", params={"page": 0, "limit": 51})

    assert res.status_code == 400
    body = res.json()
    assert body["message"] == "Validation failed"
    assert {e["field"] for e in body["errors"]} == {"page", "limit"}


def test_list_posts_returns_500_on_unexpected_error():
    service = FakePostsService(list_posts=RuntimeError("couch down"))
    client = TestClient(make_app(service))

    res = client.get("/posts")

    assert res.status_code == 500
    assert res.json() == {"message": "Server error"}


def test_get_post_by_slug_passes_identity():
    service = FakePostsService(get_post_by_slug=post_detail_dict())
    client = TestClient(make_app(service))

    res = client.get("/posts/hello")

    assert res.status_code == 200
    assert res.json()["post"]["content"] == "hi"
    assert service.calls == [("get_post_by_slug", "hello", ALICE)]


def test_get_post_by_slug_maps_service_errors():
    client = TestClient(
        make_app(FakePostsService(get_post_by_slug=NotFound("Post not found")))
    )
    res = client.get("/posts/missing")
    assert res.status_code == 404
    assert res.json() == {"message": "Post not found"}

    client = TestClient(
        make_app(
            FakePostsService(
                get_post_by_slug=AccessDenied("Access denied to private post")
            )
        )
    )
    assert client.get("/posts/secret").status_code == 403


def test_id_and_user_routes_are_not_shadowed_by_slug():
    service = FakePostsService(
        get_post_by_id=post_detail_dict(), list_user_posts=[summary_dict()]
    )
    client = TestClient(make_app(service))

    assert client.get(f"/posts/id/{'a' * 32}").status_code == 200
    assert client.get(f"/posts/user/{'b' * 32}").status_code == 200
    assert [call[0] for call in service.calls] == ["get_post_by_id", "list_user_posts"]


def test_create_post_returns_201():
    service = FakePostsService(create_post=post_detail_dict())
    client = TestClient(make_app(service))

    res = client.post("/posts", json={"title": "Hello"})

    assert res.status_code == 201
    assert res.json()["message"] == "Post created successfully"
    assert service.calls[0][1] == {"title": "Hello"}


def test_create_post_validation_errors_are_enumerated():
    errors = [FieldError("title", "Title is required"), FieldError("tags", "bad")]
    service = FakePostsService(create_post=ValidationFailed(errors))
    client = TestClient(make_app(service))

    res = client.post("/posts", json={})

    assert res.status_code == 400
    assert res.json() == {
        "message": "Validation failed",
        "errors": [
            {"field": "title", "message": "Title is required"},
            {"field": "tags", "message": "bad"},
        ],
    }


def test_create_post_slug_conflict_is_409():
    service = FakePostsService(create_post=Conflict("Slug already exists"))
    client = TestClient(make_app(service))

    assert client.post("/posts", json={"title": "x"}).status_code == 409


def test_create_post_requires_authentication():
    client = TestClient(make_app(FakePostsService(), identity=None))

    res = client.post("/posts", json={"title": "x"})

    assert res.status_code == 401
    assert res.json() == {"message": "No token, authorization denied"}


def test_update_delete_and_like():
    service = FakePostsService(
        update_post=post_detail_dict(status="draft"),
        delete_post=None,
        toggle_like={"message": "Post liked", "liked": True, "likesCount": 1},
    )
    client = TestClient(make_app(service))
    post_id = "a" * 32

    res = client.put(f"/posts/{post_id}", json={"status": "draft"})
    assert res.status_code == 200
    assert res.json()["post"]["status"] == "draft"

    res = client.delete(f"/posts/{post_id}")
    assert res.json() == {"message": "Post deleted successfully"}

    res = client.post(f"/posts/{post_id}/like")
    assert res.json() == {"message": "Post liked", "liked": True, "likesCount": 1}


def test_delete_returns_500_without_leaking_details():
    service = FakePostsService(delete_post=RuntimeError("secret stack"))
    client = TestClient(make_app(service))

    res = client.delete(f"/posts/{'a' * 32}")

    assert res.status_code == 500
    assert "secret" not in res.text


def test_user_posts_envelope_has_no_pagination():
    service = FakePostsService(list_user_posts=[summary_dict()])
    client = TestClient(make_app(service, identity=None))

    res = client.get(f"/posts/user/{'b' * 32}")

    assert res.status_code == 200
    assert list(res.json()) == ["posts"]


def test_like_on_vanished_post_is_404():
    service = FakePostsService(toggle_like=NotFound("Post not found"))
    client = TestClient(make_app(service))

    res = client.post(f"/posts/{'a' * 32}/like")

    assert res.status_code == 404
    assert res.json() == {"message": "Post not found"}
