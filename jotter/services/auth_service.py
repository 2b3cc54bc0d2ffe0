import logging
from typing import Tuple

from jotter.errors import Conflict, NotFound, Unauthenticated
from jotter.repos.users_repo import UserTakenError
from jotter.schemas.user import (
    Identity,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    UserPublic,
)
from jotter.tokens import create_access_token, hash_password, verify_password
from jotter.utils import utcnow_iso

logger = logging.getLogger(__name__)


def to_public_user(doc: dict) -> UserPublic:
    return UserPublic(
        id=doc["_id"],
        username=doc["username"],
        email=doc["email"],
        bio=doc.get("bio") or "",
        avatar=doc.get("avatar") or "",
        role=doc.get("role", "user"),
        createdAt=doc.get("createdAt"),
    )


class AuthService:
    def __init__(self, users_repo):
        self.users_repo = users_repo

    def register(self, request: RegisterRequest) -> Tuple[str, UserPublic]:
        doc = {
            "username": request.username,
            "email": request.email.strip().lower(),
            "passwordHash": hash_password(request.password),
            "bio": "",
            "avatar": "",
            "role": "user",
            "createdAt": utcnow_iso(),
        }
        try:
            saved = self.users_repo.create(doc)
        except UserTakenError as e:
            raise Conflict(f"User with this {e.field} already exists")
        logger.info(f"Registered user {saved['_id']} ({saved['username']})")
        return create_access_token(saved["_id"]), to_public_user(saved)

    def login(self, request: LoginRequest) -> Tuple[str, UserPublic]:
        user = self.users_repo.find_by_email(request.email)
        if not user or not verify_password(
            request.password, user.get("passwordHash", "")
        ):
            raise Unauthenticated("Invalid credentials")
        return create_access_token(user["_id"]), to_public_user(user)

    def get_profile(self, identity: Identity) -> UserPublic:
        user = self.users_repo.get(identity.id)
        if not user:
            raise NotFound("User not found")
        return to_public_user(user)

    def update_profile(self, identity: Identity, request: ProfileUpdate) -> UserPublic:
        changes = request.model_dump(exclude_none=True)
        if not changes:
            return self.get_profile(identity)
        try:
            saved = self.users_repo.update(identity.id, changes)
        except UserTakenError:
            raise Conflict("Username is already taken")
        return to_public_user(saved)
