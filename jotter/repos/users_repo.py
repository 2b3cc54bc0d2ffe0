import logging
from typing import Dict, Iterable, Optional

import pycouchdb

from jotter.utils import new_id

logger = logging.getLogger(__name__)

USER_TYPE = "user"
CLAIM_TYPE = "user-claim"


class UserTakenError(Exception):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is already taken")


def claim_id(field: str, value: str) -> str:
    return f"{field}:{value.strip().lower()}"


class CouchUsersRepo:
    """Users plus the claim documents that keep usernames and emails unique."""

    def __init__(self, couch_db):
        self.db = couch_db

    def get(self, user_id: str) -> Optional[dict]:
        try:
            doc = self.db.get(user_id)
        except pycouchdb.exceptions.NotFound:
            return None
        return doc if doc.get("type") == USER_TYPE else None

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, dict]:
        users = {}
        for user_id in {uid for uid in user_ids if uid}:
            doc = self.get(user_id)
            if doc:
                users[user_id] = doc
        return users

    def find_by_email(self, email: str) -> Optional[dict]:
        return self._find_by_claim("email", email)

    def find_by_username(self, username: str) -> Optional[dict]:
        return self._find_by_claim("username", username)

    def create(self, doc: dict) -> dict:
        doc = {**doc, "_id": doc.get("_id") or new_id(), "type": USER_TYPE}
        claimed = []
        try:
            for field in ("username", "email"):
                self._claim(field, doc[field], doc["_id"])
                claimed.append(field)
            return self.db.save(doc)
        except Exception:
            for field in claimed:
                self._release(field, doc[field], doc["_id"])
            raise

    def update(self, user_id: str, changes: dict) -> dict:
        current = self.db.get(user_id)
        new_username = changes.get("username")
        renamed = new_username is not None and (
            new_username.lower() != current["username"].lower()
        )
        if renamed:
            self._claim("username", new_username, user_id)
        try:
            saved = self.db.save({**current, **changes})
        except Exception:
            if renamed:
                self._release("username", new_username, user_id)
            raise
        if renamed:
            self._release("username", current["username"], user_id)
        return saved

    def _find_by_claim(self, field: str, value: str) -> Optional[dict]:
        try:
            claim = self.db.get(claim_id(field, value))
        except pycouchdb.exceptions.NotFound:
            return None
        return self.get(claim.get("user", ""))

    def _claim(self, field: str, value: str, user_id: str) -> None:
        try:
            self.db.save(
                {"_id": claim_id(field, value), "type": CLAIM_TYPE, "user": user_id}
            )
        except pycouchdb.exceptions.Conflict:
            raise UserTakenError(field)

    def _release(self, field: str, value: str, user_id: str) -> None:
        try:
            claim = self.db.get(claim_id(field, value))
            if claim.get("user") == user_id:
                self.db.delete(claim["_id"])
        except pycouchdb.exceptions.NotFound:
            pass
        except Exception as e:
            logger.warning(f"Failed to release {field} claim for {user_id}: {e}")
