"""Explicit input validation for post payloads and list parameters.

Each validator returns a list of :class:`FieldError`; an empty list means
the input is acceptable. Nothing here knows about HTTP.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from jotter.utils import slugify

TAG_CHOICES = ("technical", "personal")
PRIVACY_CHOICES = ("public", "private")
STATUS_CHOICES = ("draft", "published")

TITLE_MAX_LENGTH = 200
EXCERPT_MAX_LENGTH = 300
MAX_TAGS = 2

UPDATABLE_FIELDS = (
    "title",
    "content",
    "tags",
    "privacy",
    "excerpt",
    "coverImage",
    "status",
)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


def _check_title(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return "Title is required"
    if len(value.strip()) > TITLE_MAX_LENGTH:
        return f"Title must be less than {TITLE_MAX_LENGTH} characters"
    if not slugify(value):
        return "Title must contain letters or digits"
    return None


def _check_content(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return "Content is required"
    return None


def _check_tags(value: Any) -> Optional[str]:
    if not isinstance(value, list) or not 1 <= len(value) <= MAX_TAGS:
        return f"Must have 1-{MAX_TAGS} tags"
    if any(tag not in TAG_CHOICES for tag in value):
        return "Tags must be technical or personal"
    if len(set(value)) != len(value):
        return "Tags must not repeat"
    return None


def _check_privacy(value: Any) -> Optional[str]:
    if value not in PRIVACY_CHOICES:
        return "Privacy must be public or private"
    return None


def _check_status(value: Any) -> Optional[str]:
    if value not in STATUS_CHOICES:
        return "Status must be draft or published"
    return None


def _check_excerpt(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        return "Excerpt must be a string"
    if len(value) > EXCERPT_MAX_LENGTH:
        return f"Excerpt must be less than {EXCERPT_MAX_LENGTH} characters"
    return None


def _check_cover_image(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not value.startswith(("http://", "https://")):
        return "Cover image must be an http(s) URL"
    return None


def _check_featured(value: Any) -> Optional[str]:
    if not isinstance(value, bool):
        return "Featured must be a boolean"
    return None


_CHECKS = {
    "title": _check_title,
    "content": _check_content,
    "tags": _check_tags,
    "privacy": _check_privacy,
    "excerpt": _check_excerpt,
    "coverImage": _check_cover_image,
    "status": _check_status,
    "featured": _check_featured,
}

REQUIRED_ON_CREATE = ("title", "content", "tags", "privacy")


def validate_post_payload(payload: Any, partial: bool = False) -> List[FieldError]:
    """Validate a create (``partial=False``) or update (``partial=True``) body.

    On create the fields in ``REQUIRED_ON_CREATE`` must be present; on update
    only the fields present in the body are checked.
    """
    if not isinstance(payload, Mapping):
        return [FieldError("body", "Request body must be a JSON object")]

    errors = []
    for field, check in _CHECKS.items():
        if field not in payload:
            if not partial and field in REQUIRED_ON_CREATE:
                errors.append(FieldError(field, check(None)))
            continue
        message = check(payload[field])
        if message:
            errors.append(FieldError(field, message))
    return errors


def parse_tags_filter(raw: Optional[str]) -> Tuple[Tuple[str, ...], List[FieldError]]:
    """Parse the comma-joined ``tags`` query parameter."""
    if raw is None or raw == "":
        return (), []
    tags = tuple(part.strip() for part in raw.split(","))
    if (
        len(tags) > MAX_TAGS
        or len(set(tags)) != len(tags)
        or any(tag not in TAG_CHOICES for tag in tags)
    ):
        return (), [
            FieldError("tags", "Tags must be technical, personal, or both")
        ]
    return tags, []
