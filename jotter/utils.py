import math
import re
import unicodedata
import uuid
from datetime import datetime, timezone

EXCERPT_LENGTH = 150
WORDS_PER_MINUTE = 200

_MARKUP_CHARS = re.compile(r"[#*`]")
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9 -]")
_SEPARATORS = re.compile(r"[\s-]+")
_HEX_ID = re.compile(r"^[0-9a-f]{32}$")


def slugify(title: str) -> str:
    ascii_title = (
        unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    )
    slug = _NON_SLUG_CHARS.sub("", ascii_title.lower())
    return _SEPARATORS.sub("-", slug).strip("-")


def calculate_read_time(text: str) -> int:
    words = text.split()
    return math.ceil(len(words) / WORDS_PER_MINUTE) or 1


def make_excerpt(content: str) -> str:
    return _MARKUP_CHARS.sub("", content)[:EXCERPT_LENGTH].strip() + "..."


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_id(value: str) -> bool:
    return bool(value) and bool(_HEX_ID.match(value))


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
