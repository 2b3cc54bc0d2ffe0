from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


@dataclass(frozen=True)
class PostQuery:
    """Immutable description of which posts a listing may return."""

    viewer_id: Optional[str] = None
    status: str = "published"
    author_id: Optional[str] = None
    tags: Tuple[str, ...] = ()
    search_terms: Tuple[str, ...] = ()

    def is_visible(self, doc: dict) -> bool:
        if doc.get("privacy") == "public":
            return True
        return self.viewer_id is not None and doc.get("author") == self.viewer_id

    def matches(self, doc: dict) -> bool:
        if doc.get("status") != self.status:
            return False
        if self.author_id is not None and doc.get("author") != self.author_id:
            return False
        if not self.is_visible(doc):
            return False
        if self.tags and not set(self.tags) & set(doc.get("tags") or ()):
            return False
        if self.search_terms and not self._matches_search(doc):
            return False
        return True

    def _matches_search(self, doc: dict) -> bool:
        haystack = " ".join(
            [
                doc.get("title") or "",
                doc.get("excerpt") or "",
                doc.get("content") or "",
                " ".join(doc.get("tags") or ()),
            ]
        ).lower()
        return any(term in haystack for term in self.search_terms)


def build_post_query(
    identity=None,
    tags: Iterable[str] = (),
    search: Optional[str] = None,
    author_id: Optional[str] = None,
) -> PostQuery:
    terms = tuple(term.lower() for term in (search or "").split())
    return PostQuery(
        viewer_id=identity.id if identity is not None else None,
        author_id=author_id,
        tags=tuple(tags),
        search_terms=terms,
    )
