"""
kb/search.py -- Free-text relevance search over articles.

Scoring is term-frequency weighted and fully deterministic:

    score = sum over query terms t of  3.0 * tf(t, subject) + 1.0 * tf(t, body)

Terms are lower-cased word tokens (regex \\w+), deduplicated, and tf counts
exact token matches -- "log" does not match "logging". An article matches when
its score is positive.

Ordering: score descending, then article date descending (most recent first),
then id ascending, so equal inputs always give the same page.

A query with no word tokens is rejected (ValidationError on "q"). size
defaults to Settings.search_default_size and is clamped to
Settings.search_max_size; size < 1 is rejected.

Candidate articles are read in full from the collection and scored in
process. Fine for a knowledge base measured in thousands of documents.
"""

from __future__ import annotations

import re
import time
from collections import Counter
from datetime import datetime, timezone

from core.config import get_settings
from core.database import DocumentCollection
from core.errors import ValidationError
from kb.models import SearchResponse, SearchResult

SUBJECT_WEIGHT = 3.0
BODY_WEIGHT = 1.0

_TOKEN_RE = re.compile(r"\w+")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def score_article(terms: list[str], subject: str, body: str) -> float:
    """Return the relevance of one article for already-tokenized query terms."""
    subject_tf = Counter(tokenize(subject))
    body_tf = Counter(tokenize(body))
    return sum(SUBJECT_WEIGHT * subject_tf[t] + BODY_WEIGHT * body_tf[t] for t in terms)


def _date_key(value: str) -> float:
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return _EPOCH.timestamp()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class SearchService:
    """Ranks articles against a free-text query.

    Usage:
        search = SearchService(db.articles)
        page = search.search("reset password", size=5)
    """

    def __init__(
        self,
        collection: DocumentCollection,
        default_size: int | None = None,
        max_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self._docs = collection
        self.default_size = default_size or settings.search_default_size
        self.max_size = max_size or settings.search_max_size

    def search(self, query: str, size: int | None = None) -> SearchResponse:
        start = time.perf_counter()

        terms = list(dict.fromkeys(tokenize(query or "")))
        if not terms:
            raise ValidationError.single("q", "query must contain at least one word")
        if size is None:
            size = self.default_size
        if size < 1:
            raise ValidationError.single("size", "must be at least 1")
        size = min(size, self.max_size)

        matches: list[SearchResult] = []
        for doc in self._docs.find_many():
            score = score_article(terms, doc["subject"], doc["body"])
            if score > 0:
                matches.append(
                    SearchResult(
                        id=doc["id"],
                        product=doc["product"],
                        subject=doc["subject"],
                        body=doc["body"],
                        date=doc["date"],
                        score=score,
                    )
                )
        matches.sort(key=lambda r: (-r.score, -_date_key(r.date), r.id))

        took = (time.perf_counter() - start) * 1000
        return SearchResponse(query=query, total=len(matches), took=round(took, 3), results=matches[:size])
