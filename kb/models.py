"""
kb/models.py -- Domain dataclasses for the knowledge base.

These are pure data containers with zero logic. Validation lives in
kb/validators.py, persistence rules in kb/service.py, ranking in kb/search.py.

Article.product is a free-text label. It is not a reference to a Product id;
the two collections are managed independently.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Article:
    """A support/knowledge document.

    date is the article's own timestamp (ISO 8601, UTC), distinct from the
    bookkeeping created_at/updated_at stamped by the store.
    """

    id: str
    product: str
    subject: str
    body: str
    date: str
    created_at: str
    updated_at: Optional[str] = None


@dataclass
class Product:
    """A category record. description is None when not supplied."""

    id: str
    name: str
    created_at: str
    description: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class SearchResult:
    id: str
    product: str
    subject: str
    body: str
    date: str
    score: float


@dataclass
class SearchResponse:
    """One page of ranked results.

    total counts every match before the size cut; took is elapsed
    milliseconds for the whole search.
    """

    query: str
    total: int
    took: float
    results: list[SearchResult] = field(default_factory=list)
