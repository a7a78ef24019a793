"""
api/routes/v1/search.py -- Free-text article search.

  GET /search?q=<text>&size=<n>   -- public

An empty or whitespace-only q is a 422 on field "q". size is clamped to the
configured maximum.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from api.limiter import limiter
from api.models import SearchResponseModel
from kb.search import SearchService

router = APIRouter()


@limiter.limit("60/minute")
@router.get("/search", response_model=SearchResponseModel)
def search_articles(request: Request, q: str = "", size: Optional[int] = None) -> SearchResponseModel:
    """Rank articles by relevance to q (subject matches weigh 3x body matches)."""
    search: SearchService = request.app.state.search
    return SearchResponseModel.from_search(search.search(q, size=size))
