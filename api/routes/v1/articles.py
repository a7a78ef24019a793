"""
api/routes/v1/articles.py -- Article CRUD routes.

Routes:
  GET    /articles              -- list, newest date first (public)
  GET    /articles/{article_id} -- detail (public), 404 if absent
  POST   /articles              -- create (admin)
  PATCH  /articles/{article_id} -- partial update (admin)
  DELETE /articles/{article_id} -- delete (admin)

The session is resolved softly (try_get_session) and handed to ArticleService,
which runs guard -> validator -> store. Bodies are accepted as raw JSON so an
anonymous caller with a bad payload gets 401, not 422.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, Response

from api.models import ArticleResponse
from auth.dependencies import try_get_session
from auth.models import Session
from core.errors import NotFoundError
from kb.service import ArticleService

router = APIRouter()


def _service(request: Request) -> ArticleService:
    return request.app.state.articles


@router.get("/articles", response_model=list[ArticleResponse])
def list_articles(request: Request) -> list[ArticleResponse]:
    return [ArticleResponse.from_article(a) for a in _service(request).list()]


@router.get("/articles/{article_id}", response_model=ArticleResponse)
def get_article(request: Request, article_id: str) -> ArticleResponse:
    article = _service(request).get(article_id)
    if article is None:
        raise NotFoundError("article", article_id)
    return ArticleResponse.from_article(article)


@router.post("/articles", response_model=ArticleResponse, status_code=201)
def create_article(
    request: Request,
    payload: Any = Body(default=None),
    session: Optional[Session] = Depends(try_get_session),
) -> ArticleResponse:
    """Create an article. Body: product, subject, body, date (ISO 8601)."""
    return ArticleResponse.from_article(_service(request).create(session, payload))


@router.patch("/articles/{article_id}", response_model=ArticleResponse)
def update_article(
    request: Request,
    article_id: str,
    payload: Any = Body(default=None),
    session: Optional[Session] = Depends(try_get_session),
) -> ArticleResponse:
    """Update any subset of product, subject, body, date. Empty body -> 422."""
    return ArticleResponse.from_article(_service(request).update(session, article_id, payload))


@router.delete("/articles/{article_id}", status_code=204)
def delete_article(
    request: Request,
    article_id: str,
    session: Optional[Session] = Depends(try_get_session),
) -> Response:
    _service(request).delete(session, article_id)
    return Response(status_code=204)
