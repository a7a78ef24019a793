"""
kb/service.py -- Role-gated CRUD for articles and products.

Every mutating call runs the same sequence:
  1. auth.guard.enforce(session, ADMIN)   -- 401/403 before anything else
  2. validate_payload(schema, payload)    -- structured 422, store untouched
  3. DocumentCollection write             -- StoreError on failure
and returns the persisted entity with its generated id and timestamps.

Reads are public: no guard, no validation. A missing id reads as None;
updating or deleting a missing id raises NotFoundError.

The services receive their collection at construction time (see
api/main.py lifespan); they hold no other state.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from auth.guard import enforce
from auth.models import Role, Session
from core.database import DocumentCollection
from core.errors import NotFoundError
from core.validation import validate_payload
from kb.models import Article, Product
from kb.validators import ArticleCreate, ArticleUpdate, ProductCreate, ProductUpdate

logger = logging.getLogger("knowledgebase.kb")

T = TypeVar("T")

# Writes require ADMIN for both resource kinds; reads are public.
WRITE_ROLE = Role.ADMIN


class _CrudService(Generic[T]):
    kind: str = ""
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    list_order: tuple[str, ...] = ("id",)

    def __init__(self, collection: DocumentCollection) -> None:
        self._docs = collection

    def _to_entity(self, doc: dict) -> T:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Reads (public)
    # ------------------------------------------------------------------

    def list(self) -> list[T]:
        return [self._to_entity(d) for d in self._docs.find_many(order_by=self.list_order)]

    def get(self, doc_id: str) -> T | None:
        doc = self._docs.find_one(id=doc_id)
        return self._to_entity(doc) if doc is not None else None

    # ------------------------------------------------------------------
    # Writes (ADMIN)
    # ------------------------------------------------------------------

    def create(self, session: Session | None, payload: Any) -> T:
        enforce(session, WRITE_ROLE)
        body = validate_payload(self.create_schema, payload)
        doc = self._docs.insert_one(body.model_dump())
        logger.info("%s %s created by user %s", self.kind, doc["id"], session.user_id)
        return self._to_entity(doc)

    def update(self, session: Session | None, doc_id: str, payload: Any) -> T:
        enforce(session, WRITE_ROLE)
        body = validate_payload(self.update_schema, payload)
        doc = self._docs.update_one(doc_id, body.changes())
        if doc is None:
            raise NotFoundError(self.kind, doc_id)
        logger.info("%s %s updated by user %s", self.kind, doc_id, session.user_id)
        return self._to_entity(doc)

    def delete(self, session: Session | None, doc_id: str) -> None:
        enforce(session, WRITE_ROLE)
        if not self._docs.delete_one(doc_id):
            raise NotFoundError(self.kind, doc_id)
        logger.info("%s %s deleted by user %s", self.kind, doc_id, session.user_id)


class ArticleService(_CrudService[Article]):
    kind = "article"
    create_schema = ArticleCreate
    update_schema = ArticleUpdate
    list_order = ("-date", "id")

    def _to_entity(self, doc: dict) -> Article:
        return _doc_to_article(doc)


class ProductService(_CrudService[Product]):
    kind = "product"
    create_schema = ProductCreate
    update_schema = ProductUpdate
    list_order = ("name", "id")

    def _to_entity(self, doc: dict) -> Product:
        return _doc_to_product(doc)


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _doc_to_article(doc: dict) -> Article:
    return Article(
        id=doc["id"],
        product=doc["product"],
        subject=doc["subject"],
        body=doc["body"],
        date=doc["date"],
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at"),
    )


def _doc_to_product(doc: dict) -> Product:
    return Product(
        id=doc["id"],
        name=doc["name"],
        description=doc.get("description"),
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at"),
    )
