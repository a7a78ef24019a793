"""
core/database.py -- SQLAlchemy Core document store for users, articles, products.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in auth/models.py and
kb/models.py remain the authoritative domain representation. Swapping SQLite
for PostgreSQL is a connection string change, not a rewrite.

Pattern: one DocumentCollection per resource kind. A collection exposes the
small document interface the services need (find_one, find_many, insert_one,
update_one, delete_one) and returns plain dicts. Database owns the engine and
builds the three collections; it is constructed explicitly (app lifespan, CLI,
tests) and passed to whoever needs it. There is no module-level handle.

Ids are opaque uuid4 hex strings generated on insert. created_at is stamped on
insert and updated_at on every update, both as ISO 8601 UTC strings.

Errors: SQLAlchemy failures are logged here with operation, kind and id, then
re-raised as core.errors.StoreError (or ConflictError for unique violations).
Callers never see SQLAlchemy exceptions.

Security: all queries use bound parameters. Filter and ordering column names
are checked against the table before use.

Layer rule: core/ is the kernel. No imports from api/, auth/, or kb/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.config import get_settings
from core.errors import ConflictError, StoreError

logger = logging.getLogger("knowledgebase.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # stored lower-cased
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
)

_articles = Table(
    "articles",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("product", String(255), nullable=False),
    Column("subject", Text, nullable=False),
    Column("body", Text, nullable=False),
    Column("date", String(40), nullable=False),  # ISO 8601, normalized to UTC
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
)

_products = Table(
    "products",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


class DocumentCollection:
    """Document-style access to one table.

    Usage:
        doc = db.articles.insert_one({"product": "P1", "subject": "S", "body": "B", "date": "..."})
        same = db.articles.find_one(id=doc["id"])
        db.articles.update_one(doc["id"], {"subject": "S2"})
        db.articles.delete_one(doc["id"])
    """

    def __init__(self, engine: Engine, table: Table, kind: str) -> None:
        self.engine = engine
        self.table = table
        self.kind = kind

    def _column(self, name: str):
        if name not in self.table.c:
            raise ValueError(f"Unknown {self.kind} field: {name!r}")
        return self.table.c[name]

    @contextmanager
    def _guarded(self, operation: str, doc_id: str | None = None) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            logger.warning("Constraint violation on %s %s id=%s", operation, self.kind, doc_id or "-")
            raise ConflictError(operation, self.kind, doc_id, cause=str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.exception("Store failure on %s %s id=%s", operation, self.kind, doc_id or "-")
            raise StoreError(operation, self.kind, doc_id, cause=str(exc)) from exc

    def find_one(self, **filters: Any) -> dict | None:
        """Return the first document matching every filter, or None."""
        stmt = self.table.select()
        for name, value in filters.items():
            stmt = stmt.where(self._column(name) == value)
        with self._guarded("find_one", filters.get("id")):
            with self.engine.connect() as conn:
                row = conn.execute(stmt.limit(1)).fetchone()
        return dict(row._mapping) if row is not None else None

    def find_many(self, order_by: tuple[str, ...] = (), **filters: Any) -> list[dict]:
        """Return every matching document.

        order_by takes column names; a leading "-" sorts that column descending.
        """
        stmt = self.table.select()
        for name, value in filters.items():
            stmt = stmt.where(self._column(name) == value)
        for name in order_by:
            if name.startswith("-"):
                stmt = stmt.order_by(self._column(name[1:]).desc())
            else:
                stmt = stmt.order_by(self._column(name))
        with self._guarded("find_many"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).fetchall()
        return [dict(r._mapping) for r in rows]

    def count(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.table)
        for name, value in filters.items():
            stmt = stmt.where(self._column(name) == value)
        with self._guarded("count"):
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar() or 0

    def insert_one(self, document: dict) -> dict:
        """Insert a document, assigning id and created_at. Returns the stored shape.

        Raises ConflictError on a unique violation (e.g. duplicate email).
        """
        for name in document:
            self._column(name)
        doc_id = _new_id()
        values = {**document, "id": doc_id, "created_at": _now_iso()}
        with self._guarded("insert_one", doc_id):
            with self.engine.connect() as conn:
                conn.execute(self.table.insert().values(**values))
                conn.commit()
        stored = self.find_one(id=doc_id)
        if stored is None:
            raise StoreError("insert_one", self.kind, doc_id, cause="row missing after insert")
        return stored

    def update_one(self, doc_id: str, fields: dict, keep_one: tuple[str, Any] | None = None) -> dict | None:
        """Apply fields to one document and stamp updated_at.

        Returns the updated document, or None if doc_id does not exist.
        A single UPDATE statement, so concurrent writers cannot interleave
        within one document.

        keep_one=(column, value): skip the write (and return None) when the
        document currently has column == value and is the only one that does.
        The count runs inside the same UPDATE, so two concurrent writers
        cannot both remove the last such document.
        """
        for name in fields:
            if name in ("id", "created_at"):
                raise ValueError(f"{name} is immutable")
            self._column(name)
        values = {**fields, "updated_at": _now_iso()}
        stmt = self.table.update().where(self.table.c.id == doc_id)
        if keep_one is not None:
            column = self._column(keep_one[0])
            peers = self.table.alias("peers")
            holders = (
                select(func.count()).select_from(peers).where(peers.c[keep_one[0]] == keep_one[1]).scalar_subquery()
            )
            stmt = stmt.where(or_(column != keep_one[1], holders > 1))
        with self._guarded("update_one", doc_id):
            with self.engine.connect() as conn:
                result = conn.execute(stmt.values(**values))
                conn.commit()
        if result.rowcount == 0:
            return None
        return self.find_one(id=doc_id)

    def delete_one(self, doc_id: str) -> bool:
        """Delete one document. Returns True if deleted, False if not found."""
        with self._guarded("delete_one", doc_id):
            with self.engine.connect() as conn:
                result = conn.execute(self.table.delete().where(self.table.c.id == doc_id))
                conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class Database:
    """Owns the engine and one DocumentCollection per resource kind.

    Usage:
        db = Database()                                  # DATABASE_URL from settings
        db = Database("sqlite:///:memory:")              # tests
        db = Database("postgresql://user:pw@host/kb")    # PostgreSQL
        db.articles.find_many()
        db.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)
        self.users = DocumentCollection(self.engine, _users, "user")
        self.articles = DocumentCollection(self.engine, _articles, "article")
        self.products = DocumentCollection(self.engine, _products, "product")

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False

    def close(self) -> None:
        self.engine.dispose()
