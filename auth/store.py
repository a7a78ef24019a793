"""
auth/store.py -- Credential store for User records.

Pattern: Repository + Data Mapper. UserStore is the repository over the
"users" DocumentCollection; _doc_to_user is the mapper. Route, service and
dependency code never touches the collection directly.

Invariants held here:
  - Emails are stripped and lower-cased on every write and lookup, so the
    UNIQUE(email) constraint means exactly one user per address regardless of
    spelling.
  - Only role and hashed_password are mutable. Users are never deleted.
  - At least one ADMIN remains: demoting the last one raises LastAdminError.

Layer rule: no imports from api/ or kb/.
"""

from __future__ import annotations

from auth.models import Role, User
from core.database import DocumentCollection
from core.errors import LastAdminError


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(db.users)
        store.create_user(User(email="admin@x.com", role=Role.ADMIN, hashed_password=hash_password("secret")))
        user = store.get_by_email("Admin@X.com")
    """

    # Mutable fields -- checked before any write so callers cannot rewrite
    # email, id or timestamps through update_user().
    _MUTABLE_FIELDS: frozenset = frozenset({"role", "hashed_password"})

    def __init__(self, collection: DocumentCollection) -> None:
        self._users = collection

    def has_users(self) -> bool:
        return self._users.count() > 0

    def create_user(self, user: User) -> User:
        """Insert a new user and return the stored record.

        Raises core.errors.ConflictError if the email already exists.
        """
        doc = self._users.insert_one(
            {
                "email": normalize_email(user.email),
                "hashed_password": user.hashed_password,
                "role": Role(user.role).value,
            }
        )
        return _doc_to_user(doc)

    def get_by_email(self, email: str) -> User | None:
        doc = self._users.find_one(email=normalize_email(email))
        return _doc_to_user(doc) if doc is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        doc = self._users.find_one(id=user_id)
        return _doc_to_user(doc) if doc is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by email. Admin-only operation."""
        return [_doc_to_user(d) for d in self._users.find_many(order_by=("email",))]

    def update_user(self, user_id: str, **fields) -> User | None:
        """Rotate role and/or password. Returns the updated user, or None if not found.

        A role change away from ADMIN is applied only while another admin
        exists; otherwise LastAdminError is raised and nothing is written.
        """
        unknown = set(fields) - self._MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable user fields: {unknown!r}")
        keep_one = None
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
            if fields["role"] != Role.ADMIN.value:
                keep_one = ("role", Role.ADMIN.value)
        doc = self._users.update_one(user_id, fields, keep_one=keep_one)
        if doc is not None:
            return _doc_to_user(doc)
        if keep_one is not None and self._users.find_one(id=user_id) is not None:
            raise LastAdminError(user_id)
        return None

    def count_admins(self) -> int:
        return self._users.count(role=Role.ADMIN.value)


# ---------------------------------------------------------------------------
# Mapper
# ---------------------------------------------------------------------------


def _doc_to_user(doc: dict) -> User:
    return User(
        id=doc["id"],
        email=doc["email"],
        hashed_password=doc["hashed_password"],
        role=Role(doc["role"]),
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at"),
    )
