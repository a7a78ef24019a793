"""
core/errors.py -- Exception taxonomy shared by every layer.

Services raise these; api/main.py maps each one to an HTTP status and the
common error envelope. Nothing below the API layer knows about HTTP.

  ValidationError      -> 422  expected, never logged as a server fault
  AuthenticationError  -> 401  no usable session
  AuthorizationError   -> 403  valid session, insufficient role
  NotFoundError        -> 404
  ConflictError        -> 409  unique constraint (duplicate email)
  LastAdminError       -> 400  change would leave no admin account
  StoreError           -> 500  logged with context, generic client message

Layer rule: core/ is the kernel. No imports from api/, auth/, or kb/.
"""

from __future__ import annotations


class KnowledgeBaseError(Exception):
    """Base class for every error the service raises on purpose."""


class ValidationError(KnowledgeBaseError):
    """A payload failed schema validation.

    fields maps a field name to its messages. Payload-level problems (e.g. an
    empty update) are reported under the "payload" key.
    """

    def __init__(self, fields: dict[str, list[str]]) -> None:
        self.fields = fields
        super().__init__("; ".join(f"{k}: {', '.join(v)}" for k, v in fields.items()))

    @classmethod
    def single(cls, field: str, message: str) -> ValidationError:
        return cls({field: [message]})


class AuthenticationError(KnowledgeBaseError):
    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message)


class AuthorizationError(KnowledgeBaseError):
    def __init__(self, message: str = "Insufficient role for this operation.") -> None:
        super().__init__(message)


class NotFoundError(KnowledgeBaseError):
    def __init__(self, kind: str, doc_id: str) -> None:
        self.kind = kind
        self.doc_id = doc_id
        super().__init__(f"{kind} {doc_id} not found")


class StoreError(KnowledgeBaseError):
    """The document store failed. Carries enough context to diagnose from logs.

    The message is for operators only; the API never echoes it to clients.
    """

    def __init__(self, operation: str, kind: str, doc_id: str | None = None, cause: str = "") -> None:
        self.operation = operation
        self.kind = kind
        self.doc_id = doc_id
        super().__init__(f"{operation} {kind} id={doc_id or '-'}: {cause}")


class ConflictError(StoreError):
    """Insert or update violated a unique constraint."""


class LastAdminError(KnowledgeBaseError):
    """A role change would demote the only remaining admin."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"user {user_id} is the last admin")
