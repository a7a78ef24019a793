"""
API response models for the knowledge base REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in kb/models.py and
auth/models.py, which own the internal domain representation. Request
payloads are validated by the schemas in kb/validators.py and auth/schemas.py
inside the services, after the guard has run.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from kb.models import Article, Product, SearchResponse

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    fields is present only for validation errors: field name -> messages.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[dict[str, list[str]]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: str
    email: str
    role: str


class MeResponse(BaseModel):
    """Identity of the caller. role is the role carried by the token."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    role: str
    session_expires_at: str


class UserResponse(BaseModel):
    """User record without the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role.value,
            created_at=user.created_at or "",
            updated_at=user.updated_at,
        )


# ---------------------------------------------------------------------------
# Articles and products
# ---------------------------------------------------------------------------


class ArticleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    product: str
    subject: str
    body: str
    date: str
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_article(cls, article: Article) -> "ArticleResponse":
        """Factory Method -- the mapping lives here, next to the output model."""
        return cls(
            id=article.id,
            product=article.product,
            subject=article.subject,
            body=article.body,
            date=article.date,
            created_at=article.created_at,
            updated_at=article.updated_at,
        )


class ProductResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchResultRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    product: str
    subject: str
    body: str
    date: str
    score: float


class SearchResponseModel(BaseModel):
    """Response for GET /api/v1/search.

    total -- matches before the size cut, not just this page.
    took  -- server-side search time in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    results: list[SearchResultRow]
    total: int
    took: float
    query: str

    @classmethod
    def from_search(cls, page: SearchResponse) -> "SearchResponseModel":
        return cls(
            results=[
                SearchResultRow(id=r.id, product=r.product, subject=r.subject, body=r.body, date=r.date, score=r.score)
                for r in page.results
            ],
            total=page.total,
            took=page.took,
            query=page.query,
        )
