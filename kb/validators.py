"""
kb/validators.py -- Create/update schemas for articles and products.

Run through core.validation.validate_payload() by kb/service.py after the
guard check and before any store call. Strings are stripped; content fields
must be non-empty after stripping.

Update schemas accept any subset of fields but reject a payload with no
recognized, non-null field. A product description is the exception: an
explicit null or blank value clears it. changes() returns exactly what should
be written.
"""

from __future__ import annotations

from typing import Annotated, ClassVar, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, model_validator

from core.validation import IsoTimestamp, NonEmptyStr

_EMPTY_UPDATE = "At least one field must be provided for an update"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


OptionalText = Annotated[Optional[str], AfterValidator(_blank_to_none)]


class _UpdateSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Fields an explicit null (or blank) clears instead of leaving untouched.
    clearable: ClassVar[frozenset[str]] = frozenset()

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k in self.clearable}

    @model_validator(mode="after")
    def require_change(self):
        if not self.changes():
            raise ValueError(_EMPTY_UPDATE)
        return self


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


class ArticleCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product: NonEmptyStr
    subject: NonEmptyStr
    body: NonEmptyStr
    date: IsoTimestamp


class ArticleUpdate(_UpdateSchema):
    product: Optional[NonEmptyStr] = None
    subject: Optional[NonEmptyStr] = None
    body: Optional[NonEmptyStr] = None
    date: Optional[IsoTimestamp] = None


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: NonEmptyStr
    description: OptionalText = None


class ProductUpdate(_UpdateSchema):
    clearable = frozenset({"description"})

    name: Optional[NonEmptyStr] = None
    description: OptionalText = None
