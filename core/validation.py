"""
core/validation.py -- Shared building blocks for payload validators.

Resource schemas live next to their resource (auth/schemas.py,
kb/validators.py); they are built from the annotated types below and run
through validate_payload(), which turns pydantic failures into the
structured core.errors.ValidationError ({field: [messages]}).

Email syntax is checked by pydantic's EmailStr (email-validator), without a
deliverability lookup.

Layer rule: core/ is the kernel. No imports from api/, auth/, or kb/.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Annotated, Any, TypeVar

from pydantic import AfterValidator, BaseModel, EmailStr
from pydantic import ValidationError as PydanticValidationError

from core.errors import ValidationError

PAYLOAD_FIELD = "payload"

# Location prefixes FastAPI adds to request validation errors.
_LOC_PREFIXES = {"body", "query", "path", "header", "cookie"}

# Full date-time: calendar date, "T", hours and minutes at least, optional
# seconds/fraction and optional "Z" or +HH:MM offset.
_TIMESTAMP_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:\d{2})?$")

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("cannot be empty")
    return value


def _iso_timestamp(value: str) -> str:
    """Parse an ISO-8601 date-time and return it normalized to UTC.

    Plain dates and space-separated forms are rejected. Naive timestamps are
    taken as UTC.
    """
    value = value.strip()
    if not _TIMESTAMP_SHAPE.match(value):
        raise ValueError("must be an ISO-8601 date-time such as 2024-05-01T10:00:00Z")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError("must be a valid ISO-8601 timestamp") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def _lower(value: str) -> str:
    return value.lower()


NonEmptyStr = Annotated[str, AfterValidator(_not_blank)]
IsoTimestamp = Annotated[str, AfterValidator(_iso_timestamp)]
Email = Annotated[EmailStr, AfterValidator(_lower)]


# ---------------------------------------------------------------------------
# Error shaping
# ---------------------------------------------------------------------------


def errors_to_fields(errors: Iterable[dict], strip_location: bool = False) -> dict[str, list[str]]:
    """Group pydantic error dicts by dotted field path.

    strip_location drops the leading "body"/"query"/... segment that FastAPI
    puts on request validation errors. Schema errors from validate_payload()
    carry no such segment, so there a leading "body" is the article field.

    Errors without a field location (model-level checks) go under "payload".
    """
    fields: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if strip_location and loc and loc[0] in _LOC_PREFIXES:
            loc = loc[1:]
        key = ".".join(loc) or PAYLOAD_FIELD
        message = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        fields.setdefault(key, []).append(message)
    return fields


def validate_payload(schema: type[M], payload: Any) -> M:
    """Validate a decoded JSON payload against schema.

    Raises core.errors.ValidationError with per-field messages on failure.
    """
    if not isinstance(payload, dict):
        raise ValidationError.single(PAYLOAD_FIELD, "must be a JSON object")
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(errors_to_fields(exc.errors())) from None
