"""Unit tests for the payload validators (kb/validators.py, auth/schemas.py).

Every failure must come back as core.errors.ValidationError with a
field -> messages map naming the offending field.
"""

from __future__ import annotations

import pytest

from auth.models import Role
from auth.schemas import LoginRequest, RegisterRequest, UserCreate, UserUpdate
from core.errors import ValidationError
from core.validation import errors_to_fields, validate_payload
from kb.validators import ArticleCreate, ArticleUpdate, ProductCreate, ProductUpdate

VALID_ARTICLE = {
    "product": "P1",
    "subject": "Printer offline",
    "body": "Power-cycle the printer.",
    "date": "2024-05-01T10:00:00Z",
}


def _fields(schema, payload) -> dict[str, list[str]]:
    with pytest.raises(ValidationError) as exc_info:
        validate_payload(schema, payload)
    return exc_info.value.fields


class TestArticleCreate:
    def test_valid_payload_accepted(self) -> None:
        body = validate_payload(ArticleCreate, VALID_ARTICLE)
        assert body.subject == "Printer offline"
        assert body.date == "2024-05-01T10:00:00+00:00"

    @pytest.mark.parametrize("field", ["product", "subject", "body"])
    def test_blank_content_field_rejected(self, field: str) -> None:
        fields = _fields(ArticleCreate, {**VALID_ARTICLE, field: "   "})
        assert field in fields
        assert fields[field] == ["cannot be empty"]

    @pytest.mark.parametrize("field", ["product", "subject", "body", "date"])
    def test_missing_field_rejected(self, field: str) -> None:
        payload = {k: v for k, v in VALID_ARTICLE.items() if k != field}
        assert field in _fields(ArticleCreate, payload)

    def test_whitespace_trimmed(self) -> None:
        body = validate_payload(ArticleCreate, {**VALID_ARTICLE, "subject": "  Hello  "})
        assert body.subject == "Hello"

    @pytest.mark.parametrize(
        "date",
        ["yesterday", "2024-13-01T00:00:00Z", "", "01/05/2024", "2024-05-01", "20240501", "2024-05-01 10:00:00"],
    )
    def test_invalid_date_rejected(self, date: str) -> None:
        assert "date" in _fields(ArticleCreate, {**VALID_ARTICLE, "date": date})

    def test_offset_date_normalized_to_utc(self) -> None:
        body = validate_payload(ArticleCreate, {**VALID_ARTICLE, "date": "2024-05-01T12:00:00+02:00"})
        assert body.date == "2024-05-01T10:00:00+00:00"

    def test_naive_date_taken_as_utc(self) -> None:
        body = validate_payload(ArticleCreate, {**VALID_ARTICLE, "date": "2024-05-01T10:00:00"})
        assert body.date == "2024-05-01T10:00:00+00:00"

    def test_multiple_errors_reported_together(self) -> None:
        fields = _fields(ArticleCreate, {"product": "", "subject": "", "body": "ok", "date": "bad"})
        assert set(fields) == {"product", "subject", "date"}

    def test_non_object_payload_rejected(self) -> None:
        assert "payload" in _fields(ArticleCreate, ["not", "an", "object"])
        assert "payload" in _fields(ArticleCreate, None)


class TestArticleUpdate:
    def test_empty_payload_rejected(self) -> None:
        fields = _fields(ArticleUpdate, {})
        assert fields == {"payload": ["At least one field must be provided for an update"]}

    def test_single_field_accepted(self) -> None:
        body = validate_payload(ArticleUpdate, {"subject": "x"})
        assert body.changes() == {"subject": "x"}

    def test_unrecognized_fields_only_rejected(self) -> None:
        assert "payload" in _fields(ArticleUpdate, {"title": "x"})

    def test_null_only_rejected(self) -> None:
        assert "payload" in _fields(ArticleUpdate, {"subject": None})

    def test_blank_field_rejected(self) -> None:
        assert _fields(ArticleUpdate, {"body": "  "}) == {"body": ["cannot be empty"]}

    def test_date_normalized(self) -> None:
        body = validate_payload(ArticleUpdate, {"date": "2024-01-01T00:00:00+01:00"})
        assert body.changes() == {"date": "2023-12-31T23:00:00+00:00"}


class TestProductSchemas:
    def test_name_required(self) -> None:
        assert "name" in _fields(ProductCreate, {"description": "no name"})

    def test_blank_name_rejected(self) -> None:
        assert "name" in _fields(ProductCreate, {"name": "  "})

    def test_description_optional(self) -> None:
        body = validate_payload(ProductCreate, {"name": "Widget"})
        assert body.name == "Widget"
        assert body.description is None

    def test_blank_description_becomes_none(self) -> None:
        assert validate_payload(ProductCreate, {"name": "Widget", "description": "  "}).description is None

    def test_update_requires_a_field(self) -> None:
        assert "payload" in _fields(ProductUpdate, {})

    def test_update_description_only(self) -> None:
        assert validate_payload(ProductUpdate, {"description": "Blue"}).changes() == {"description": "Blue"}

    @pytest.mark.parametrize("cleared", [None, "", "   "])
    def test_update_can_clear_description(self, cleared) -> None:
        assert validate_payload(ProductUpdate, {"description": cleared}).changes() == {"description": None}

    def test_update_null_name_ignored(self) -> None:
        assert "payload" in _fields(ProductUpdate, {"name": None})

    def test_update_name_leaves_description_alone(self) -> None:
        assert validate_payload(ProductUpdate, {"name": "Gadget"}).changes() == {"name": "Gadget"}


class TestUserSchemas:
    def test_user_create_valid(self) -> None:
        body = validate_payload(UserCreate, {"email": " New@Example.com ", "password": "longenough"})
        assert body.email == "new@example.com"
        assert body.role is Role.USER

    @pytest.mark.parametrize(
        "email",
        [
            "",
            "plainaddress",
            "a@b",
            "a b@c.com",
            "@example.com",
            "a@b..com",
            "a@-b.com",
            "a..b@c.com",
            "a@b.c,om",
            ".a@b.com",
        ],
    )
    def test_bad_email_rejected(self, email: str) -> None:
        assert "email" in _fields(UserCreate, {"email": email, "password": "longenough"})

    def test_short_password_rejected(self) -> None:
        fields = _fields(UserCreate, {"email": "a@b.com", "password": "short"})
        assert fields["password"] == ["must be at least 8 characters long"]

    def test_overlong_password_rejected(self) -> None:
        assert "password" in _fields(UserCreate, {"email": "a@b.com", "password": "x" * 73})

    def test_unknown_role_rejected(self) -> None:
        assert "role" in _fields(UserCreate, {"email": "a@b.com", "password": "longenough", "role": "root"})

    def test_register_ignores_role(self) -> None:
        body = validate_payload(RegisterRequest, {"email": "a@b.com", "password": "longenough", "role": "admin"})
        assert not hasattr(body, "role")

    def test_login_has_no_length_floor(self) -> None:
        body = validate_payload(LoginRequest, {"email": "a@b.com", "password": "x"})
        assert body.password == "x"

    def test_login_empty_password_rejected(self) -> None:
        assert "password" in _fields(LoginRequest, {"email": "a@b.com", "password": ""})

    def test_login_bad_email_rejected(self) -> None:
        assert "email" in _fields(LoginRequest, {"email": "nope", "password": "x"})

    def test_login_password_not_stripped(self) -> None:
        assert validate_payload(LoginRequest, {"email": "a@b.com", "password": " pw "}).password == " pw "

    def test_user_update_requires_a_field(self) -> None:
        assert "payload" in _fields(UserUpdate, {})


class TestErrorsToFields:
    def test_request_location_stripped_on_request(self) -> None:
        errors = [{"loc": ("query", "size"), "msg": "Input should be a valid integer"}]
        assert errors_to_fields(errors, strip_location=True) == {"size": ["Input should be a valid integer"]}

    def test_nested_location_dotted(self) -> None:
        assert errors_to_fields([{"loc": ("body", "a", 0), "msg": "bad"}], strip_location=True) == {"a.0": ["bad"]}

    def test_schema_field_named_body_kept(self) -> None:
        """An article's own "body" field is not a request location."""
        assert errors_to_fields([{"loc": ("body",), "msg": "Value error, cannot be empty"}]) == {
            "body": ["cannot be empty"]
        }

    def test_model_level_error_under_payload(self) -> None:
        assert errors_to_fields([{"loc": (), "msg": "Value error, nope"}]) == {"payload": ["nope"]}
