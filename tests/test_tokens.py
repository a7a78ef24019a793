"""Unit tests for auth/tokens.py -- password hashing and session tokens.

Covers:
- hash_password() salts every call; both digests verify
- verify_password() returns False (never raises) on malformed digests
- create_access_token() / decode_access_token() round-trip user id and role
- expired, tampered, foreign-key and malformed tokens decode to None
- authenticate_user() returns the same None for unknown email and wrong password,
  and runs bcrypt in both cases
- refresh_access_token() picks up a role change from the store
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth import tokens
from auth.models import Role, User
from auth.tokens import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    hash_password,
    refresh_access_token,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_verifies(self) -> None:
        assert verify_password("correct horse", hash_password("correct horse"))

    def test_hash_is_salted(self) -> None:
        """Two hashes of the same password differ but both verify."""
        first = hash_password("same-password")
        second = hash_password("same-password")
        assert first != second
        assert verify_password("same-password", first)
        assert verify_password("same-password", second)

    def test_wrong_password_rejected(self) -> None:
        assert not verify_password("wrong", hash_password("right-password"))

    def test_digest_is_not_plaintext(self) -> None:
        digest = hash_password("plaintext-secret")
        assert "plaintext-secret" not in digest
        assert digest.startswith("$2")

    def test_cost_factor_at_least_ten(self) -> None:
        digest = hash_password("whatever1")
        rounds = int(digest.split("$")[2])
        assert rounds >= 10

    @pytest.mark.parametrize("digest", ["", "not-a-hash", "$2b$10$short", "$$$$"])
    def test_malformed_digest_returns_false(self, digest: str) -> None:
        assert verify_password("anything", digest) is False


class TestSessionTokens:
    def test_round_trip(self) -> None:
        token = create_access_token("user-123", Role.ADMIN)
        session = decode_access_token(token)
        assert session is not None
        assert session.user_id == "user-123"
        assert session.role is Role.ADMIN
        assert session.expires_at > session.issued_at

    def test_role_accepts_string(self) -> None:
        session = decode_access_token(create_access_token("u1", "user"))
        assert session is not None
        assert session.role is Role.USER

    def test_expiry_matches_ttl(self) -> None:
        session = decode_access_token(create_access_token("u1", Role.USER, expire_seconds=120))
        assert session is not None
        assert (session.expires_at - session.issued_at) == timedelta(seconds=120)

    def test_expired_token_is_anonymous(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = create_access_token("u1", Role.ADMIN, expire_seconds=60, issued_at=issued)
        assert decode_access_token(token) is None

    def test_token_signed_with_other_key_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        forged = jwt.encode(
            {"sub": "u1", "role": "admin", "iat": now, "exp": now + timedelta(hours=1)},
            "x" * 64,
            algorithm="HS256",
        )
        assert decode_access_token(forged) is None

    def test_tampered_payload_rejected(self) -> None:
        """Swapping the payload segment (USER -> ADMIN) breaks the signature."""
        token = create_access_token("u1", Role.USER)
        header, payload, signature = token.split(".")
        claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
        claims["role"] = "admin"
        forged_payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()
        assert decode_access_token(f"{header}.{forged_payload}.{signature}") is None

    def test_unknown_role_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "u1", "role": "superuser", "iat": now, "exp": now + timedelta(hours=1)},
            tokens._settings.secret_key,
            algorithm="HS256",
        )
        assert decode_access_token(token) is None

    def test_missing_claims_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode({"exp": now + timedelta(hours=1)}, tokens._settings.secret_key, algorithm="HS256")
        assert decode_access_token(token) is None

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "Bearer x"])
    def test_garbage_is_anonymous(self, garbage: str) -> None:
        assert decode_access_token(garbage) is None


class TestAuthenticateUser:
    @pytest.fixture
    def store_with_user(self, user_store):
        user_store.create_user(User(email="Alice@Example.com", hashed_password=hash_password("alicepass1")))
        return user_store

    def test_valid_credentials(self, store_with_user) -> None:
        user = authenticate_user(store_with_user, "alice@example.com", "alicepass1")
        assert user is not None
        assert user.email == "alice@example.com"

    def test_email_lookup_is_case_insensitive(self, store_with_user) -> None:
        assert authenticate_user(store_with_user, "  ALICE@example.COM ", "alicepass1") is not None

    def test_wrong_password_and_unknown_email_look_the_same(self, store_with_user) -> None:
        assert authenticate_user(store_with_user, "alice@example.com", "nope-nope") is None
        assert authenticate_user(store_with_user, "nobody@example.com", "alicepass1") is None

    def test_unknown_email_still_runs_bcrypt(self, store_with_user, monkeypatch) -> None:
        """Timing equalization: verify_password runs against the dummy hash."""
        calls: list[str] = []
        real_verify = tokens.verify_password

        def spy(plain: str, hashed: str) -> bool:
            calls.append(hashed)
            return real_verify(plain, hashed)

        monkeypatch.setattr(tokens, "verify_password", spy)
        assert authenticate_user(store_with_user, "nobody@example.com", "whatever") is None
        assert calls == [tokens._DUMMY_HASH]


class TestRefresh:
    def test_refresh_uses_current_role(self, user_store) -> None:
        user = user_store.create_user(
            User(email="bob@example.com", hashed_password=hash_password("bobpass12"), role=Role.ADMIN)
        )
        session = decode_access_token(create_access_token(user.id, Role.ADMIN))
        user_store.update_user(user.id, role=Role.USER)

        refreshed = refresh_access_token(user_store, session)
        assert refreshed is not None
        token, fresh_user = refreshed
        assert fresh_user.role is Role.USER
        assert decode_access_token(token).role is Role.USER

    def test_refresh_unknown_user(self, user_store) -> None:
        session = decode_access_token(create_access_token("ghost", Role.USER))
        assert refresh_access_token(user_store, session) is None
