from __future__ import annotations

from datetime import timedelta

import pytest

from book_catalog.auth import service
from book_catalog.auth.crud import DuplicateEmail, SqlIdentityStore
from book_catalog.auth.security import decode_access_token
from book_catalog.db import connect, init_db
from book_catalog.errors import (
    AuthError,
    ConfigError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)


SECRET = "service-test-secret-0123456789abcdef"
WEEK = timedelta(days=7)


def _login(store, email, password, **kw):
    kw.setdefault("secret", SECRET)
    kw.setdefault("expires_in", WEEK)
    return service.login(store, email, password, **kw)


# -----------------------------
# register
# -----------------------------


def test_register_returns_summary_without_secrets(store):
    out = service.register(store, "a@b.com", "password1", "alice")
    assert set(out) == {"id", "email", "created_at"}
    assert out["email"] == "a@b.com"

    stored = store.find_by_id(out["id"])
    assert stored["username"] == "alice"
    assert stored["password_hash"] != "password1"


def test_register_same_email_twice_conflicts(store):
    service.register(store, "a@b.com", "password1")
    with pytest.raises(ConflictError) as ei:
        service.register(store, "a@b.com", "another-password")
    assert ei.value.message == "Email already registered"
    assert len(store.rows) == 1


def test_register_email_is_case_sensitive(store):
    service.register(store, "a@b.com", "password1")
    service.register(store, "A@b.com", "password1")
    assert len(store.rows) == 2


@pytest.mark.parametrize(
    "email,password,message",
    [
        (None, "password1", "Email and password are required"),
        ("a@b.com", None, "Email and password are required"),
        ("", "", "Email and password are required"),
        ("not-an-email", "password1", "Invalid email format"),
        ("a@b", "password1", "Invalid email format"),
        ("a b@c.com", "password1", "Invalid email format"),
        ("a@b.com", "short", "Password must be at least 8 characters long"),
        ("a@b.com", "1234567", "Password must be at least 8 characters long"),
    ],
)
def test_register_validation(store, email, password, message):
    with pytest.raises(ValidationError) as ei:
        service.register(store, email, password)
    assert ei.value.message == message
    assert store.rows == {}


def test_register_blank_username_stored_as_absent(store):
    out = service.register(store, "a@b.com", "password1", "   ")
    assert store.find_by_id(out["id"])["username"] is None


def test_register_race_on_insert_maps_to_conflict(store):
    class RacyStore(type(store)):
        def find_by_email(self, email):
            # Pre-check misses the row a concurrent request just wrote.
            return None

    racy = RacyStore()
    service.register(racy, "a@b.com", "password1")
    with pytest.raises(ConflictError) as ei:
        service.register(racy, "a@b.com", "password1")
    assert ei.value.message == "Email already registered"


def test_register_store_failure_becomes_internal_error(store, capsys):
    class BrokenStore(type(store)):
        def insert(self, **kw):
            raise RuntimeError("disk on fire")

    with pytest.raises(InternalError) as ei:
        service.register(BrokenStore(), "a@b.com", "password1")
    assert ei.value.message == "Internal server error"
    assert "disk on fire" not in ei.value.message
    assert "disk on fire" in capsys.readouterr().out


# -----------------------------
# login
# -----------------------------


def test_login_issues_token_for_identity(store):
    reg = service.register(store, "a@b.com", "password1")
    token = _login(store, "a@b.com", "password1")
    payload = decode_access_token(token=token, secret=SECRET)
    assert payload["sub"] == reg["id"]
    assert payload["email"] == "a@b.com"


def test_login_unknown_email_and_wrong_password_are_indistinguishable(store):
    service.register(store, "a@b.com", "password1")

    with pytest.raises(AuthError) as unknown:
        _login(store, "nobody@b.com", "password1")
    with pytest.raises(AuthError) as wrong:
        _login(store, "a@b.com", "password2")

    assert unknown.value.message == wrong.value.message == "Invalid credentials"
    assert unknown.value.status_code == wrong.value.status_code == 401


@pytest.mark.parametrize("email,password", [(None, "password1"), ("a@b.com", None), ("", "x")])
def test_login_requires_both_fields(store, email, password):
    with pytest.raises(ValidationError) as ei:
        _login(store, email, password)
    assert ei.value.message == "Email and password are required"


def test_login_without_secret_is_config_error(store):
    service.register(store, "a@b.com", "password1")
    with pytest.raises(ConfigError) as ei:
        _login(store, "a@b.com", "password1", secret=None)
    assert ei.value.status_code == 500
    assert ei.value.message == "JWT secret not configured"


def test_login_bad_credentials_checked_before_secret(store):
    # A client with wrong credentials learns nothing about server config.
    with pytest.raises(AuthError):
        _login(store, "a@b.com", "password1", secret=None)


def test_login_bad_credentials_checked_before_expiry(store):
    service.register(store, "a@b.com", "password1")
    with pytest.raises(AuthError):
        _login(store, "a@b.com", "password2", expires_in="forever")
    with pytest.raises(AuthError):
        _login(store, "ghost@b.com", "password1", expires_in="forever")

    with pytest.raises(ConfigError) as ei:
        _login(store, "a@b.com", "password1", expires_in="forever")
    assert ei.value.message == "JWT expiry not configured correctly"


def test_login_accepts_raw_duration(store):
    service.register(store, "a@b.com", "password1")
    payload = decode_access_token(token=_login(store, "a@b.com", "password1", expires_in="30m"), secret=SECRET)
    assert payload["exp"] - payload["iat"] == 1800


def test_login_unknown_email_still_verifies_a_hash(store, monkeypatch):
    calls = []
    real_verify = service.verify_password

    def counting_verify(password, password_hash, **kw):
        calls.append(password_hash)
        return real_verify(password, password_hash, **kw)

    monkeypatch.setattr(service, "verify_password", counting_verify)
    service.register(store, "a@b.com", "password1")

    with pytest.raises(AuthError):
        _login(store, "ghost@b.com", "password1")
    with pytest.raises(AuthError):
        _login(store, "a@b.com", "password2")

    assert len(calls) == 2
    assert calls[0].startswith("$pbkdf2-sha256$")
    assert calls[0] != store.find_by_email("a@b.com")["password_hash"]


# -----------------------------
# get_profile
# -----------------------------


def test_get_profile_excludes_hash_and_created_at(store):
    reg = service.register(store, "a@b.com", "password1", "alice")
    profile = service.get_profile(store, reg["id"])
    assert profile == {"id": reg["id"], "username": "alice", "email": "a@b.com"}


def test_get_profile_without_identity_context(store):
    with pytest.raises(AuthError) as ei:
        service.get_profile(store, None)
    assert ei.value.message == "Unauthorized"


def test_get_profile_for_vanished_identity(store):
    with pytest.raises(NotFoundError) as ei:
        service.get_profile(store, "deadbeef")
    assert ei.value.message == "User not found"


# -----------------------------
# SQL store
# -----------------------------


def test_sql_store_enforces_unique_email(db_path):
    init_db(db_path)
    with connect(db_path) as conn:
        s = SqlIdentityStore(conn)
        s.insert(email="a@b.com", username=None, password_hash="x")
        with pytest.raises(DuplicateEmail):
            s.insert(email="a@b.com", username=None, password_hash="y")


def test_sql_store_round_trip_through_service(db_path):
    init_db(db_path)
    with connect(db_path) as conn:
        reg = service.register(SqlIdentityStore(conn), "a@b.com", "password1")

    with connect(db_path) as conn:
        s = SqlIdentityStore(conn)
        assert s.find_by_email("a@b.com")["id"] == reg["id"]
        assert s.find_by_email("missing@b.com") is None
        token = _login(s, "a@b.com", "password1")
        assert decode_access_token(token=token, secret=SECRET)["sub"] == reg["id"]
        assert service.get_profile(s, reg["id"])["email"] == "a@b.com"
