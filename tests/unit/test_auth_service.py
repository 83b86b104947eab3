"""
AuthService against in-memory stores: no database involved.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.config import AuthConfig
from core.errors import ErrorCodes
from schemas.auth_schemas import AuthProvider, NewUser, RevokedReason, normalize_email
from services import auth_service
from services.auth_service import AuthService
from tests.fakes import FrozenClock, InMemoryRefreshTokenStore, InMemoryUserStore


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def users():
    return InMemoryUserStore()


@pytest.fixture
def tokens(clock):
    return InMemoryRefreshTokenStore(clock)


@pytest.fixture
def service(users, tokens, clock):
    config = AuthConfig(secret_key="fake-secret", refresh_token_lifetime=timedelta(days=7))
    return AuthService(config=config, users=users, refresh_tokens=tokens, clock=clock)


def test_register_normalizes_email_and_hashes_password(service, users):
    user = service.register("  User@Example.COM ", "Passw0rd!").unwrap()

    assert user.email == "user@example.com"
    assert user.auth_provider == AuthProvider.LOCAL
    assert user.password_hash and user.password_salt
    assert user.password_hash != "Passw0rd!"
    assert users.users[user.id] == user


def test_new_user_and_lookups_share_email_normalization():
    raw = " \tMixed.Case@Example.ORG \n"

    assert NewUser(email=raw).email == normalize_email(raw) == "mixed.case@example.org"


def test_register_duplicate_email(service):
    service.register("user@example.com", "Passw0rd!")

    result = service.register("USER@example.com", "Other123!")

    assert result.is_err()
    assert result.code == ErrorCodes.USER_ALREADY_EXISTS


@pytest.mark.parametrize("email", ["", "   ", "\t\n"])
def test_register_blank_email_returns_err(service, users, email):
    result = service.register(email, "Passw0rd!")

    assert result.is_err()
    assert result.code == ErrorCodes.INVALID_CREDENTIALS
    assert users.users == {}


def test_register_propagates_storage_failure(service, users):
    users.available = False

    result = service.register("user@example.com", "Passw0rd!")

    assert result.code == ErrorCodes.STORAGE_UNAVAILABLE


def test_login_failures_are_indistinguishable(service):
    service.register("user@example.com", "Passw0rd!")

    wrong_password = service.login("user@example.com", "nope")
    unknown_email = service.login("ghost@example.com", "Passw0rd!")

    assert wrong_password == unknown_email
    assert wrong_password.code == ErrorCodes.INVALID_CREDENTIALS


def test_login_rejects_external_provider_account(service, users):
    users.add(NewUser(email="oauth@example.com", auth_provider=AuthProvider.GOOGLE, external_id="g-123"))

    result = service.login("oauth@example.com", "")

    assert result.code == ErrorCodes.INVALID_CREDENTIALS


def test_login_external_provider_account_still_spends_hashing_time(service, users, monkeypatch):
    users.add(NewUser(email="oauth@example.com", auth_provider=AuthProvider.GOOGLE, external_id="g-123"))
    checked = []

    def recording_verify(password, stored_hash, stored_salt):
        checked.append(password)
        return False

    monkeypatch.setattr(auth_service, "verify_password", recording_verify)

    result = service.login("oauth@example.com", "Passw0rd!")

    assert result == service.login("ghost@example.com", "Passw0rd!")
    assert checked == ["Passw0rd!", "Passw0rd!"]


def test_login_storage_failure_is_not_reported_as_bad_credentials(service, users):
    service.register("user@example.com", "Passw0rd!")
    users.available = False

    result = service.login("user@example.com", "Passw0rd!")

    assert result.code == ErrorCodes.STORAGE_UNAVAILABLE


def test_login_issues_tokens(service, tokens, clock):
    user = service.register("user@example.com", "Passw0rd!").unwrap()

    result = service.login("user@example.com", "Passw0rd!").unwrap()

    assert result.user_id == user.id
    assert result.refresh_token
    assert result.access_token
    assert result.access_token_expiry == clock.now + timedelta(minutes=15)
    assert result.refresh_token_expiry == clock.now + timedelta(days=7)

    stored = tokens.find_by_token(result.refresh_token).unwrap()
    assert stored.created_by_token is None
    assert stored.is_revoked is False


def test_login_fails_when_refresh_token_cannot_be_stored(service, tokens):
    service.register("user@example.com", "Passw0rd!")
    tokens.available = False

    result = service.login("user@example.com", "Passw0rd!")

    assert result.code == ErrorCodes.STORAGE_UNAVAILABLE


def test_refresh_uses_injected_token_source(users, tokens, clock):
    values = iter(["token-a", "token-b", "token-c"])
    service = AuthService(
        config=AuthConfig(secret_key="fake-secret"),
        users=users,
        refresh_tokens=tokens,
        clock=clock,
        token_factory=lambda: next(values),
    )
    service.register("user@example.com", "Passw0rd!")

    first = service.login("user@example.com", "Passw0rd!").unwrap()
    second = service.refresh(first.refresh_token).unwrap()

    assert first.refresh_token == "token-a"
    assert second.refresh_token == "token-b"
    assert tokens.find_by_token("token-a").unwrap().replaced_by_token == "token-b"
    assert tokens.find_by_token("token-b").unwrap().created_by_token == "token-a"


def test_refresh_lost_race_is_treated_as_reuse(users, tokens, clock, service):
    """
    Simulates a second request revoking the token between our read and
    our conditional write.
    """
    service.register("user@example.com", "Passw0rd!")
    login = service.login("user@example.com", "Passw0rd!").unwrap()

    original = tokens.revoke_if_active

    def revoke_after_concurrent_rotation(token):
        current = tokens.find_by_token(token.token).unwrap()
        tokens.rows[current.id] = current.revoke(clock(), RevokedReason.ROTATED, replaced_by_token="winner")
        return original(token)

    tokens.revoke_if_active = revoke_after_concurrent_rotation

    result = service.refresh(login.refresh_token)

    assert result.code == ErrorCodes.REUSE_DETECTED


def test_refresh_storage_failure(service, tokens):
    service.register("user@example.com", "Passw0rd!")
    login = service.login("user@example.com", "Passw0rd!").unwrap()
    tokens.available = False

    assert service.refresh(login.refresh_token).code == ErrorCodes.STORAGE_UNAVAILABLE


def test_refresh_for_deleted_user(service, users):
    user = service.register("user@example.com", "Passw0rd!").unwrap()
    login = service.login("user@example.com", "Passw0rd!").unwrap()
    users.delete(user.id)

    assert service.refresh(login.refresh_token).code == ErrorCodes.USER_NOT_FOUND


def test_delete_account_revokes_sessions_then_deletes_user(service, users, tokens):
    user = service.register("user@example.com", "Passw0rd!").unwrap()
    login = service.login("user@example.com", "Passw0rd!").unwrap()

    assert service.delete_account(user.id).unwrap() is True

    assert user.id not in users.users
    assert tokens.find_by_token(login.refresh_token).unwrap().is_revoked is True
    assert service.delete_account(user.id).unwrap() is False


def test_delete_account_stops_on_storage_failure(service, users, tokens):
    user = service.register("user@example.com", "Passw0rd!").unwrap()
    tokens.available = False

    assert service.delete_account(user.id).code == ErrorCodes.STORAGE_UNAVAILABLE
    assert user.id in users.users


def test_get_user(service):
    user = service.register("user@example.com", "Passw0rd!").unwrap()

    assert service.get_user(user.id).unwrap() == user
    assert service.get_user("missing").code == ErrorCodes.USER_NOT_FOUND
