import pytest

from core.constants import RevokeReason, UserStatus
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, RefreshTokenError, UnauthorizedError
from schemas.auth_schemas import CreateUserRequest
from services.auth_service import INVALID_CREDENTIALS
from services.signer import AccessClaims
from tests.conftest import TEST_PASSWORD


def _registration(**overrides) -> CreateUserRequest:
    data = {
        "username": "alice",
        "password": TEST_PASSWORD,
        "real_name": "Alice",
        "phone_number": "+8613800138000",
    }
    data.update(overrides)
    return CreateUserRequest(**data)


@pytest.fixture
def alice(authenticator):
    return authenticator.register(_registration(email="alice@example.com"))


# ---------- register ----------

def test_register_creates_active_user_with_hashed_password(authenticator, alice):
    assert alice.id == 1
    assert alice.status == UserStatus.ACTIVE.value
    assert alice.role == "FARMER"
    assert alice.password_hash != TEST_PASSWORD
    assert authenticator.passwords.matches(TEST_PASSWORD, alice.password_hash)


@pytest.mark.parametrize("overrides, message", [
    ({"phone_number": "+8613900139000"}, "Username already exists"),
    ({"username": "alice2"}, "Phone number already registered"),
    ({"username": "alice2", "phone_number": "+8613900139000", "email": "alice@example.com"}, "Email already registered"),
])
def test_register_rejects_duplicates(authenticator, directory, alice, overrides, message):
    with pytest.raises(ConflictError) as exc_info:
        authenticator.register(_registration(**overrides))

    assert exc_info.value.message == message
    assert exc_info.value.status_code == 400
    assert directory.find_by_id(2) is None


def test_register_without_email_twice(authenticator, alice):
    bob = authenticator.register(_registration(username="bob", phone_number="+8613900139000"))

    assert bob.email is None


# ---------- login ----------

def test_login_returns_bundle(authenticator, signer, store, alice):
    bundle = authenticator.login("alice", TEST_PASSWORD, device_info="Pixel 8", ip_address="10.0.0.1")

    assert bundle.token_type == "Bearer"
    assert bundle.expires_in == 900
    assert bundle.principal.id == alice.id

    claims = signer.verify(bundle.access_token)
    assert isinstance(claims, AccessClaims)
    assert claims.principal_id == alice.id
    assert claims.username == "alice"
    assert claims.role == "FARMER"

    [record] = store.find_by_principal(alice.id)
    assert record.device_info == "Pixel 8"
    assert record.ip_address == "10.0.0.1"


def test_login_twice_creates_two_sessions(authenticator, store, alice):
    first = authenticator.login("alice", TEST_PASSWORD)
    second = authenticator.login("alice", TEST_PASSWORD)

    assert first.refresh_token != second.refresh_token
    assert len(store.find_by_principal(alice.id)) == 2


def test_login_failures_are_indistinguishable(authenticator, alice):
    with pytest.raises(UnauthorizedError) as unknown:
        authenticator.login("nobody", TEST_PASSWORD)

    with pytest.raises(UnauthorizedError) as wrong:
        authenticator.login("alice", "WrongPass1")

    assert unknown.value.message == wrong.value.message == INVALID_CREDENTIALS
    assert unknown.value.status_code == wrong.value.status_code == 401


def test_unknown_user_still_pays_for_a_hash(authenticator, monkeypatch):
    calls = []
    monkeypatch.setattr(authenticator.passwords, "dummy_verify", lambda: calls.append(1))

    with pytest.raises(UnauthorizedError):
        authenticator.login("nobody", TEST_PASSWORD)

    assert calls == [1]


def test_failed_logins_issue_nothing(authenticator, store, alice):
    with pytest.raises(UnauthorizedError):
        authenticator.login("alice", "WrongPass1")

    assert store.find_by_principal(alice.id) == []


def test_no_lockout_after_failures(authenticator, alice):
    for _ in range(5):
        with pytest.raises(UnauthorizedError):
            authenticator.login("alice", "WrongPass1")

    assert authenticator.login("alice", TEST_PASSWORD).principal.id == alice.id


@pytest.mark.parametrize("status", [UserStatus.INACTIVE.value, UserStatus.BANNED.value])
def test_login_inactive_account_is_forbidden(authenticator, directory, store, alice, status):
    directory.update_status(alice.id, status)

    with pytest.raises(ForbiddenError):
        authenticator.login("alice", TEST_PASSWORD)

    assert store.find_by_principal(alice.id) == []


def test_inactive_account_with_wrong_password_is_unauthorized(authenticator, directory, alice):
    directory.update_status(alice.id, UserStatus.INACTIVE.value)

    with pytest.raises(UnauthorizedError):
        authenticator.login("alice", "WrongPass1")


# ---------- refresh ----------

def test_refresh_returns_new_access_token_and_same_refresh_token(authenticator, signer, clock, alice):
    bundle = authenticator.login("alice", TEST_PASSWORD)

    clock.advance(minutes=20)
    # the original access token is past its lifetime by now
    assert not authenticator.verify_access_token(bundle.access_token)

    refreshed = authenticator.refresh(bundle.refresh_token)

    assert refreshed.refresh_token == bundle.refresh_token
    assert refreshed.access_token != bundle.access_token
    assert authenticator.verify_access_token(refreshed.access_token)
    assert signer.verify(refreshed.access_token).principal_id == alice.id


def test_refresh_rereads_account_status(authenticator, directory, alice):
    bundle = authenticator.login("alice", TEST_PASSWORD)
    directory.update_status(alice.id, UserStatus.BANNED.value)

    with pytest.raises(ForbiddenError):
        authenticator.refresh(bundle.refresh_token)

    directory.update_status(alice.id, UserStatus.ACTIVE.value)
    assert authenticator.refresh(bundle.refresh_token).principal.id == alice.id


def test_refresh_unknown_token(authenticator, alice):
    with pytest.raises(RefreshTokenError) as exc_info:
        authenticator.refresh("made-up-token")

    assert exc_info.value.reason == RefreshTokenError.NOT_FOUND


def test_refresh_after_expiry(authenticator, clock, alice):
    bundle = authenticator.login("alice", TEST_PASSWORD)
    clock.advance(days=8)

    with pytest.raises(RefreshTokenError) as exc_info:
        authenticator.refresh(bundle.refresh_token)

    assert exc_info.value.reason == RefreshTokenError.EXPIRED


def test_refresh_for_deleted_principal(authenticator, directory, alice):
    bundle = authenticator.login("alice", TEST_PASSWORD)
    directory._users.clear()

    with pytest.raises(UnauthorizedError):
        authenticator.refresh(bundle.refresh_token)


# ---------- logout / revoke-all ----------

def test_logout_revokes_only_that_session(authenticator, store, alice):
    phone = authenticator.login("alice", TEST_PASSWORD, device_info="phone")
    laptop = authenticator.login("alice", TEST_PASSWORD, device_info="laptop")

    authenticator.logout(phone.refresh_token)

    with pytest.raises(RefreshTokenError) as exc_info:
        authenticator.refresh(phone.refresh_token)
    assert exc_info.value.reason == RefreshTokenError.REVOKED

    assert authenticator.refresh(laptop.refresh_token).principal.id == alice.id

    revoked = [r for r in store.find_by_principal(alice.id) if r.is_revoked]
    assert [r.revoked_reason for r in revoked] == [RevokeReason.USER_LOGOUT.value]


def test_logout_unknown_token(authenticator):
    with pytest.raises(NotFoundError):
        authenticator.logout("made-up-token")


def test_logout_does_not_touch_access_tokens(authenticator, alice):
    bundle = authenticator.login("alice", TEST_PASSWORD)

    authenticator.logout(bundle.refresh_token)

    # stateless access tokens stay valid until they expire
    assert authenticator.verify_access_token(bundle.access_token)


def test_revoke_all_sessions(authenticator, store, alice):
    bundles = [authenticator.login("alice", TEST_PASSWORD) for _ in range(3)]

    assert authenticator.revoke_all_sessions(alice.id) == 3

    for bundle in bundles:
        with pytest.raises(RefreshTokenError):
            authenticator.refresh(bundle.refresh_token)

    reasons = {r.revoked_reason for r in store.find_by_principal(alice.id)}
    assert reasons == {RevokeReason.SECURITY_EVENT.value}

    assert authenticator.revoke_all_sessions(alice.id) == 0


def test_revoke_all_sessions_with_reason(authenticator, store, alice):
    authenticator.login("alice", TEST_PASSWORD)

    authenticator.revoke_all_sessions(alice.id, RevokeReason.PASSWORD_CHANGED)

    [record] = store.find_by_principal(alice.id)
    assert record.revoked_reason == "PASSWORD_CHANGED"


def test_login_after_revoke_all_works(authenticator, alice):
    authenticator.login("alice", TEST_PASSWORD)
    authenticator.revoke_all_sessions(alice.id)

    bundle = authenticator.login("alice", TEST_PASSWORD)

    assert authenticator.refresh(bundle.refresh_token).principal.id == alice.id


# ---------- verify_access_token ----------

def test_verify_access_token(authenticator, alice):
    bundle = authenticator.login("alice", TEST_PASSWORD)

    assert authenticator.verify_access_token(bundle.access_token) is True
    assert authenticator.verify_access_token(bundle.refresh_token) is False
    assert authenticator.verify_access_token("") is False
