"""
Tests for UserService: account lifecycle, registration rules and the
failed-login lockout policy.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from myrc_kernel.db.base import utcnow
from myrc_kernel.exceptions import (
    DuplicateNameError,
    InvalidEnumValueError,
    NotFoundError,
    OptimisticLockError,
    RegistrationError,
    UserNotFoundError,
    ValidationError,
)
from myrc_kernel.models.user import AuthProvider, Theme, User
from myrc_kernel.services.user_service import (
    AccountPolicy,
    UserService,
    check_password,
    hash_password,
    validate_username,
)
from tests.conftest import TEST_PASSWORD


# =============================================================================
# Password hashing and username rules
# =============================================================================


class TestPasswordHashing:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert hashed.startswith("$2")

    def test_check_password_accepts_correct_and_rejects_wrong(self):
        hashed = hash_password("s3cret-pass")
        assert check_password("s3cret-pass", hashed)
        assert not check_password("wrong-pass", hashed)

    def test_check_password_without_hash_is_false(self):
        assert not check_password("anything", None)


class TestValidateUsername:
    @pytest.mark.parametrize("username", ["abc", "user_name", "user-01", "A" * 50])
    def test_accepts_legal_usernames(self, username):
        assert validate_username(username) is None

    @pytest.mark.parametrize(
        "username,fragment",
        [
            (None, "required"),
            ("   ", "required"),
            ("ab", "at least 3"),
            ("a" * 51, "must not exceed 50"),
            ("bad name", "letters, numbers"),
            ("dots.not.allowed", "letters, numbers"),
        ],
    )
    def test_rejects_illegal_usernames(self, username, fragment):
        assert fragment in validate_username(username)


# =============================================================================
# Account lifecycle
# =============================================================================


class TestCreateUser:
    def test_local_user_gets_default_role_and_hashed_password(self, services, session):
        info = services.users.create_user("dave", "password-1", "dave@example.com", "Dave")

        assert info.username == "dave"
        assert info.roles == ("USER",)
        assert info.enabled
        assert not info.email_verified
        stored = session.get(User, info.id)
        assert stored.password_hash != "password-1"
        assert check_password("password-1", stored.password_hash)

    def test_default_provider_is_local(self, services, session):
        info = services.users.create_user("ivy", "password-1")
        assert info.auth_provider == AuthProvider.LOCAL.value
        assert session.get(User, info.id).password_hash is not None

    def test_provider_accepts_enum_member(self, services):
        info = services.users.create_user(
            "jack", email="jack@example.com", auth_provider=AuthProvider.OAUTH2
        )
        assert info.auth_provider == "OAUTH2"

    def test_roles_are_sorted(self, services):
        info = services.users.create_user("erin", "password-1", roles={"USER", "ADMIN"})
        assert info.roles == ("ADMIN", "USER")

    def test_oauth_user_needs_no_password_and_is_verified(self, services):
        info = services.users.create_user(
            "frank", email="frank@example.com", auth_provider="oauth2", external_id="sub-1"
        )
        assert info.auth_provider == "OAUTH2"
        assert info.email_verified

    def test_local_user_without_password_rejected(self, services):
        with pytest.raises(ValidationError, match="Password required"):
            services.users.create_user("gina", email="gina@example.com")

    def test_duplicate_username_rejected(self, services, owner):
        with pytest.raises(DuplicateNameError, match="Username already exists: alice"):
            services.users.create_user("alice", "password-1")

    def test_duplicate_email_is_case_insensitive(self, services, owner):
        with pytest.raises(DuplicateNameError, match="Email already registered"):
            services.users.create_user("alice2", "password-1", email="ALICE@example.com")

    def test_unknown_auth_provider_rejected(self, services):
        with pytest.raises(InvalidEnumValueError):
            services.users.create_user("hank", "password-1", auth_provider="kerberos")


class TestRegister:
    def test_register_creates_local_user(self, services):
        info = services.users.register("newbie", "longenough", "newbie@example.com")
        assert info.auth_provider == "LOCAL"
        assert info.full_name == "newbie"
        assert info.roles == ("USER",)

    @pytest.mark.parametrize(
        "username,password,email,fragment",
        [
            ("ab", "longenough", "x@example.com", "at least 3"),
            ("valid", "longenough", None, "Email is required"),
            ("valid", "longenough", "no-at-sign", "Invalid email"),
            ("valid", "", "x@example.com", "Password is required"),
            ("valid", "short", "x@example.com", "at least 8"),
        ],
    )
    def test_register_validation(self, services, username, password, email, fragment):
        with pytest.raises(ValidationError, match=fragment):
            services.users.register(username, password, email)

    def test_register_taken_username(self, services, owner):
        with pytest.raises(DuplicateNameError, match="already taken"):
            services.users.register("alice", "longenough", "other@example.com")

    def test_registration_disabled(self, session):
        service = UserService(session, AccountPolicy(allow_registration=False))
        with pytest.raises(RegistrationError, match="Self-registration"):
            service.register("newbie", "longenough", "newbie@example.com")

    def test_app_accounts_disabled(self, session):
        service = UserService(session, AccountPolicy(app_account_enabled=False))
        with pytest.raises(RegistrationError, match="App Account"):
            service.register("newbie", "longenough", "newbie@example.com")


class TestUpdateUser:
    def test_changing_email_resets_verification(self, services, owner):
        services.users.update_user(owner.id, email_verified=True)
        updated = services.users.update_user(owner.id, email="alice@new.example.com")
        assert updated.email == "alice@new.example.com"
        assert not updated.email_verified

    def test_stale_version_rejected(self, services, owner):
        services.users.update_user(owner.id, full_name="Alice A.")
        with pytest.raises(OptimisticLockError):
            services.users.update_user(owner.id, full_name="Stale", expected_version=owner.version)

    def test_version_increments_on_update(self, services, owner):
        updated = services.users.update_user(owner.id, full_name="Alice A.")
        assert updated.version == owner.version + 1

    def test_unknown_user(self, services):
        with pytest.raises(NotFoundError):
            services.users.update_user(uuid4(), full_name="Nobody")


class TestPasswords:
    def test_change_password(self, services, owner):
        services.users.change_password(owner.id, TEST_PASSWORD, "brand-new-pass")
        assert services.users.authenticate("alice", "brand-new-pass") is not None
        assert services.users.authenticate("alice", TEST_PASSWORD) is None

    def test_change_password_wrong_current(self, services, owner):
        with pytest.raises(ValidationError, match="Current password is incorrect"):
            services.users.change_password(owner.id, "not-it", "brand-new-pass")

    def test_change_password_empty_new(self, services, owner):
        with pytest.raises(ValidationError, match="cannot be empty"):
            services.users.change_password(owner.id, TEST_PASSWORD, "")

    def test_reset_password(self, services, owner):
        services.users.reset_password(owner.id, "admin-chosen")
        assert services.users.authenticate("alice", "admin-chosen") is not None


# =============================================================================
# Authentication and lockout
# =============================================================================


class TestAuthenticate:
    def test_success_sets_last_login(self, services, owner):
        info = services.users.authenticate("alice", TEST_PASSWORD)
        assert info is not None
        assert info.last_login_at is not None

    def test_unknown_user_returns_none(self, services):
        assert services.users.authenticate("ghost", "whatever") is None

    def test_disabled_user_returns_none(self, services, owner):
        services.users.disable(owner.id)
        assert services.users.authenticate("alice", TEST_PASSWORD) is None
        services.users.enable(owner.id)
        assert services.users.authenticate("alice", TEST_PASSWORD) is not None

    def test_bad_password_counts_failures(self, services, session, owner):
        services.users.authenticate("alice", "wrong")
        services.users.authenticate("alice", "wrong")
        assert session.get(User, owner.id).failed_login_attempts == 2

    def test_success_resets_failure_counter(self, services, session, owner):
        services.users.authenticate("alice", "wrong")
        services.users.authenticate("alice", TEST_PASSWORD)
        assert session.get(User, owner.id).failed_login_attempts == 0

    def test_lockout_after_max_attempts(self, session, owner):
        service = UserService(session, AccountPolicy(max_failed_attempts=3, lockout_minutes=30))
        for _ in range(3):
            assert service.authenticate("alice", "wrong") is None

        user = session.get(User, owner.id)
        assert user.account_locked
        assert user.account_locked_until is not None
        # Even the right password is refused while locked.
        assert service.authenticate("alice", TEST_PASSWORD) is None

    def test_expired_lock_is_cleared(self, services, session, owner):
        user = session.get(User, owner.id)
        user.account_locked = True
        user.account_locked_until = utcnow() - timedelta(minutes=1)
        session.flush()

        assert services.users.authenticate("alice", TEST_PASSWORD) is not None
        assert not session.get(User, owner.id).account_locked

    def test_unlock_restores_login(self, services, owner):
        services.users.lock(owner.id)
        assert services.users.authenticate("alice", TEST_PASSWORD) is None
        services.users.unlock(owner.id)
        assert services.users.authenticate("alice", TEST_PASSWORD) is not None

    def test_lockout_is_logged(self, session, owner, captured_logs):
        service = UserService(session, AccountPolicy(max_failed_attempts=1))
        service.authenticate("alice", "wrong")
        messages = [r["message"] for r in captured_logs()]
        assert "account_locked" in messages
        assert "authentication_failed" in messages


# =============================================================================
# Lookups, theme and stats
# =============================================================================


class TestLookups:
    def test_get_by_username_and_email(self, services, owner):
        assert services.users.get_user_by_username("alice").id == owner.id
        assert services.users.get_user_by_email("ALICE@example.com").id == owner.id

    def test_unknown_username_raises(self, services):
        with pytest.raises(UserNotFoundError):
            services.users.get_user_by_username("ghost")

    def test_find_returns_none(self, services):
        assert services.users.find_user_by_username("ghost") is None

    def test_username_availability(self, services, owner):
        assert not services.users.is_username_available("alice")
        assert services.users.is_username_available("zed")
        with pytest.raises(ValidationError):
            services.users.is_username_available("x")

    def test_list_users_sorted(self, services, owner, colleague):
        assert [u.username for u in services.users.list_users()] == ["alice", "bob"]

    def test_list_enabled_excludes_disabled(self, services, owner, colleague):
        services.users.disable(colleague.id)
        assert [u.username for u in services.users.list_enabled()] == ["alice"]

    def test_delete_user(self, services, colleague):
        services.users.delete_user(colleague.id)
        assert services.users.find_user_by_username("bob") is None


class TestThemeAndStats:
    def test_theme_defaults_to_light(self, services, owner):
        assert services.users.get_theme("alice") == "light"

    def test_update_theme_case_insensitive(self, services, owner):
        assert services.users.update_theme("alice", "DARK") == "dark"
        assert services.users.get_theme("alice") == "dark"

    def test_update_theme_rejects_unknown(self, services, owner):
        with pytest.raises(InvalidEnumValueError):
            services.users.update_theme("alice", "solarized")

    def test_update_theme_accepts_enum_member(self, services, owner):
        assert services.users.update_theme("alice", Theme.DARK) == "dark"

    def test_stats(self, services, owner, colleague):
        services.users.lock(colleague.id)
        services.users.create_user("oauth", email="o@example.com", auth_provider="OAUTH2")
        stats = services.users.stats()
        assert stats.total == 3
        assert stats.enabled == 3
        assert stats.locked == 1
        assert stats.by_provider == {"LOCAL": 2, "OAUTH2": 1}
