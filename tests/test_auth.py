from datetime import datetime, timedelta

import pytest

from finance_tracker.auth import create_access_token, decode_access_token
from finance_tracker.errors import AccountLocked, InvalidCredentials, UserExists, WeakPassword
from finance_tracker.models import Account, AccountType
from finance_tracker.services.users import (
    LOCKOUT_MINUTES,
    MAX_FAILED_ATTEMPTS,
    UserService,
    check_password,
    hash_password,
    validate_password,
)

from tests.conftest import PASSWORD


class TestPasswordRules:
    @pytest.mark.parametrize(
        "password",
        ["Ab1!", "abcdefg1!", "ABCDEFG1!", "Abcdefgh!", "Abcdefgh1"],
    )
    def test_weak_passwords(self, password):
        with pytest.raises(WeakPassword):
            validate_password(password)

    def test_strong_password(self):
        validate_password("Forte@123")

    def test_common_password(self):
        with pytest.raises(WeakPassword) as exc:
            validate_password("Senha123")
        # fails on the special character before the common list
        assert "especial" in exc.value.message

    def test_hash_roundtrip(self):
        hashed = hash_password("Forte@123")
        assert check_password("Forte@123", hashed)
        assert not check_password("Errada@123", hashed)
        assert not check_password("Forte@123", "not-a-hash")


class TestRegister:
    def test_creates_individual_account(self, db):
        user = UserService(db).register("  Ana@Example.com ", "Forte@123", " Ana ")
        assert user.email == "ana@example.com"
        assert user.name == "Ana"
        account = db.query(Account).filter(Account.user_id == user.id).one()
        assert account.type == AccountType.INDIVIDUAL.value

    def test_duplicate_email(self, db, user):
        with pytest.raises(UserExists):
            UserService(db).register(user.email.upper(), "Forte@123", "Outra")


class TestAuthenticate:
    def test_success_resets_counter(self, db, user):
        service = UserService(db)
        with pytest.raises(InvalidCredentials):
            service.authenticate(user.email, "Errada@123")
        assert user.failed_login_attempts == 1
        assert service.authenticate(user.email, PASSWORD) == user
        assert user.failed_login_attempts == 0

    def test_unknown_email(self, db):
        with pytest.raises(InvalidCredentials):
            UserService(db).authenticate("nobody@example.com", PASSWORD)

    def test_lockout_after_repeated_failures(self, db, user):
        service = UserService(db)
        now = datetime(2024, 6, 15, 12, 0)
        for _ in range(MAX_FAILED_ATTEMPTS):
            with pytest.raises(InvalidCredentials):
                service.authenticate(user.email, "Errada@123", now)

        assert user.locked_until == now + timedelta(minutes=LOCKOUT_MINUTES)
        with pytest.raises(AccountLocked):
            service.authenticate(user.email, PASSWORD, now + timedelta(minutes=1))
        # lock expires
        later = now + timedelta(minutes=LOCKOUT_MINUTES, seconds=1)
        assert service.authenticate(user.email, PASSWORD, later) == user


class TestTokens:
    def test_access_token_roundtrip(self):
        token = create_access_token({"sub": "42"})
        assert decode_access_token(token) == 42

    def test_garbage_token(self):
        assert decode_access_token("garbage") is None
        assert decode_access_token("") is None

    def test_refresh_token(self, db, user):
        service = UserService(db)
        refresh = service.create_refresh_token(user)
        assert service.user_for_refresh_token(refresh.token) == user
        assert service.user_for_refresh_token(refresh.token, datetime.utcnow() + timedelta(days=8)) is None

        service.revoke_refresh_token(refresh.token)
        assert service.user_for_refresh_token(refresh.token) is None
