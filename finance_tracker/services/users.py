import re
import secrets
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import structlog
from sqlalchemy.orm import Session

from finance_tracker.config import get_settings
from finance_tracker.errors import AccountLocked, InvalidCredentials, UserExists, WeakPassword
from finance_tracker.models import RefreshToken, User
from finance_tracker.services.accounts import AccountService

logger = structlog.get_logger(__name__)

MAX_FAILED_ATTEMPTS = 5
LOCKOUT_MINUTES = 15

COMMON_PASSWORDS = {
    "password",
    "password1",
    "password123",
    "12345678",
    "123456789",
    "qwerty123",
    "senha123",
    "admin123",
    "iloveyou",
    "letmein1",
}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def validate_password(password: str) -> None:
    if len(password) < 8:
        raise WeakPassword("A senha deve ter pelo menos 8 caracteres")
    if not re.search(r"[A-Z]", password):
        raise WeakPassword("A senha deve conter pelo menos uma letra maiúscula")
    if not re.search(r"[a-z]", password):
        raise WeakPassword("A senha deve conter pelo menos uma letra minúscula")
    if not re.search(r"[0-9]", password):
        raise WeakPassword("A senha deve conter pelo menos um número")
    if not re.search(r"[!@#$%^&*]", password):
        raise WeakPassword("A senha deve conter pelo menos um caractere especial (!@#$%^&*)")
    if password.lower() in COMMON_PASSWORDS:
        raise WeakPassword("Esta senha é muito comum")


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def get(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def register(self, email: str, password: str, name: str) -> User:
        email = email.strip().lower()
        if self.get_by_email(email):
            raise UserExists()
        validate_password(password)

        user = User(email=email, name=name.strip(), password_hash=hash_password(password))
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        AccountService(self.db).ensure_individual_account(user)
        logger.info("user_registered", user_id=user.id)
        return user

    def authenticate(self, email: str, password: str, now: datetime = None) -> User:
        now = now or datetime.utcnow()
        user = self.get_by_email(email)
        if not user:
            raise InvalidCredentials()
        if user.is_locked(now):
            raise AccountLocked()

        if not check_password(password, user.password_hash):
            user.failed_login_attempts += 1
            if user.failed_login_attempts >= MAX_FAILED_ATTEMPTS:
                user.locked_until = now + timedelta(minutes=LOCKOUT_MINUTES)
                user.failed_login_attempts = 0
                logger.warning("user_locked", user_id=user.id)
            self.db.commit()
            raise InvalidCredentials()

        user.failed_login_attempts = 0
        user.locked_until = None
        self.db.commit()
        return user

    def create_refresh_token(self, user: User, now: datetime = None) -> RefreshToken:
        now = now or datetime.utcnow()
        token = RefreshToken(
            user_id=user.id,
            token=secrets.token_urlsafe(32),
            expires_at=now + timedelta(days=get_settings().refresh_token_expire_days),
        )
        self.db.add(token)
        self.db.commit()
        return token

    def user_for_refresh_token(self, token: str, now: datetime = None) -> Optional[User]:
        stored = self.db.query(RefreshToken).filter(RefreshToken.token == token).first()
        if not stored or stored.is_expired(now):
            return None
        return stored.user

    def revoke_refresh_token(self, token: str) -> None:
        self.db.query(RefreshToken).filter(RefreshToken.token == token).delete()
        self.db.commit()
