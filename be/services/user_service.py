import logging
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash
from models.user import User

logger = logging.getLogger(__name__)

# JWT 黑名单（内存存储，重启失效）
jwt_blacklist = set()


def normalize_email(email):
    return (email or '').strip().lower()


class UserService:
    def __init__(self, backend, default_limit_mb=1024):
        self.backend = backend
        self.default_limit_mb = default_limit_mb

    def register(self, email, password, confirm_password, full_name):
        if password != confirm_password:
            return None, "Passwords do not match"

        email = normalize_email(email)
        if self.backend.find_user_by_email(email):
            return None, "Email already registered"

        user = User(
            email=email,
            password_hash=generate_password_hash(password),
            full_name=(full_name or '').strip(),
            storage_used_mb=Decimal('0'),
            storage_limit_mb=Decimal(self.default_limit_mb),
        )
        try:
            with self.backend.transaction():
                self.backend.add(user)
        except IntegrityError:
            # 并发注册同一邮箱：由唯一约束兜底
            return None, "Email already registered"
        logger.info('Registered user %s (%s)', user.id, email)
        return user, None

    def login(self, email, password):
        """Return the user on success, None for unknown email or wrong password."""
        user = self.backend.find_user_by_email(normalize_email(email))
        if not user or not check_password_hash(user.password_hash, password or ''):
            return None
        return user

    def get_user(self, user_id):
        return self.backend.get_user(user_id)

    @staticmethod
    def logout(jti):
        """将JWT ID加入黑名单"""
        jwt_blacklist.add(jti)
        return True

    @staticmethod
    def is_token_revoked(jti):
        return jti in jwt_blacklist
