# mobile_crm/services/user_service.py
from typing import Optional
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from mobile_crm.errors import AuthenticationError, ErrorCode, NotFoundError
from mobile_crm.models.user import User
from mobile_crm.services.hashing import hash_secret, verify_secret

class UserService:
    """
    Credential store access for the single shop operator.
    Provides:
    - bootstrap creation
    - password authentication
    - password reset
    - user lookup

    No token / PIN / recovery logic here.
    """

    def __init__(self, db: Session):
        self.db = db

    # ======================================================
    # 👤 User CRUD
    # ======================================================

    def create_user(
        self,
        *,
        username: str,
        password: str,
        pin: Optional[str] = None,
        recovery_key: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """
        Create a user with every secret hashed.

        :param username: Login name (unique)
        :type username: str
        :param password: Plaintext password
        :type password: str
        :param pin: Plaintext privacy PIN
        :type pin: Optional[str]
        :param recovery_key: Plaintext recovery key
        :type recovery_key: Optional[str]
        :param email: Address used for OTP delivery
        :type email: Optional[str]
        """

        # 1️⃣ username 唯一性校验
        if self.get_user_by_username(username):
            raise ValueError(f"Username '{username}' already exists")

        # 2️⃣ 创建用户
        user = User(
            username=username,
            password_hash=hash_secret(password),
            pin=hash_secret(pin) if pin is not None else None,
            recovery_key_hash=hash_secret(recovery_key) if recovery_key is not None else None,
            email=email,
        )

        self.db.add(user)
        self.db.flush()

        return user

    def count_users(self) -> int:
        return self.db.scalar(select(func.count()).select_from(User)) or 0

    def authenticate(
        self,
        *,
        username: str,
        password: str,
    ) -> User:
        """
        Authenticate user by username + password.
        Unknown user and wrong password raise the same error.

        :param username: Login name
        :type username: str
        :param password: Plaintext password
        :type password: str
        """

        user = self.get_user_by_username(username)

        if not user or not verify_secret(password, user.password_hash):
            raise AuthenticationError("Invalid credentials", ErrorCode.INVALID_CREDENTIALS)

        return user

    def check_password(self, user: User, password: str) -> bool:
        return verify_secret(password, user.password_hash)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return (
            self.db.query(User)
            .filter(User.username == username)
            .first()
        )

    def require_user(self, user_id: int) -> User:
        user = self.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", ErrorCode.USER_NOT_FOUND)
        return user

    def require_user_by_username(self, username: str) -> User:
        user = self.get_user_by_username(username)
        if not user:
            raise NotFoundError("User not found", ErrorCode.USER_NOT_FOUND)
        return user

    # ======================================================
    # 🔁 Account maintenance
    # ======================================================

    def reset_password(
        self,
        *,
        user: User,
        new_password: str,
    ) -> None:
        """
        Replace the password hash. Callers commit.

        :param user: User whose password is replaced
        :type user: User
        :param new_password: New plaintext password
        :type new_password: str
        """

        user.password_hash = hash_secret(new_password)

    def set_recovery_key(self, *, user: User, recovery_key: str) -> None:
        user.recovery_key_hash = hash_secret(recovery_key)

    def backfill_recovery_keys(self, recovery_key: str) -> int:
        """Set ``recovery_key`` on every user that has none. Returns the number of rows touched."""
        users = (
            self.db.query(User)
            .filter(User.recovery_key_hash.is_(None))
            .all()
        )
        for user in users:
            self.set_recovery_key(user=user, recovery_key=recovery_key)
        return len(users)

    def set_email(self, *, user: User, email: Optional[str]) -> None:
        user.email = email or None
