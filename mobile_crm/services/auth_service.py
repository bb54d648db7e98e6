# mobile_crm/services/auth_service.py
from typing import Tuple

from sqlalchemy.orm import Session

from mobile_crm.errors import AuthorizationError, ErrorCode
from mobile_crm.logger import get_logger
from mobile_crm.models.user import User
from mobile_crm.services.pin import DEFAULT_PIN
from mobile_crm.services.token_service import TokenService
from mobile_crm.services.user_service import UserService

logger = get_logger(__name__)

DEFAULT_RECOVERY_KEY = "secret"


class AuthService:
    """
    Login and bootstrap registration.

    Registration is a one-time gate: it only succeeds while the credential
    store is empty, and the created user is logged in immediately.
    """

    def __init__(self, db: Session, token_service: TokenService):
        self.db = db
        self.token_service = token_service
        self.user_service = UserService(db)

    def _issue_token(self, user: User) -> str:
        return self.token_service.issue(user_id=user.id, username=user.username)

    def login(self, *, username: str, password: str) -> Tuple[User, str]:
        '''
        校验用户名密码并签发 token
        用户不存在 / 密码错误 -> AuthenticationError(InvalidCredentials)
        '''
        user = self.user_service.authenticate(username=username, password=password)
        logger.info(f"[auth] login ok user_id={user.id}")
        return user, self._issue_token(user)

    def register(self, *, username: str, password: str) -> Tuple[User, str]:
        '''
        创建唯一的管理员账号，默认 PIN 1234，默认恢复密钥 secret
        已有任意用户时一律拒绝
        '''
        if self.user_service.count_users() > 0:
            raise AuthorizationError(
                "Registration disabled. Users already exist.",
                ErrorCode.REGISTRATION_DISABLED,
            )

        user = self.user_service.create_user(
            username=username,
            password=password,
            pin=DEFAULT_PIN,
            recovery_key=DEFAULT_RECOVERY_KEY,
        )
        logger.info(f"[auth] bootstrap user registered user_id={user.id}")
        return user, self._issue_token(user)
