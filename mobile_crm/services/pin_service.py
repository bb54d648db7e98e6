# mobile_crm/services/pin_service.py
from sqlalchemy.orm import Session

from mobile_crm.errors import AuthenticationError, ErrorCode, ValidationError
from mobile_crm.logger import get_logger
from mobile_crm.services.pin import (
    DEFAULT_PIN,
    PIN_MAX_LENGTH,
    PIN_MIN_LENGTH,
    hash_pin,
    is_valid_pin_length,
    parse_pin,
    verify_pin,
)
from mobile_crm.services.user_service import UserService

logger = get_logger(__name__)


class PinService:
    """
    Privacy-mode PIN operations for an already authenticated user.
    Mutations are flushed, the caller commits.
    """

    def __init__(self, db: Session):
        self.db = db
        self.user_service = UserService(db)

    def verify(self, *, user_id: int, pin: str) -> bool:
        '''
        校验 PIN；明文旧 PIN 校验通过时立即写回哈希（一次性迁移）

        :param user_id: token 中的用户 id
        :type user_id: int
        :param pin: 用户输入的 PIN
        :type pin: str
        :return: 是否匹配
        :rtype: bool
        '''
        user = self.user_service.require_user(user_id)

        valid, upgraded = verify_pin(parse_pin(user.pin), pin)
        if upgraded is not None:
            user.pin = upgraded.value
            self.db.flush()
            logger.info(f"[pin] legacy plaintext PIN migrated to hash user_id={user.id}")
        return valid

    def change(self, *, user_id: int, old_pin: str, new_pin: str) -> None:
        '''
        修改 PIN。旧 PIN 同样走哈希/明文双路径，但此处不做迁移写回
        '''
        if not is_valid_pin_length(new_pin):
            raise ValidationError(
                f"PIN must be {PIN_MIN_LENGTH}-{PIN_MAX_LENGTH} chars",
                ErrorCode.INVALID_INPUT,
            )

        user = self.user_service.require_user(user_id)

        valid, _ = verify_pin(parse_pin(user.pin), old_pin)
        if not valid:
            raise AuthenticationError("Invalid old PIN", ErrorCode.INVALID_OLD_PIN)

        user.pin = hash_pin(new_pin).value
        self.db.flush()
        logger.info(f"[pin] changed user_id={user.id}")

    def reset(self, *, user_id: int, password: str) -> str:
        '''
        用登录密码把 PIN 重置为默认值，并把明文默认值返回给客户端
        '''
        user = self.user_service.require_user(user_id)

        if not self.user_service.check_password(user, password):
            raise AuthenticationError("Invalid password", ErrorCode.INVALID_PASSWORD)

        user.pin = hash_pin(DEFAULT_PIN).value
        self.db.flush()
        logger.info(f"[pin] reset to default user_id={user.id}")
        return DEFAULT_PIN

    def get_stored(self, *, user_id: int) -> str:
        user = self.user_service.require_user(user_id)
        return user.pin or DEFAULT_PIN
