# mobile_crm/services/recovery_service.py
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from mobile_crm.errors import (
    AuthenticationError,
    ErrorCode,
    ValidationError,
)
from mobile_crm.logger import get_logger
from mobile_crm.services.email_service import EmailService
from mobile_crm.services.hashing import hash_secret, verify_secret
from mobile_crm.services.user_service import UserService

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6
OTP_MIN = 100000
OTP_MAX = 999999
DEFAULT_OTP_TTL = timedelta(minutes=10)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # sqlite 读回来的时间不带时区，按 UTC 处理
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_otp() -> str:
    '''6 位数字验证码，在 100000–999999 上均匀分布'''
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


class RecoveryService:
    """
    Password recovery for a user who cannot log in.

    Two independent paths, neither touches the other's state:
    - static recovery key (hash stored at registration)
    - one-time password delivered by email, valid for a fixed window
    """

    def __init__(
        self,
        db: Session,
        email_service: EmailService,
        *,
        otp_ttl: Optional[timedelta] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.email_service = email_service
        self.otp_ttl = otp_ttl or DEFAULT_OTP_TTL
        self.now = now or _utcnow
        self.user_service = UserService(db)

    @staticmethod
    def _check_new_password(new_password: str) -> None:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                ErrorCode.WEAK_PASSWORD,
            )

    # ======================================================
    # 🔑 Recovery key
    # ======================================================

    def reset_with_recovery_key(
        self,
        *,
        username: str,
        recovery_key: str,
        new_password: str,
    ) -> None:
        """
        Reset the password after checking the static recovery key.
        Mutations are flushed, the caller commits.

        :param username: Login name
        :type username: str
        :param recovery_key: Plaintext recovery key
        :type recovery_key: str
        :param new_password: New plaintext password, at least 6 characters
        :type new_password: str
        """
        self._check_new_password(new_password)

        user = self.user_service.require_user_by_username(username)

        if not user.recovery_key_hash:
            raise ValidationError(
                "Recovery key not set for this account",
                ErrorCode.RECOVERY_NOT_CONFIGURED,
            )

        if not verify_secret(recovery_key, user.recovery_key_hash):
            raise AuthenticationError("Invalid recovery key", ErrorCode.INVALID_RECOVERY_KEY)

        self.user_service.reset_password(user=user, new_password=new_password)
        self.db.flush()
        logger.info(f"[recovery] password reset with recovery key user_id={user.id}")

    # ======================================================
    # ✉️ Email OTP
    # ======================================================

    def request_otp(self, *, username: str) -> None:
        """
        Issue a fresh OTP for ``username`` and try to email it.

        The OTP is committed before delivery. Unknown usernames return
        silently. A failed delivery does not fail the request: the code is
        written to the server log instead so an operator can relay it.
        """
        user = self.user_service.get_user_by_username(username)
        if not user:
            logger.info("[otp] request for unknown username ignored")
            return

        if not user.email:
            raise ValidationError(
                "No email linked to this account",
                ErrorCode.NO_EMAIL_LINKED,
            )

        otp = generate_otp()
        # 新请求直接覆盖旧的 OTP（并发请求 last write wins）
        user.otp_hash = hash_secret(otp)
        user.otp_expires_at = self.now() + self.otp_ttl
        self.db.commit()
        logger.info(f"[otp] issued user_id={user.id} expires_at={user.otp_expires_at.isoformat()}")

        ttl_minutes = int(self.otp_ttl.total_seconds() // 60)
        if not self.email_service.send_otp(user.email, otp, ttl_minutes):
            logger.warning(
                f"[otp] email delivery failed, manual recovery code for "
                f"username={user.username}: {otp}"
            )

    def reset_with_otp(
        self,
        *,
        username: str,
        otp: str,
        new_password: str,
    ) -> None:
        """
        Reset the password with a pending OTP.

        The new password hash and the cleared OTP pair are written together,
        so a used OTP cannot be replayed. Mutations are flushed, the caller
        commits.

        :param username: Login name
        :type username: str
        :param otp: 6-digit code from the email
        :type otp: str
        :param new_password: New plaintext password, at least 6 characters
        :type new_password: str
        """
        self._check_new_password(new_password)

        user = self.user_service.get_user_by_username(username)
        if not user:
            raise ValidationError("Invalid request", ErrorCode.INVALID_REQUEST)

        if not user.has_pending_otp():
            raise ValidationError("No OTP request found", ErrorCode.NO_OTP_PENDING)

        # 过期是硬边界，没有宽限期
        if self.now() > _as_utc(user.otp_expires_at):
            raise ValidationError("OTP has expired", ErrorCode.OTP_EXPIRED)

        if not verify_secret(otp, user.otp_hash):
            raise ValidationError("Invalid OTP", ErrorCode.INVALID_OTP)

        self.user_service.reset_password(user=user, new_password=new_password)
        user.clear_otp()
        self.db.flush()
        logger.info(f"[otp] password reset with OTP user_id={user.id}")
