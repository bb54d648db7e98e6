# mobile_crm/errors.py
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    '''
    凭证相关失败的结构化分类

    参数	说明
    INVALID_INPUT: 请求体缺字段或格式不对
    WEAK_PASSWORD: 新密码短于 6 位
    INVALID_CREDENTIALS: 用户名不存在或密码错误（两者返回同一错误，防止账号枚举）
    REGISTRATION_DISABLED: 已存在用户，注册入口关闭
    INVALID_OLD_PIN / INVALID_PASSWORD / INVALID_RECOVERY_KEY: 对应凭证校验失败
    USER_NOT_FOUND: token 或用户名指向的用户不存在
    RECOVERY_NOT_CONFIGURED: 账号未设置恢复密钥
    NO_EMAIL_LINKED: 账号未绑定邮箱，无法发送 OTP
    INVALID_REQUEST / NO_OTP_PENDING / OTP_EXPIRED / INVALID_OTP: OTP 重置流程失败
    UNAUTHENTICATED: 缺少 token，或 token 过期/被篡改
    RATE_LIMITED: 同一 IP 请求过于频繁
    '''
    INVALID_INPUT = "InvalidInput"
    WEAK_PASSWORD = "WeakPassword"

    INVALID_CREDENTIALS = "InvalidCredentials"
    REGISTRATION_DISABLED = "RegistrationDisabled"

    INVALID_OLD_PIN = "InvalidOldPin"
    INVALID_PASSWORD = "InvalidPassword"
    INVALID_RECOVERY_KEY = "InvalidRecoveryKey"

    USER_NOT_FOUND = "UserNotFound"
    RECOVERY_NOT_CONFIGURED = "RecoveryNotConfigured"
    NO_EMAIL_LINKED = "NoEmailLinked"

    INVALID_REQUEST = "InvalidRequest"
    NO_OTP_PENDING = "NoOtpPending"
    OTP_EXPIRED = "OtpExpired"
    INVALID_OTP = "InvalidOtp"

    UNAUTHENTICATED = "Unauthenticated"
    RATE_LIMITED = "RateLimited"


class ServiceError(Exception):
    """Base class for failures that are reported to the client as an error envelope."""

    status_code = 500

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.code is not None:
            body["code"] = self.code.value
        return body


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class AuthorizationError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class RateLimitError(ServiceError):
    status_code = 429

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message, ErrorCode.RATE_LIMITED)
        self.retry_after = retry_after
