# mobile_crm/schemas.py
from datetime import datetime
from typing import Annotated, Any, ClassVar, Optional, Type, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from mobile_crm.errors import ErrorCode, ValidationError
from mobile_crm.models.user import User

NonEmptyStr = Annotated[str, Field(min_length=1)]

T = TypeVar("T", bound="RequestBody")


class RequestBody(BaseModel):
    '''
    请求体基类：字段缺失、为空或类型不对时统一抛 ValidationError(400)
    子类通过 missing_message 指定返回给客户端的错误文案
    '''
    missing_message: ClassVar[str] = "Invalid request body"

    @classmethod
    def parse(cls: Type[T], payload: Any) -> T:
        if not isinstance(payload, dict):
            raise ValidationError(cls.missing_message, ErrorCode.INVALID_INPUT)
        try:
            return cls.model_validate(payload)
        except PydanticValidationError:
            raise ValidationError(cls.missing_message, ErrorCode.INVALID_INPUT)


class CredentialsBody(RequestBody):
    missing_message: ClassVar[str] = "Username and password required"

    username: NonEmptyStr
    password: NonEmptyStr


class PinVerifyBody(RequestBody):
    missing_message: ClassVar[str] = "PIN required"

    pin: NonEmptyStr


class PinChangeBody(RequestBody):
    missing_message: ClassVar[str] = "Old and New PIN required"

    oldPin: NonEmptyStr
    newPin: NonEmptyStr


class PinResetBody(RequestBody):
    missing_message: ClassVar[str] = "Password required"

    password: NonEmptyStr


class RecoveryKeyResetBody(RequestBody):
    missing_message: ClassVar[str] = "All fields are required"

    username: NonEmptyStr
    recoveryKey: NonEmptyStr
    newPassword: NonEmptyStr


class OtpRequestBody(RequestBody):
    missing_message: ClassVar[str] = "Username required"

    username: NonEmptyStr


class OtpResetBody(RequestBody):
    missing_message: ClassVar[str] = "All fields are required"

    username: NonEmptyStr
    otp: NonEmptyStr
    newPassword: NonEmptyStr


class UserDTO(BaseModel):
    id: int
    username: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_orm_model(cls, user: User, *, with_created_at: bool = False) -> "UserDTO":
        return cls(
            id=user.id,
            username=user.username,
            created_at=user.created_at if with_created_at else None,
        )

    def to_response(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
