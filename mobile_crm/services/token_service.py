# mobile_crm/services/token_service.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from mobile_crm.errors import AuthenticationError, ErrorCode

ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(days=7)


@dataclass
class Identity:
    user_id: int
    username: str


class TokenService:
    """
    Issues and validates signed session tokens.

    The server keeps no session table: a token is valid while its signature
    checks out and `exp` is in the future. There is no revocation.
    """

    def __init__(self, secret_key: str, expires_in: Optional[timedelta] = None):
        if not secret_key:
            raise RuntimeError("JWT secret is not configured")
        self.secret_key = secret_key
        self.expires_in = expires_in or DEFAULT_TOKEN_TTL

    def issue(self, *, user_id: int, username: str) -> str:
        expire = datetime.now(timezone.utc) + self.expires_in
        claims = {
            "userId": user_id,
            "username": username,
            "exp": expire,
        }
        return jwt.encode(claims, self.secret_key, algorithm=ALGORITHM)

    def decode(self, token: str) -> Identity:
        '''
        校验签名与有效期，返回 token 中的身份
        过期、篡改、格式错误统一抛同一个错误，不向调用方暴露具体原因
        '''
        invalid = AuthenticationError("Invalid or expired token", ErrorCode.UNAUTHENTICATED)
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError:
            raise invalid

        user_id = payload.get("userId")
        username = payload.get("username")
        if user_id is None or username is None or isinstance(user_id, bool):
            raise invalid
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            raise invalid
        return Identity(user_id=user_id, username=username)
