# mobile_crm/routes/guards.py
from functools import wraps

from flask import current_app, g, request

from mobile_crm.errors import AuthenticationError, ErrorCode
from mobile_crm.services.token_service import Identity, TokenService


def get_token_service() -> TokenService:
    return current_app.extensions["token_service"]


def require_login(view):
    """
    检查 Bearer token，通过后把身份挂到 g.identity
    缺 header -> 401；过期 / 篡改 -> 401（同一文案，不区分原因）
    """
    @wraps(view)
    def wrapper(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            raise AuthenticationError("No token provided", ErrorCode.UNAUTHENTICATED)

        token = auth_header[len("Bearer "):].strip()
        if not token:
            raise AuthenticationError("No token provided", ErrorCode.UNAUTHENTICATED)

        g.identity = get_token_service().decode(token)
        return view(*args, **kwargs)
    return wrapper


def current_identity() -> Identity:
    return g.identity
