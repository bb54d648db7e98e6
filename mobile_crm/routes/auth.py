# mobile_crm/routes/auth.py
from flask import Blueprint, current_app, jsonify, request
from mobile_crm.db.session import get_session
from mobile_crm.logger import get_logger
from mobile_crm.rate_limiter import rate_limited
from mobile_crm.routes.guards import current_identity, get_token_service, require_login
from mobile_crm.schemas import (
    CredentialsBody,
    OtpRequestBody,
    OtpResetBody,
    PinChangeBody,
    PinResetBody,
    PinVerifyBody,
    RecoveryKeyResetBody,
    UserDTO,
)
from mobile_crm.services.auth_service import AuthService
from mobile_crm.services.pin_service import PinService
from mobile_crm.services.recovery_service import RecoveryService

logger = get_logger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

OTP_SENT_MESSAGE = "If the account exists, an OTP has been sent to the linked email"


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _recovery_service(db) -> RecoveryService:
    return RecoveryService(
        db,
        current_app.extensions["email_service"],
        otp_ttl=current_app.config["OTP_TTL"],
        now=current_app.extensions.get("clock"),
    )


@auth_bp.route('/login', methods=['POST'])
@rate_limited('login')
def login():
    """用户名密码登录，返回 token"""
    body = CredentialsBody.parse(_json_body())
    logger.info(f"[auth] login attempt username={body.username}")

    db = get_session()
    try:
        auth_service = AuthService(db, get_token_service())
        user, token = auth_service.login(username=body.username, password=body.password)
        return jsonify({
            "success": True,
            "token": token,
            "user": UserDTO.from_orm_model(user).to_response(),
        })
    finally:
        db.close()


@auth_bp.route('/verify', methods=['GET'])
@require_login
def verify():
    """校验 token 并返回其中的身份"""
    identity = current_identity()
    return jsonify({
        "success": True,
        "user": {"id": identity.user_id, "username": identity.username},
    })


@auth_bp.route('/register', methods=['POST'])
@rate_limited('login')
def register():
    """首个管理员注册（仅在没有任何用户时开放）"""
    body = CredentialsBody.parse(_json_body())

    db = get_session()
    try:
        auth_service = AuthService(db, get_token_service())
        user, token = auth_service.register(username=body.username, password=body.password)
        db.commit()
        return jsonify({
            "success": True,
            "token": token,
            "user": UserDTO.from_orm_model(user, with_created_at=True).to_response(),
        }), 201
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@auth_bp.route('/reset-password', methods=['POST'])
@rate_limited('login')
def reset_password():
    """用恢复密钥重置登录密码"""
    body = RecoveryKeyResetBody.parse(_json_body())

    db = get_session()
    try:
        _recovery_service(db).reset_with_recovery_key(
            username=body.username,
            recovery_key=body.recoveryKey,
            new_password=body.newPassword,
        )
        db.commit()
        return jsonify({"success": True, "message": "Password reset successfully"})
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@auth_bp.route('/request-otp', methods=['POST'])
@rate_limited('otp')
def request_otp():
    """发送邮件 OTP；用户名不存在时同样返回成功文案"""
    body = OtpRequestBody.parse(_json_body())

    db = get_session()
    try:
        _recovery_service(db).request_otp(username=body.username)
        return jsonify({"success": True, "message": OTP_SENT_MESSAGE})
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@auth_bp.route('/verify-otp-reset', methods=['POST'])
@rate_limited('login')
def verify_otp_reset():
    """校验 OTP 并重置登录密码"""
    body = OtpResetBody.parse(_json_body())

    db = get_session()
    try:
        _recovery_service(db).reset_with_otp(
            username=body.username,
            otp=body.otp,
            new_password=body.newPassword,
        )
        db.commit()
        return jsonify({"success": True, "message": "Password reset successfully"})
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# --- PIN 管理 ---

@auth_bp.route('/pin/verify', methods=['POST'])
@require_login
def verify_pin():
    body = PinVerifyBody.parse(_json_body())

    db = get_session()
    try:
        valid = PinService(db).verify(user_id=current_identity().user_id, pin=body.pin)
        db.commit()
        return jsonify({"success": True, "valid": valid})
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@auth_bp.route('/pin/change', methods=['POST'])
@require_login
def change_pin():
    body = PinChangeBody.parse(_json_body())

    db = get_session()
    try:
        PinService(db).change(
            user_id=current_identity().user_id,
            old_pin=body.oldPin,
            new_pin=body.newPin,
        )
        db.commit()
        return jsonify({"success": True, "message": "PIN changed successfully"})
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@auth_bp.route('/pin/reset', methods=['POST'])
@require_login
def reset_pin():
    body = PinResetBody.parse(_json_body())

    db = get_session()
    try:
        pin = PinService(db).reset(user_id=current_identity().user_id, password=body.password)
        db.commit()
        return jsonify({
            "success": True,
            "message": f"PIN reset to default ({pin})",
            "pin": pin,
        })
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@auth_bp.route('/pin', methods=['GET'])
@require_login
def get_pin():
    db = get_session()
    try:
        pin = PinService(db).get_stored(user_id=current_identity().user_id)
        return jsonify({"success": True, "pin": pin})
    finally:
        db.close()
