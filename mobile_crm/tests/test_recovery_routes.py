# mobile_crm/tests/test_recovery_routes.py
from unittest import mock

import pytest

from mobile_crm.models.user import User
from mobile_crm.routes.auth import OTP_SENT_MESSAGE
from mobile_crm.services.email_service import EmailService

USERNAME = "admin"
PASSWORD = "pw123456"


@pytest.fixture
def with_email(registered, db_scope):
    with db_scope() as db:
        db.get(User, registered["user"]["id"]).email = "owner@example.com"
    return registered


def _login(client, password):
    return client.post("/api/auth/login", json={"username": USERNAME, "password": password})


def test_reset_password_with_default_recovery_key(client, registered):
    resp = client.post("/api/auth/reset-password", json={
        "username": USERNAME, "recoveryKey": "secret", "newPassword": "new-pass-1",
    })
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "message": "Password reset successfully"}

    assert _login(client, PASSWORD).status_code == 401
    assert _login(client, "new-pass-1").status_code == 200


@pytest.mark.parametrize("payload, status, code", [
    ({"username": USERNAME, "recoveryKey": "secret"}, 400, "InvalidInput"),
    ({"username": USERNAME, "recoveryKey": "secret", "newPassword": "short"}, 400, "WeakPassword"),
    ({"username": "ghost", "recoveryKey": "secret", "newPassword": "new-pass-1"}, 404, "UserNotFound"),
    ({"username": USERNAME, "recoveryKey": "wrong", "newPassword": "new-pass-1"}, 401, "InvalidRecoveryKey"),
])
def test_reset_password_failures(client, registered, payload, status, code):
    resp = client.post("/api/auth/reset-password", json=payload)
    assert resp.status_code == status
    assert resp.get_json()["code"] == code
    assert _login(client, PASSWORD).status_code == 200


def test_request_otp_is_generic_for_unknown_user(client, with_email, email_service):
    known = client.post("/api/auth/request-otp", json={"username": USERNAME})
    unknown = client.post("/api/auth/request-otp", json={"username": "ghost"})

    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json() == {"success": True, "message": OTP_SENT_MESSAGE}
    assert len(email_service.sent) == 1


def test_request_otp_without_linked_email(client, registered):
    resp = client.post("/api/auth/request-otp", json={"username": USERNAME})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "NoEmailLinked"


def test_request_otp_survives_email_failure(client, with_email, email_service):
    email_service.fail = True
    resp = client.post("/api/auth/request-otp", json={"username": USERNAME})
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True


def test_otp_reset_flow(client, with_email, email_service):
    client.post("/api/auth/request-otp", json={"username": USERNAME})
    otp = email_service.last_otp

    resp = client.post("/api/auth/verify-otp-reset", json={
        "username": USERNAME, "otp": otp, "newPassword": "otp-pass-1",
    })
    assert resp.status_code == 200
    assert _login(client, "otp-pass-1").status_code == 200

    # 同一个 OTP 不能再用
    resp = client.post("/api/auth/verify-otp-reset", json={
        "username": USERNAME, "otp": otp, "newPassword": "otp-pass-2",
    })
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "NoOtpPending"


def test_otp_reset_after_expiry(client, with_email, email_service, clock):
    client.post("/api/auth/request-otp", json={"username": USERNAME})
    otp = email_service.last_otp

    clock.advance(minutes=10, milliseconds=1)
    resp = client.post("/api/auth/verify-otp-reset", json={
        "username": USERNAME, "otp": otp, "newPassword": "otp-pass-1",
    })
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "OtpExpired"
    assert _login(client, PASSWORD).status_code == 200


@pytest.mark.parametrize("payload, code", [
    ({"username": USERNAME, "otp": "123456"}, "InvalidInput"),
    ({"username": USERNAME, "otp": "123456", "newPassword": "short"}, "WeakPassword"),
    ({"username": "ghost", "otp": "123456", "newPassword": "otp-pass-1"}, "InvalidRequest"),
    ({"username": USERNAME, "otp": "123456", "newPassword": "otp-pass-1"}, "NoOtpPending"),
])
def test_otp_reset_failures(client, with_email, payload, code):
    resp = client.post("/api/auth/verify-otp-reset", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["code"] == code


def test_otp_reset_with_wrong_code(client, with_email, email_service):
    client.post("/api/auth/request-otp", json={"username": USERNAME})
    wrong = "000000" if email_service.last_otp != "000000" else "111111"

    resp = client.post("/api/auth/verify-otp-reset", json={
        "username": USERNAME, "otp": wrong, "newPassword": "otp-pass-1",
    })
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "InvalidOtp"


def test_reset_password_with_long_new_password(client, registered):
    long_password = "n" * 80
    resp = client.post("/api/auth/reset-password", json={
        "username": USERNAME, "recoveryKey": "secret", "newPassword": long_password,
    })
    assert resp.status_code == 200
    assert _login(client, long_password).status_code == 200


def test_request_otp_survives_malformed_stored_email(app, client, registered, db_scope):
    with db_scope() as db:
        db.get(User, registered["user"]["id"]).email = "owner@example.com\nBcc: x@y.com"
    app.extensions["email_service"] = EmailService(
        host="smtp.example.com", user="shop@example.com", password="app-pass",
    )

    with mock.patch("mobile_crm.services.email_service.smtplib.SMTP") as smtp_cls:
        resp = client.post("/api/auth/request-otp", json={"username": USERNAME})

    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "message": OTP_SENT_MESSAGE}
    smtp_cls.assert_not_called()
    with db_scope() as db:
        assert db.get(User, registered["user"]["id"]).has_pending_otp()
