# mobile_crm/tests/conftest.py
import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

# 必须在导入 mobile_crm 之前设置：内存库、只输出到控制台、低成本 bcrypt
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_DIR"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import pytest

from mobile_crm.app_factory import create_app
from mobile_crm.db.init_db import drop_db, init_db
from mobile_crm.db.session import get_session

USERNAME = "admin"
PASSWORD = "pw123456"


class FakeEmailService:
    """Records OTP emails instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_otp(self, to, otp, ttl_minutes=10):
        if self.fail:
            return False
        self.sent.append({"to": to, "otp": otp, "ttl_minutes": ttl_minutes})
        return True

    @property
    def last_otp(self):
        return self.sent[-1]["otp"]


class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.current

    def set(self, value):
        self.current = value

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


@contextmanager
def session_scope():
    db = get_session()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(email_service, clock):
    app = create_app("testing", {"RATE_LIMIT_ENABLED": False})
    app.extensions["email_service"] = email_service
    app.extensions["clock"] = clock
    init_db()
    yield app
    drop_db()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registered(client):
    resp = client.post("/api/auth/register", json={"username": USERNAME, "password": PASSWORD})
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture
def auth_headers(registered):
    return {"Authorization": f"Bearer {registered['token']}"}


@pytest.fixture
def db_scope(app):
    return session_scope


@pytest.fixture
def db(app):
    session = get_session()
    yield session
    session.rollback()
    session.close()
