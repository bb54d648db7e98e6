# mobile_crm/tests/test_rate_limiter.py
from unittest import mock

from mobile_crm.app_factory import create_app
from mobile_crm.rate_limiter import RateLimiter


def test_limiter_blocks_after_max_requests():
    limiter = RateLimiter(2, 60, "slow down")

    assert limiter.hit("10.0.0.1") == (True, None)
    assert limiter.hit("10.0.0.1") == (True, None)
    allowed, retry_after = limiter.hit("10.0.0.1")
    assert allowed is False
    assert 0 < retry_after <= 61

    # 其他 IP 不受影响
    assert limiter.hit("10.0.0.2") == (True, None)


def test_limiter_window_slides():
    limiter = RateLimiter(1, 60, "slow down")
    with mock.patch("mobile_crm.rate_limiter.time.monotonic", return_value=1000.0):
        assert limiter.hit("ip")[0] is True
        assert limiter.hit("ip")[0] is False
    with mock.patch("mobile_crm.rate_limiter.time.monotonic", return_value=1061.0):
        assert limiter.hit("ip")[0] is True


def test_idle_clients_are_swept_after_window():
    with mock.patch("mobile_crm.rate_limiter.time.monotonic", return_value=1000.0):
        limiter = RateLimiter(5, 60, "slow down")
        limiter.hit("10.0.0.1")
    with mock.patch("mobile_crm.rate_limiter.time.monotonic", return_value=1061.0):
        limiter.hit("10.0.0.2")

    assert "10.0.0.1" not in limiter._hits
    assert "10.0.0.2" in limiter._hits


def test_reset_clears_one_client_or_all():
    limiter = RateLimiter(1, 60, "slow down")
    limiter.hit("a")
    limiter.hit("b")

    limiter.reset("a")
    assert limiter.hit("a")[0] is True
    assert limiter.hit("b")[0] is False

    limiter.reset()
    assert limiter.hit("b")[0] is True


def test_limiter_from_spec():
    limiter = RateLimiter.from_spec("3/3600", "msg")
    assert limiter.max_requests == 3
    assert limiter.window_seconds == 3600


def test_otp_route_is_rate_limited(app, client):
    app.config["RATE_LIMIT_ENABLED"] = True
    app.extensions["rate_limiters"]["otp"] = RateLimiter(2, 3600, "Too many OTP requests")

    for _ in range(2):
        assert client.post("/api/auth/request-otp", json={"username": "ghost"}).status_code == 200

    resp = client.post("/api/auth/request-otp", json={"username": "ghost"})
    assert resp.status_code == 429
    assert resp.get_json() == {"success": False, "error": "Too many OTP requests", "code": "RateLimited"}
    assert "Retry-After" in resp.headers


def test_login_limiter_configured_from_env(monkeypatch):
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "5/30")
    app = create_app("testing")

    limiter = app.extensions["rate_limiters"]["login"]
    assert (limiter.max_requests, limiter.window_seconds) == (5, 30)
