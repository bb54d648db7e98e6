# mobile_crm/rate_limiter.py
import time
from functools import wraps
from threading import Lock
from typing import Dict, List, Optional, Tuple

from flask import current_app, request

from mobile_crm.errors import RateLimitError
from mobile_crm.logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Per-client sliding-window request limiter (in-process)."""

    def __init__(self, max_requests: int, window_seconds: int, message: str):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._hits: Dict[str, List[float]] = {}
        self._lock = Lock()
        self._last_sweep = time.monotonic()

    @classmethod
    def from_spec(cls, spec: str, message: str) -> "RateLimiter":
        '''格式："<次数>/<秒数>"，例如 "20/60"'''
        count, _, seconds = spec.partition("/")
        return cls(int(count), int(seconds or 60), message)

    def hit(self, key: str) -> Tuple[bool, Optional[int]]:
        """
        Record one request for ``key``.

        Returns (allowed, retry_after_seconds).
        """
        with self._lock:
            now = time.monotonic()
            cutoff = now - self.window_seconds
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            hits = [t for t in self._hits.get(key, []) if t > cutoff]

            if len(hits) >= self.max_requests:
                self._hits[key] = hits
                retry_after = int(hits[0] + self.window_seconds - now) + 1
                return False, retry_after

            hits.append(now)
            self._hits[key] = hits
            return True, None

    def _sweep(self, cutoff: float) -> None:
        # 清掉窗口内已无请求的客户端
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


def init_rate_limiters(app) -> None:
    app.extensions["rate_limiters"] = {
        "login": RateLimiter.from_spec(
            app.config["LOGIN_RATE_LIMIT"],
            "Too many login attempts, please try again later",
        ),
        "otp": RateLimiter.from_spec(
            app.config["OTP_RATE_LIMIT"],
            "Too many OTP requests from this IP, please try again after an hour",
        ),
    }


def rate_limited(name: str):
    """Reject the request with 429 once the client IP exceeds limiter ``name``."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if current_app.config.get("RATE_LIMIT_ENABLED", True):
                limiter: RateLimiter = current_app.extensions["rate_limiters"][name]
                client = request.remote_addr or "unknown"
                allowed, retry_after = limiter.hit(client)
                if not allowed:
                    logger.warning(f"[rate-limit] {name} limit hit client={client}")
                    raise RateLimitError(limiter.message, retry_after=retry_after)
            return view(*args, **kwargs)
        return wrapper
    return decorator
