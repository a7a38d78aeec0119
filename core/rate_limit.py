"""
Rate limiting.

The limiter is an ordinary object built by ``create_rate_limiter`` at app
startup and stored on ``app.state``. Nothing here is module-global, so each
app instance (and each test) owns its own counters and can ``reset`` them.
"""

import time

from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from core.config import Settings
from core.exceptions import TooManyRequestsError
from core.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Named fixed-window limits keyed by client address"""

    def __init__(self, storage_uri: str, limits: dict[str, str], enabled: bool = True) -> None:
        self.enabled = enabled
        self._storage = storage_from_string(storage_uri)
        self._strategy = FixedWindowRateLimiter(self._storage)
        self._limits: dict[str, RateLimitItem] = {name: parse(value) for name, value in limits.items()}

    def _key(self, request: Request) -> str:
        return get_remote_address(request)

    def _retry_after(self, item: RateLimitItem, key: str, scope: str) -> int:
        reset_at, _ = self._strategy.get_window_stats(item, scope, key)
        return max(int(reset_at - time.time()), 1)

    def check(self, scope: str, request: Request) -> None:
        """Raise if the client has already exhausted ``scope`` (does not consume)"""
        if not self.enabled:
            return
        item = self._limits[scope]
        key = self._key(request)
        if not self._strategy.test(item, scope, key):
            logger.warning("Rate limit '%s' exceeded for %s", scope, key)
            raise TooManyRequestsError(retry_after=self._retry_after(item, key, scope))

    def hit(self, scope: str, request: Request) -> None:
        """Consume one unit of ``scope``; raise if that exceeds the limit"""
        if not self.enabled:
            return
        item = self._limits[scope]
        key = self._key(request)
        if not self._strategy.hit(item, scope, key):
            logger.warning("Rate limit '%s' exceeded for %s", scope, key)
            raise TooManyRequestsError(retry_after=self._retry_after(item, key, scope))

    def record(self, scope: str, request: Request) -> None:
        """Consume one unit of ``scope`` without raising"""
        if self.enabled:
            self._strategy.hit(self._limits[scope], scope, self._key(request))

    def reset(self) -> None:
        self._storage.reset()


def create_rate_limiter(settings: Settings) -> RateLimiter:
    return RateLimiter(
        storage_uri=settings.rate_limit_storage_uri,
        limits={"auth": settings.auth_rate_limit, "api": settings.api_rate_limit},
        enabled=settings.rate_limit_enabled,
    )
