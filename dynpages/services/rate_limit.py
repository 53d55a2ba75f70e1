import math, time, threading, logging
from dataclasses import dataclass
import redis
from flask import current_app
from ..errors import RateLimited

logger = logging.getLogger(__name__)

_r = None
_lock = threading.Lock()


class _MemStore:
    """Process-local counters with per-key expiry. Expired keys are swept on every access."""

    def __init__(self, clock=time.time):
        self._data = {}
        self._exp = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _cleanup(self):
        now = self._clock()
        expired = [k for k, ts in self._exp.items() if ts <= now]
        for k in expired:
            self._data.pop(k, None)
            self._exp.pop(k, None)

    def incr(self, key):
        with self._lock:
            self._cleanup()
            v = int(self._data.get(key, '0')) + 1
            self._data[key] = str(v)
            return v

    def expire(self, key, ttl):
        with self._lock:
            self._cleanup()
            self._exp[key] = self._clock() + ttl

    def ttl(self, key):
        with self._lock:
            self._cleanup()
            if key not in self._data:
                return -2
            if key not in self._exp:
                return -1
            return max(0, math.ceil(self._exp[key] - self._clock()))

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)
            self._exp.pop(key, None)

    def __len__(self):
        with self._lock:
            self._cleanup()
            return len(self._data)


def r():
    global _r
    if _r is not None:
        return _r
    with _lock:
        if _r is not None:
            return _r
        url = current_app.config.get('REDIS_URL')
        if current_app.config.get('USE_REDIS') and url:
            try:
                client = redis.from_url(url, decode_responses=True)
                client.ping()
                _set(client)
                return _r
            except redis.RedisError as e:
                logger.warning('redis unavailable (%s), using in-memory rate limits', e)
        _set(_MemStore())
        return _r


def _set(store):
    global _r
    _r = store


@dataclass
class RateLimitResult:
    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> dict:
        return {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(int(self.reset_at)),
        }


def check_rate(key: str, limit: int, window: int = 60) -> RateLimitResult:
    """Fixed window: the first hit opens a window of `window` seconds, which resets wholesale on expiry."""
    store = r()
    k = f"rl:{key}"
    v = store.incr(k)
    if v == 1:
        store.expire(k, window)
    ttl = store.ttl(k)
    if ttl < 0:
        # counter without expiry, e.g. a crash between incr and expire
        store.expire(k, window)
        ttl = window
    reset_at = time.time() + ttl
    if v > limit:
        raise RateLimited(retry_after=max(1, min(window, ttl)), limit=limit, reset_at=reset_at)
    return RateLimitResult(limit=limit, remaining=limit - v, reset_at=reset_at)


def reset_rate(key: str):
    r().delete(f"rl:{key}")
