"""
Simple Memory-based Rate Limiter.
Per-process fixed window keyed by client IP; use Redis for multi-worker deployments.
"""
import threading
import time
from typing import Dict, Tuple

from fastapi import Request

from coursehub.errors import RateLimitError

# In-memory storage: {(scope, ip): (window_start, count)}
_rate_limit_store: Dict[Tuple[str, str], Tuple[float, int]] = {}
_lock = threading.Lock()


def rate_limit(requests: int, window: int, scope: str = "default"):
    """
    FastAPI dependency factory for rate limiting.
    Example: Depends(rate_limit(requests=5, window=60, scope="payment"))
    """
    def limiter(request: Request):
        ip = request.client.host if request.client else "unknown"
        key = (scope, ip)
        now = time.time()

        with _lock:
            window_start, count = _rate_limit_store.get(key, (now, 0))

            # Reset window if expired
            if now - window_start > window:
                window_start, count = now, 0

            if count >= requests:
                retry_in = int(window - (now - window_start))
                raise RateLimitError(f"Rate limit exceeded. Try again in {retry_in} seconds.")

            _rate_limit_store[key] = (window_start, count + 1)
        return True

    return limiter


def reset_rate_limits():
    """Forget all counters (used by tests and on config reload)."""
    with _lock:
        _rate_limit_store.clear()
