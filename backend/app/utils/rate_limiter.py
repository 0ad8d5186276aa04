"""
Simple Memory-based Rate Limiter.
Counts are per process; a multi-worker deployment needs a shared store.
"""
import time
from fastapi import Request, HTTPException
from typing import Dict, Tuple

# In-memory storage: {"scope:ip": (window_start, count)}
_rate_limit_store: Dict[str, Tuple[float, int]] = {}


def rate_limit(requests: int, window: int, scope: str = "default"):
    """
    Dependency for rate limiting.
    Example: Depends(rate_limit(requests=5, window=60, scope="stk-push"))
    """
    def limiter(request: Request):
        ip = request.client.host if request.client else "unknown"
        key = f"{scope}:{ip}"
        now = time.time()

        if key not in _rate_limit_store:
            _rate_limit_store[key] = (now, 1)
            return True

        window_start, count = _rate_limit_store[key]

        # Reset window if expired
        if now - window_start > window:
            _rate_limit_store[key] = (now, 1)
            return True

        if count >= requests:
            raise HTTPException(
                status_code=429,
                detail=f"Too many payment requests. Try again in {int(window - (now - window_start))} seconds."
            )

        _rate_limit_store[key] = (window_start, count + 1)
        return True

    return limiter


def reset_rate_limits():
    """Forget all counters."""
    _rate_limit_store.clear()
