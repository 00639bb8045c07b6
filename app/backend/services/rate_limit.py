"""
In-process fixed-window rate limiting.

Counts requests per client address; a client exceeding the limit within
the window receives 429 until the window resets. Counters live in process
memory, so each worker enforces its own quota.
"""

import threading
import time

from fastapi import HTTPException, Request, status

from ..config import get_settings

_counters: dict[str, tuple[int, float]] = {}
_lock = threading.Lock()
_next_sweep = 0.0


def client_identifier(request: Request) -> str:
    """Identify the caller by peer address; the forwarded header is only a fallback."""
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return "unknown"


def _sweep_expired(now: float) -> None:
    expired = [key for key, (_, reset_at) in _counters.items() if now >= reset_at]
    for key in expired:
        del _counters[key]


def consume_quota(key: str, limit: int, window_seconds: int, now: float | None = None) -> bool:
    """Count one request for `key`; return False once the limit is exceeded."""
    global _next_sweep
    now = time.time() if now is None else now
    with _lock:
        # Drop finished windows at most once per window
        if now >= _next_sweep:
            _sweep_expired(now)
            _next_sweep = now + window_seconds

        count, reset_at = _counters.get(key, (0, now + window_seconds))
        if now >= reset_at:
            count = 0
            reset_at = now + window_seconds
        count += 1
        _counters[key] = (count, reset_at)
        return count <= limit


def reset_counters() -> None:
    global _next_sweep
    with _lock:
        _counters.clear()
        _next_sweep = 0.0


async def rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing the per-client API quota."""
    if getattr(request.app.state, "disable_rate_limits", False):
        return

    settings = get_settings()
    key = f"api:{client_identifier(request)}"
    allowed = consume_quota(
        key,
        settings.rate_limit_requests,
        settings.rate_limit_window_seconds,
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests, please try again later.",
            headers={"Retry-After": str(settings.rate_limit_window_seconds)},
        )
