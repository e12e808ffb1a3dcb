import asyncio
import logging
import os
import time
from collections import deque
from typing import Dict, Optional

from fastapi import Request

from errors import ErrorKind, PasteError

logger = logging.getLogger(__name__)

# Default rate limit
DEFAULT_RATE = 10
# Window in seconds (1 minute)
WINDOW_SECONDS = 60

_rate_limit_per_min: Optional[int] = None

# Map identifier -> deque of timestamps (float seconds)
_timestamps: Dict[str, deque] = {}
_last_sweep = 0.0
_lock = asyncio.Lock()


def get_rate_limit() -> int:
    global _rate_limit_per_min
    if _rate_limit_per_min is not None:
        return _rate_limit_per_min
    v = os.getenv("CREATE_PER_MIN")
    try:
        n = int(v) if v else DEFAULT_RATE
    except ValueError:
        n = DEFAULT_RATE
    _rate_limit_per_min = n if n >= 1 else DEFAULT_RATE
    return _rate_limit_per_min


def reset() -> None:
    """Forget recorded requests and re-read CREATE_PER_MIN on next use."""
    global _rate_limit_per_min, _lock, _last_sweep
    _rate_limit_per_min = None
    _timestamps.clear()
    _last_sweep = 0.0
    _lock = asyncio.Lock()


def get_ip_address(request: Request) -> str:
    # Check X-Real-IP, then X-Forwarded-For, then client.host
    ip = request.headers.get("X-Real-IP")
    if not ip:
        xff = request.headers.get("X-Forwarded-For")
        if xff:
            # X-Forwarded-For may contain a list
            ip = xff.split(",")[0].strip()
    if not ip:
        # request.client may be None in some tests
        client = request.client
        ip = client.host if client else ""
    # strip port from IPv4 host:port, leave IPv6 alone
    if ip.count(":") == 1:
        ip = ip.split(":")[0]
    return ip


def _sweep_idle(now: float) -> None:
    """Drop identifiers whose newest request has left the window."""
    global _last_sweep
    if now - _last_sweep < WINDOW_SECONDS:
        return
    _last_sweep = now
    for key in [k for k, dq in _timestamps.items() if not dq or (now - dq[-1]) > WINDOW_SECONDS]:
        del _timestamps[key]


async def check_and_record_rate_limit(request: Request = None, identifier: str = None) -> bool:
    """Returns True if request is allowed, False if rate-limited.

    Accepts an optional composite `identifier`. If not provided, will fall back to IP extracted from `request`.
    Honors DISABLE_RATE_LIMIT=1 to bypass checks.
    """
    if os.getenv("DISABLE_RATE_LIMIT") == "1":
        return True

    if identifier is None:
        identifier = get_ip_address(request) if request is not None else ""

    now = time.time()
    limit = get_rate_limit()

    async with _lock:
        _sweep_idle(now)
        dq = _timestamps.setdefault(identifier, deque())
        # remove old timestamps
        while dq and (now - dq[0]) > WINDOW_SECONDS:
            dq.popleft()
        if len(dq) >= limit:
            return False
        dq.append(now)
        return True


async def enforce_rate_limit(request: Request, identifier: str) -> None:
    if not await check_and_record_rate_limit(request, identifier):
        logger.warning("Rate limit exceeded", extra={"client": identifier})
        raise PasteError(ErrorKind.RATE_LIMITED)
