from typing import Optional

from fastapi import Request

import config
from errors import ErrorKind, PasteError


async def require_session(request: Request) -> dict:
    """Require a server-side session cookie."""

    if not config.auth_enabled():
        raise PasteError(ErrorKind.UNAUTHORIZED)

    session = request.scope.get("session")
    user_id = session.get("user_id") if session else None

    if user_id:
        return {"type": "session", "user_id": user_id, "username": session.get("username") or ""}

    raise PasteError(ErrorKind.UNAUTHORIZED)


async def optional_auth(request: Request) -> Optional[dict]:
    try:
        return await require_session(request)
    except PasteError:
        return None  # treat as anonymous


async def editing_as(request: Request) -> Optional[str]:
    """Username of the logged-in account, or None when anonymous."""
    auth = await optional_auth(request)
    if auth is None:
        return None
    return auth.get("username") or None
