import logging
from typing import Optional

from fastapi import Depends, Query, Request
from fastapi.responses import ORJSONResponse, PlainTextResponse
from sqlalchemy import delete, insert, select

import config
import models
from auth import editing_as, require_session
from db_sqlalchemy import INTEGRITY_ERRORS, database, ping, users
from errors import ErrorKind, PasteError
from rate_limit import enforce_rate_limit, get_ip_address
from schemas import (
    CreatedPaste, DefaultReturn, Paste, PasteClone, PasteCreate, PasteDelete,
    PasteEdit, PasteEditMetadata, PasteList, PublicPaste, UserCreate, UserLogin, UserOut,
)
from utility import check_password, hash_password, unix_timestamp

logger = logging.getLogger(__name__)


def ok(message: str, payload=None) -> ORJSONResponse:
    return ORJSONResponse(content=DefaultReturn(success=True, message=message, payload=payload).model_dump())


def owner_for(username: Optional[str]) -> str:
    if username and config.paste_ownership():
        return username
    return ""


def client_identifier(request: Request, username: Optional[str]) -> str:
    # composite identifier: sessionIdentifier|ip
    session_identifier = f"user-{username}" if username else "anon"
    return f"{session_identifier}|{get_ip_address(request)}"


def require_view_access(paste: Paste, request: Request, view_password: str = "") -> None:
    if not paste.protected:
        return
    supplied = view_password or request.headers.get("X-View-Password", "")
    if not check_password(supplied, paste.view_password):
        raise PasteError(ErrorKind.PASSWORD_INCORRECT)


def created(password: str, paste: Paste) -> dict:
    return CreatedPaste(password=password, paste=PublicPaste.from_paste(paste)).model_dump()


# pastes

async def create_paste_handler(props: PasteCreate, request: Request, username=Depends(editing_as)):
    """Create a new paste (`/api/new`)"""
    await enforce_rate_limit(request, client_identifier(request, username))
    password, paste = await models.create_paste(props, owner=owner_for(username))
    return ok("Paste created", created(password, paste))


async def clone_paste_handler(props: PasteClone, request: Request, username=Depends(editing_as)):
    """Clone an existing paste (`/api/clone`)"""
    await enforce_rate_limit(request, client_identifier(request, username))
    password, paste = await models.clone_paste(props, owner=owner_for(username))
    return ok("Paste cloned", created(password, paste))


async def get_paste_handler(url: str, request: Request, view_password: str = ""):
    """Get an existing paste by url (`/api/{url}`)"""
    paste = await models.get_paste_by_url(url)
    require_view_access(paste, request, view_password)
    return ok("Paste exists", PublicPaste.from_paste(paste).model_dump())


async def get_raw_paste_handler(url: str, request: Request, view_password: str = ""):
    paste = await models.get_paste_by_url(url)
    require_view_access(paste, request, view_password)
    return PlainTextResponse(paste.content)


async def list_pastes_handler(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    found = await models.list_pastes(offset=offset, limit=limit)
    listing = PasteList(pastes=[PublicPaste.from_paste(p) for p in found], offset=offset, limit=limit)
    return ok("Pastes found", listing.model_dump())


async def delete_paste_handler(url: str, props: PasteDelete, username=Depends(editing_as)):
    """Delete an existing paste (`/api/{url}/delete`)"""
    await models.delete_paste_by_url(url, props.password, editing_as=username)
    return ok("Paste deleted")


async def edit_paste_handler(url: str, props: PasteEdit, username=Depends(editing_as)):
    """Edit an existing paste (`/api/{url}/edit`)"""
    await models.edit_paste_by_url(
        url,
        props.password,
        props.new_content,
        new_url=props.new_url,
        new_password=props.new_password,
        editing_as=username,
    )
    return ok("Paste updated")


async def edit_paste_metadata_handler(url: str, props: PasteEditMetadata, username=Depends(editing_as)):
    """Edit an existing paste's metadata (`/api/{url}/metadata`)

    The owner field is never taken from the request: it becomes the logged-in
    user when ownership is enabled and is cleared for anonymous edits.
    """
    metadata = props.metadata.model_copy(update={"owner": owner_for(username)})
    await models.edit_paste_metadata_by_url(
        url,
        props.password,
        metadata,
        view_password=props.view_password,
        editing_as=username,
    )
    return ok("Paste updated")


# accounts

async def register_handler(user: UserCreate, request: Request):
    await enforce_rate_limit(request, f"register|{get_ip_address(request)}")

    q = select(users.c.id).where(users.c.username == user.username)
    if await database.fetch_one(q):
        raise PasteError(ErrorKind.USER_EXISTS)

    q = insert(users).values(
        username=user.username,
        password=hash_password(user.password),
        created_at=unix_timestamp(),
    )
    try:
        await database.execute(q)
    except INTEGRITY_ERRORS:
        raise PasteError(ErrorKind.USER_EXISTS)
    logger.info("User registered", extra={"username": user.username})
    return ok("User registered")


async def login_handler(login: UserLogin, request: Request):
    await enforce_rate_limit(request, f"login|{get_ip_address(request)}")
    q = select(users).where(users.c.username == login.username)
    row = await database.fetch_one(q)
    if not row or not check_password(login.password, row._mapping["password"]):
        raise PasteError(ErrorKind.INVALID_CREDENTIALS)
    # set session cookie
    request.session["user_id"] = row._mapping["id"]
    request.session["username"] = row._mapping["username"]
    return ok("Logged in", login.username)


async def logout_handler(request: Request):
    request.session.clear()
    return ok("Logged out")


async def me_handler(auth=Depends(require_session)):
    q = select(users).where(users.c.id == int(auth["user_id"]))
    row = await database.fetch_one(q)
    if not row:
        raise PasteError(ErrorKind.UNAUTHORIZED)
    rr = dict(row._mapping)
    user = UserOut(id=rr["id"], username=rr["username"], created_at=rr["created_at"])
    return ok("User exists", user.model_dump())


async def list_user_pastes_handler(auth=Depends(require_session)):
    found = await models.list_pastes_by_owner(auth["username"])
    return ok("Pastes found", [PublicPaste.from_paste(p).model_dump() for p in found])


async def delete_account_handler(request: Request, auth=Depends(require_session)):
    await enforce_rate_limit(request, f"delete-account|{get_ip_address(request)}")
    async with database.transaction():
        await models.delete_pastes_by_owner(auth["username"])
        await database.execute(delete(users).where(users.c.id == int(auth["user_id"])))
    request.session.clear()
    logger.info("Account deleted", extra={"username": auth["username"]})
    return ok("Account deleted")


# general

async def health_handler():
    if not await ping():
        return ORJSONResponse(
            status_code=500,
            content={"success": False, "message": "Database unavailable",
                     "payload": {"status": "error", "db_status": "unreachable"}},
        )
    return ok("Healthy", {"status": "ok", "db_status": "ok"})
