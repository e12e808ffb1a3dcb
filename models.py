"""Paste CRUD on top of the shared `databases` connection.

Every function raises PasteError on failure; handlers turn that into the
response envelope.
"""

import logging
from typing import List, Optional, Tuple

import orjson
from sqlalchemy import and_, delete, insert, or_, select, update

import config
from db_sqlalchemy import INTEGRITY_ERRORS, database, pastes
from errors import ErrorKind, PasteError
from schemas import Paste, PasteClone, PasteCreate, PasteMetadata
from utility import (
    check_password, hash_password, normalize_url, parse_duration, random_id, random_string,
    unix_timestamp, validate_content, validate_url,
)

logger = logging.getLogger(__name__)

# upper bound of the BigInteger timestamp columns
MAX_TIMESTAMP = 2 ** 63 - 1


def _row_to_paste(row) -> Paste:
    rr = dict(row._mapping)
    raw_metadata = orjson.loads(rr.get("paste_metadata") or "{}")
    raw_metadata["owner"] = rr.get("owner") or ""
    return Paste(
        id=rr["id"],
        url=rr["url"],
        content=rr["content"],
        password=rr["password"],
        view_password=rr.get("view_password") or "",
        date_published=rr["date_published"],
        date_edited=rr["date_edited"],
        expires_at=rr.get("expires_at"),
        metadata=PasteMetadata(**raw_metadata),
    )


def _dump_metadata(metadata: PasteMetadata) -> str:
    # owner is kept in its own indexed column
    return orjson.dumps(metadata.model_dump(exclude={"owner"})).decode()


def _not_expired(now: int):
    return or_(pastes.c.expires_at == None, pastes.c.expires_at > now)  # noqa: E711


def expiration_to_timestamp(expiration: str, now: int) -> Optional[int]:
    """Resolve a requested expiration into an absolute unix ms, or None for never."""
    expiration = (expiration or "").strip() or config.default_expiration()
    if expiration.lower() == "never":
        return None
    try:
        expires_at = now + int(parse_duration(expiration).total_seconds() * 1000)
    except (ValueError, OverflowError):
        raise PasteError(ErrorKind.VALUE_ERROR, f"invalid expiration {expiration!r}")
    if expires_at > MAX_TIMESTAMP:
        raise PasteError(ErrorKind.VALUE_ERROR, f"expiration {expiration!r} out of range")
    return expires_at


def authorized(paste: Paste, password: str, editing_as: Optional[str]) -> bool:
    """The edit password matches, or the editor is the paste's recorded owner."""
    if editing_as and paste.metadata.owner and editing_as == paste.metadata.owner:
        return True
    return check_password(password, paste.password)


async def delete_expired_pastes() -> None:
    now = unix_timestamp()
    q = delete(pastes).where(pastes.c.expires_at != None).where(pastes.c.expires_at <= now)  # noqa: E711
    await database.execute(q)


async def url_taken(url: str) -> bool:
    q = select(pastes.c.id).where(pastes.c.url == url)
    return await database.fetch_one(q) is not None


async def create_paste(props: PasteCreate, owner: str = "") -> Tuple[str, Paste]:
    """Create a paste.

    Returns the unhashed edit password (generated when none was given) with the
    stored paste.
    """
    await delete_expired_pastes()

    url = props.url.strip() or random_string(10)
    password = props.password or random_string(10)
    url = validate_url(url)
    validate_content(props.content)

    if await url_taken(url):
        raise PasteError(ErrorKind.ALREADY_EXISTS)

    now = unix_timestamp()
    paste = Paste(
        id=random_id(),
        url=url,
        content=props.content,
        password=hash_password(password),
        date_published=now,
        date_edited=now,
        expires_at=expiration_to_timestamp(props.expiration, now),
        metadata=PasteMetadata(owner=owner),
    )

    q = insert(pastes).values(
        id=paste.id,
        url=paste.url,
        content=paste.content,
        password=paste.password,
        view_password="",
        date_published=paste.date_published,
        date_edited=paste.date_edited,
        expires_at=paste.expires_at,
        owner=owner,
        paste_metadata=_dump_metadata(paste.metadata),
    )
    try:
        await database.execute(q)
    except INTEGRITY_ERRORS:
        # lost a race for the url against a concurrent create or edit
        raise PasteError(ErrorKind.ALREADY_EXISTS)
    logger.info("Paste created", extra={"paste_url": paste.url})
    return password, paste


async def clone_paste(props: PasteClone, owner: str = "") -> Tuple[str, Paste]:
    source = await get_paste_by_url(props.source)
    if source.protected and not check_password(props.view_password, source.view_password):
        raise PasteError(ErrorKind.PASSWORD_INCORRECT)

    password, paste = await create_paste(
        PasteCreate(
            url=props.url,
            content=source.content,
            password=props.password,
            expiration=props.expiration,
        ),
        owner=owner,
    )
    logger.info(f"Paste cloned from {source.url}", extra={"paste_url": paste.url})
    return password, paste


async def get_paste_by_url(url: str) -> Paste:
    await delete_expired_pastes()
    url = normalize_url(url)
    q = select(pastes).where(and_(pastes.c.url == url, _not_expired(unix_timestamp())))
    row = await database.fetch_one(q)
    if not row:
        raise PasteError(ErrorKind.NOT_FOUND)
    return _row_to_paste(row)


async def list_pastes(offset: int = 0, limit: int = 50) -> List[Paste]:
    """Public pastes (no view password), newest first."""
    await delete_expired_pastes()
    q = (
        select(pastes)
        .where(and_(pastes.c.view_password == "", _not_expired(unix_timestamp())))
        .order_by(pastes.c.date_published.desc(), pastes.c.id)
        .offset(offset)
        .limit(limit)
    )
    rows = await database.fetch_all(q)
    return [_row_to_paste(r) for r in rows]


async def list_pastes_by_owner(owner: str) -> List[Paste]:
    if not owner:
        return []
    await delete_expired_pastes()
    q = (
        select(pastes)
        .where(pastes.c.owner == owner)
        .order_by(pastes.c.date_published.desc(), pastes.c.id)
    )
    rows = await database.fetch_all(q)
    return [_row_to_paste(r) for r in rows]


async def edit_paste_by_url(
    url: str,
    password: str,
    new_content: str,
    new_url: str = "",
    new_password: str = "",
    editing_as: Optional[str] = None,
) -> Paste:
    existing = await get_paste_by_url(url)
    if not authorized(existing, password, editing_as):
        raise PasteError(ErrorKind.PASSWORD_INCORRECT)

    validate_content(new_content)

    target_url = existing.url
    if new_url.strip():
        target_url = validate_url(new_url)
        if target_url != existing.url and await url_taken(target_url):
            raise PasteError(ErrorKind.ALREADY_EXISTS)

    hashed = hash_password(new_password) if new_password else existing.password

    now = unix_timestamp()
    q = (
        update(pastes)
        .where(pastes.c.id == existing.id)
        .values(content=new_content, url=target_url, password=hashed, date_edited=now)
    )
    try:
        await database.execute(q)
    except INTEGRITY_ERRORS:
        raise PasteError(ErrorKind.ALREADY_EXISTS)
    logger.info("Paste edited", extra={"paste_url": target_url})
    return existing.model_copy(
        update={"content": new_content, "url": target_url, "password": hashed, "date_edited": now}
    )


async def edit_paste_metadata_by_url(
    url: str,
    password: str,
    metadata: PasteMetadata,
    view_password: str = "",
    editing_as: Optional[str] = None,
) -> Paste:
    existing = await get_paste_by_url(url)
    if not authorized(existing, password, editing_as):
        raise PasteError(ErrorKind.PASSWORD_INCORRECT)

    hashed_view = hash_password(view_password) if view_password else ""

    now = unix_timestamp()
    q = (
        update(pastes)
        .where(pastes.c.id == existing.id)
        .values(
            owner=metadata.owner,
            paste_metadata=_dump_metadata(metadata),
            view_password=hashed_view,
            date_edited=now,
        )
    )
    await database.execute(q)
    logger.info("Paste metadata edited", extra={"paste_url": existing.url})
    return existing.model_copy(
        update={"metadata": metadata, "view_password": hashed_view, "date_edited": now}
    )


async def delete_paste_by_url(url: str, password: str, editing_as: Optional[str] = None) -> None:
    existing = await get_paste_by_url(url)
    if not authorized(existing, password, editing_as):
        raise PasteError(ErrorKind.PASSWORD_INCORRECT)

    await database.execute(delete(pastes).where(pastes.c.id == existing.id))
    logger.info("Paste deleted", extra={"paste_url": existing.url})


async def delete_pastes_by_owner(owner: str) -> None:
    if not owner:
        return
    await database.execute(delete(pastes).where(pastes.c.owner == owner))
    logger.info("Owned pastes deleted", extra={"username": owner})
