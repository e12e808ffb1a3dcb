import logging
import sqlite3
from sqlalchemy import (MetaData, Table, Column, Integer, BigInteger, String, Text, Index)
from sqlalchemy.ext.asyncio import create_async_engine
from databases import Database

import config

logger = logging.getLogger(__name__)

DB_URL = config.database_url()

metadata = MetaData()

pastes = Table(
    "pastes",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("url", String(250), unique=True, index=True, nullable=False),
    Column("content", Text, nullable=False),
    Column("password", String(255), nullable=False),
    Column("view_password", String(255), nullable=False, server_default=""),
    Column("date_published", BigInteger, nullable=False, index=True),
    Column("date_edited", BigInteger, nullable=False),
    Column("expires_at", BigInteger, index=True, nullable=True),
    # username of the owning account, empty for anonymous pastes
    Column("owner", String(32), nullable=False, server_default=""),
    # JSON-encoded PasteMetadata
    Column("paste_metadata", Text, nullable=False),
    Index("owner_published", "owner", "date_published"),
)

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("username", String(32), unique=True, index=True, nullable=False),
    Column("password", String(255), nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

# Unique-constraint violations as raised by each supported driver
INTEGRITY_ERRORS = (sqlite3.IntegrityError,)
try:
    import asyncpg
    INTEGRITY_ERRORS += (asyncpg.exceptions.IntegrityConstraintViolationError,)
except ImportError:
    pass
try:
    import pymysql
    INTEGRITY_ERRORS += (pymysql.err.IntegrityError,)
except ImportError:
    pass

# Use 'databases' for async query execution
database = Database(DB_URL)


async def init_db():
    """Create tables using SQLAlchemy async engine. Call this at application startup."""
    async_engine = create_async_engine(DB_URL, echo=False)
    async with async_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    await async_engine.dispose()
    logger.info("Database tables ready")


async def ping() -> bool:
    try:
        await database.fetch_val("SELECT 1")
    except Exception:
        logger.error("Database ping failed", exc_info=True)
        return False
    return True
