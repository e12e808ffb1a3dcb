import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

import config
import db_sqlalchemy
from errors import register_error_handlers
from handlers import (
    create_paste_handler, clone_paste_handler, get_paste_handler, get_raw_paste_handler,
    list_pastes_handler, delete_paste_handler, edit_paste_handler, edit_paste_metadata_handler,
    register_handler, login_handler, logout_handler, me_handler, list_user_pastes_handler,
    delete_account_handler, health_handler,
)
from observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    await db_sqlalchemy.init_db()
    await db_sqlalchemy.database.connect()
    yield
    # shutdown
    await db_sqlalchemy.database.disconnect()


def create_app() -> FastAPI:
    setup_logging(config.log_level(), config.log_format())

    app = FastAPI(title="pastemd", lifespan=lifespan)
    app.add_middleware(SessionMiddleware, secret_key=config.get_secret_key(), same_site="lax")
    origins = config.cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # browsers refuse credentialed responses for a wildcard origin
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # fixed paths first so they are not taken for a paste url
    app.post("/api/new")(create_paste_handler)
    app.post("/api/clone")(clone_paste_handler)
    app.get("/api/pastes")(list_pastes_handler)
    app.get("/api/health")(health_handler)
    if config.auth_enabled():
        app.post("/api/auth/register")(register_handler)
        app.post("/api/auth/login")(login_handler)
        app.post("/api/auth/logout")(logout_handler)
        app.get("/api/auth/me")(me_handler)
        app.get("/api/auth/pastes")(list_user_pastes_handler)
        app.delete("/api/auth/account")(delete_account_handler)

    app.get("/api/{url}")(get_paste_handler)
    app.get("/api/{url}/raw")(get_raw_paste_handler)
    app.post("/api/{url}/delete")(delete_paste_handler)
    app.post("/api/{url}/edit")(edit_paste_handler)
    app.post("/api/{url}/metadata")(edit_paste_metadata_handler)
    return app


app = create_app()


def run():
    port = config.get_port()
    logger.info(f"Starting server at http://localhost:{port}")
    uvicorn.run(app, host=config.get_host(), port=port, log_config=None)


if __name__ == "__main__":
    run()
