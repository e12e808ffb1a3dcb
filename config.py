import os
import secrets
from urllib.parse import quote_plus
from dotenv import load_dotenv

# load env
load_dotenv()

DEFAULT_MAX_CHAR_CONTENT = 200_000
DEFAULT_PORT = 8080

_TRUTHY = ("1", "true", "yes", "on")


def env_flag(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v.strip().lower() in _TRUTHY


def env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def get_port() -> int:
    return env_int("PORT", DEFAULT_PORT)


def get_host() -> str:
    return os.getenv("HOST") or "127.0.0.1"


def get_secret_key() -> str:
    # Session secret; a random one means sessions do not survive restarts
    return os.getenv("SECRET_KEY") or secrets.token_urlsafe(32)


def auth_enabled() -> bool:
    return env_flag("AUTH_ENABLED", True)


def paste_ownership() -> bool:
    return auth_enabled() and env_flag("PASTE_OWNERSHIP", True)


def max_char_content() -> int:
    n = env_int("MAX_CHAR_CONTENT", DEFAULT_MAX_CHAR_CONTENT)
    return n if n > 0 else DEFAULT_MAX_CHAR_CONTENT


def default_expiration() -> str:
    return os.getenv("PASTE_DEFAULT_EXPIRATION") or "never"


def bcrypt_rounds() -> int:
    # bcrypt accepts 4..31
    return min(max(env_int("BCRYPT_ROUNDS", 12), 4), 31)


def cors_origins() -> list:
    raw = os.getenv("CORS_ORIGINS") or "*"
    return [o.strip() for o in raw.split(",") if o.strip()]


def log_level() -> str:
    return os.getenv("LOG_LEVEL") or "INFO"


def log_format() -> str:
    return os.getenv("LOG_FORMAT") or "json"


def database_url() -> str:
    """Build the database URL.

    DB_URL wins when set. Otherwise DB_TYPE picks the engine and DB_HOST,
    DB_USER, DB_PASS and DB_NAME fill in the connection; sqlite (the default)
    uses DATABASE_PATH or ./pastes/pastes.db.
    """
    url = os.getenv("DB_URL")
    if url:
        return url

    db_type = (os.getenv("DB_TYPE") or "sqlite").lower()
    if db_type == "sqlite":
        db_path = os.getenv("DATABASE_PATH")
        if not db_path:
            db_path = os.path.abspath(os.path.join(os.getcwd(), "pastes", "pastes.db"))
        # ensure folder exists before any DB IO
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        return f"sqlite+aiosqlite:///{db_path}"

    drivers = {
        "postgres": "postgresql+asyncpg",
        "postgresql": "postgresql+asyncpg",
        "mysql": "mysql+aiomysql",
    }
    if db_type not in drivers:
        raise ValueError(f"Unsupported DB_TYPE: {db_type}")

    host = os.getenv("DB_HOST") or "localhost"
    user = quote_plus(os.getenv("DB_USER") or "")
    password = quote_plus(os.getenv("DB_PASS") or "")
    name = os.getenv("DB_NAME") or "pastemd"
    auth = ""
    if user:
        auth = f"{user}:{password}@" if password else f"{user}@"
    return f"{drivers[db_type]}://{auth}{host}/{name}"
