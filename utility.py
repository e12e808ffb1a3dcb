import re
import secrets
import string
import time
from datetime import timedelta

import bcrypt

import config
from errors import ErrorKind, PasteError

URL_MIN_LENGTH = 3
URL_MAX_LENGTH = 250
URL_PATTERN = re.compile(r"^[A-Za-z0-9_.!\-]+$")
# path segments the API itself routes under /api
RESERVED_URLS = frozenset({"new", "clone", "pastes", "health", "auth"})
PUNYCODE_PREFIX = "xn--"

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def random_id() -> str:
    return secrets.token_hex(16)


def random_string(length: int = 10) -> str:
    letters = string.ascii_letters + string.digits
    return "".join(secrets.choice(letters) for _ in range(length))


def unix_timestamp() -> int:
    """Milliseconds since the unix epoch."""
    return int(time.time() * 1000)


def normalize_url(url: str) -> str:
    """Trim a custom url and punycode it when it has non-ASCII characters.

    Emoji and other non-ASCII slugs are stored in their punycode form behind
    the IDNA `xn--` prefix, so every backend only ever sees the ASCII alphabet
    checked by validate_url and no encoded slug equals a plain ASCII one.
    """
    url = (url or "").strip()
    if url.isascii():
        return url
    return PUNYCODE_PREFIX + url.encode("punycode").decode("ascii")


def validate_url(url: str) -> str:
    raw = (url or "").strip()
    # the prefix is reserved for encoded non-ASCII slugs
    if raw.isascii() and raw.lower().startswith(PUNYCODE_PREFIX):
        raise PasteError(ErrorKind.VALUE_ERROR, f"url {raw!r} uses the punycode prefix")
    url = normalize_url(raw)
    if not (URL_MIN_LENGTH <= len(url) <= URL_MAX_LENGTH):
        raise PasteError(ErrorKind.VALUE_ERROR, f"url length {len(url)} out of range")
    if not URL_PATTERN.match(url):
        raise PasteError(ErrorKind.VALUE_ERROR, "url has characters outside the allowed set")
    if url.lower() in RESERVED_URLS:
        raise PasteError(ErrorKind.VALUE_ERROR, f"url {url!r} is reserved")
    return url


def validate_content(content: str) -> str:
    limit = config.max_char_content()
    if content is None or len(content) < 1 or len(content) > limit:
        raise PasteError(ErrorKind.VALUE_ERROR, f"content must be 1..{limit} characters")
    return content


def hash_password(plain: str) -> str:
    raw = plain.encode()
    if len(raw) > MAX_PASSWORD_BYTES:
        raise PasteError(ErrorKind.VALUE_ERROR, "password longer than 72 bytes")
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=config.bcrypt_rounds())).decode()


def check_password(plain: str, hashed: str) -> bool:
    if not hashed or plain is None:
        return False
    raw = plain.encode()
    if len(raw) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(raw, hashed.encode())
    except ValueError:
        # malformed stored hash
        return False


def parse_duration(duration: str) -> timedelta:
    """
    Parses Go-style duration strings like '39h', '2h30m', '45m', '1.5h', '2s', etc.
    Mimics Go's time.ParseDuration.
    """
    pattern = re.compile(r'(\d+\.?\d*)(ns|us|µs|ms|s|m|h)')
    duration = duration.strip()
    total_seconds = 0.0
    consumed = 0

    for match in pattern.finditer(duration):
        if match.start() != consumed:
            raise ValueError(f"Invalid duration: {duration}")
        consumed = match.end()
        value, unit = match.groups()
        value = float(value)
        if unit == "ns":
            total_seconds += value / 1_000_000_000
        elif unit in ("us", "µs"):
            total_seconds += value / 1_000_000
        elif unit == "ms":
            total_seconds += value / 1000
        elif unit == "s":
            total_seconds += value
        elif unit == "m":
            total_seconds += value * 60
        elif unit == "h":
            total_seconds += value * 3600
    if consumed != len(duration) or total_seconds == 0:
        raise ValueError(f"Invalid duration: {duration}")
    try:
        return timedelta(seconds=total_seconds)
    except OverflowError:
        raise ValueError(f"Duration out of range: {duration}")
