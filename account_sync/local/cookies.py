"""
Cookie string helpers and an in-memory cookie jar.

The browser exposes cookies only as one header-like string, so both
reading (parse) and writing (format one assignment) go through text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime, parsedate_to_datetime

from .base import CookieJar

logger = logging.getLogger(__name__)

EPOCH_EXPIRES = "Thu, 01 Jan 1970 00:00:00 GMT"


def parse_cookie_string(cookie_string: str) -> dict[str, str]:
    """Parse ``name=value; name2=value2`` into a mapping.

    Names are stripped, values keep embedded ``=``. A repeated name keeps
    its last value.
    """
    cookies: dict[str, str] = {}
    if not cookie_string:
        return cookies

    for part in cookie_string.split(";"):
        name, _, value = part.partition("=")
        name = name.strip()
        if not name:
            continue
        cookies[name] = value.strip()

    return cookies


def format_cookie(
    name: str,
    value: str,
    expires: datetime | None = None,
    path: str = "/",
    same_site: str | None = "Lax",
) -> str:
    """Build one cookie assignment string."""
    parts = [f"{name}={value}"]
    if expires is not None:
        parts.append(f"expires={format_datetime(expires.astimezone(UTC), usegmt=True)}")
    if path:
        parts.append(f"path={path}")
    if same_site:
        parts.append(f"SameSite={same_site}")
    return "; ".join(parts)


def expire_cookie(name: str, path: str = "/") -> str:
    """Build an assignment that deletes the named cookie."""
    return f"{name}=; expires={EPOCH_EXPIRES}; path={path};"


def one_year_from_now(days: int = 365) -> datetime:
    """Expiry used for cookies restored from the account."""
    return datetime.now(UTC) + timedelta(days=days)


@dataclass
class _Cookie:
    value: str
    expires: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires is not None and self.expires <= now


class MemoryCookieJar(CookieJar):
    """Cookie jar held in memory with ``document.cookie`` setter semantics."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._cookies: dict[str, _Cookie] = {
            name: _Cookie(value) for name, value in (initial or {}).items()
        }

    async def get_cookie_string(self) -> str:
        now = datetime.now(UTC)
        live = [
            f"{name}={cookie.value}"
            for name, cookie in self._cookies.items()
            if not cookie.is_expired(now)
        ]
        return "; ".join(live)

    async def set_cookie(self, header: str) -> None:
        first, *attributes = header.split(";")
        name, sep, value = first.partition("=")
        name = name.strip()
        if not name or not sep:
            raise ValueError(f"Malformed cookie assignment: {header!r}")

        expires = _parse_expiry(attributes)
        now = datetime.now(UTC)

        if expires is not None and expires <= now:
            self._cookies.pop(name, None)
            return

        self._cookies[name] = _Cookie(value.strip(), expires)


def _parse_expiry(attributes: list[str]) -> datetime | None:
    """Resolve expires/max-age attributes. Max-age wins when both are set."""
    expires: datetime | None = None

    for attribute in attributes:
        key, _, raw = attribute.partition("=")
        key = key.strip().lower()
        raw = raw.strip()

        if key == "max-age":
            try:
                return datetime.now(UTC) + timedelta(seconds=int(raw))
            except ValueError:
                logger.warning(f"Ignoring invalid cookie max-age: {raw!r}")
        elif key == "expires" and raw:
            try:
                expires = parsedate_to_datetime(raw)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid cookie expires: {raw!r}")
                continue
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=UTC)

    return expires
