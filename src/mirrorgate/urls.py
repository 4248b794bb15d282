"""URL parsing helpers that report failure as a value instead of raising.

Header values and redirect targets come from untrusted peers, so callers
branch on the returned `UrlParseError` rather than wrapping every use in
try/except.
"""
import typing
from dataclasses import dataclass

import httpx


@dataclass(frozen=True)
class UrlParseError:
    value: str
    reason: str


ParsedUrl = typing.Union[httpx.URL, UrlParseError]


def _check_absolute(url: httpx.URL, value: str) -> ParsedUrl:
    # mailto:, tel: and data: URLs are absolute without having a host.
    if not url.scheme:
        return UrlParseError(value=value, reason="relative URL without a base")
    if url.scheme in ("http", "https") and not url.host:
        return UrlParseError(value=value, reason="missing host")
    return url


def parse_url(value: str) -> ParsedUrl:
    """Parse an absolute URL."""
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, ValueError, TypeError) as e:
        return UrlParseError(value=value, reason=str(e))
    return _check_absolute(url, value)


def resolve_url(value: str, base: str) -> ParsedUrl:
    """Resolve `value` (absolute, relative or protocol-relative) against `base`."""
    try:
        url = httpx.URL(base).join(value)
    except (httpx.InvalidURL, ValueError, TypeError) as e:
        return UrlParseError(value=value, reason=str(e))
    return _check_absolute(url, value)


def path_and_query(url: httpx.URL) -> str:
    """Path plus `?query` (omitted when empty), still percent-encoded."""
    path = url.raw_path.split(b"?", 1)[0].decode("ascii") or "/"
    query = url.query.decode("ascii")
    if query:
        return f"{path}?{query}"
    return path


def same_host(url: httpx.URL, hostname: str) -> bool:
    return url.host.lower() == hostname.lower()
