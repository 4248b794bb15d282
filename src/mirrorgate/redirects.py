import logging
import typing

import httpx
from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from mirrorgate.config import ProxyConfig
from mirrorgate.constants import CORS_HEADERS, REDIRECT_STATUS_CODES
from mirrorgate.datastructures import ProxyResponse
from mirrorgate.urls import UrlParseError, path_and_query, resolve_url, same_host
from mirrorgate.utils import proxy_origin

logger = logging.getLogger("mirrorgate")


def redirect_response(status_code: int, location: str) -> ProxyResponse:
    headers = MutableHeaders({"Location": location, **CORS_HEADERS})
    return ProxyResponse(status_code=status_code, headers=headers, content=b"")


def rewrite_location(location: str, config: ProxyConfig, origin: str) -> typing.Optional[str]:
    """Compute the Location the client should see, or None to pass it through.

    Targets on the upstream host are moved onto the proxy origin, anything
    else is kept verbatim.
    """
    resolved = resolve_url(location, config.upstream_origin)
    if isinstance(resolved, UrlParseError):
        logger.debug(
            "Unparseable redirect location",
            extra={"location": location, "reason": resolved.reason},
        )
        if location.startswith("/"):
            return f"{origin}{location}"
        return None

    if same_host(resolved, config.upstream_host):
        return f"{origin}{path_and_query(resolved)}"
    return location


def rewrite_redirect(
    in_request: Request, upstream: httpx.Response, config: ProxyConfig,
) -> typing.Optional[ProxyResponse]:
    """Short-circuit 3xx upstream responses with a proxy-relative Location.

    Returns None when the response should go through ordinary response
    handling instead: not a redirect, no Location header, or a Location that
    cannot be resolved and is not a root-relative path.
    """
    if upstream.status_code not in REDIRECT_STATUS_CODES:
        return None

    location = upstream.headers.get("location")
    if not location:
        return None

    new_location = rewrite_location(location, config, proxy_origin(in_request))
    if new_location is None:
        return None

    logger.debug(
        "Rewrote upstream redirect",
        extra={
            "correlation_id": getattr(in_request.state, "correlation_id", None),
            "status_code": upstream.status_code,
            "location": location,
            "rewritten_location": new_location,
        },
    )
    return redirect_response(upstream.status_code, new_location)
