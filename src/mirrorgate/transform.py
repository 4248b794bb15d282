import logging
import typing

import httpx
from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from mirrorgate.config import ProxyConfig
from mirrorgate.constants import CORS_HEADERS, HOP_BY_HOP_HEADERS, SECURITY_RESPONSE_HEADERS
from mirrorgate.datastructures import ProxyRequest, ProxyResponse
from mirrorgate.rewrite import is_text_content, rewrite_text
from mirrorgate.urls import UrlParseError, parse_url, path_and_query, same_host
from mirrorgate.utils import proxy_hostname, proxy_origin

logger = logging.getLogger("mirrorgate")


BODYLESS_METHODS = {"GET", "HEAD"}

# The client decodes content-encoding, so the body is re-framed on the way out.
STRIP_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {
    "content-encoding",
    "content-length",
}


async def _chain(prefix: bytes, rest: typing.AsyncIterator[bytes]) -> typing.AsyncIterator[bytes]:
    if prefix:
        yield prefix
    async for chunk in rest:
        yield chunk


class ProxyTransformer:
    def __init__(self, config: ProxyConfig):
        self.config = config

    def target_url(self, in_request: Request) -> str:
        raw_path = in_request.scope.get("raw_path")
        if raw_path:
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = in_request.url.path
        url = f"{self.config.upstream_origin}{path}"
        query = in_request.url.query
        if query:
            url = f"{url}?{query}"
        return url

    def _rewrite_origin_header(self, headers: MutableHeaders, inbound_hostname: str, correlation_id):
        origin = headers.get("origin")
        if origin is None:
            return
        parsed = parse_url(origin)
        if isinstance(parsed, UrlParseError):
            logger.debug("Leaving unparseable Origin header as-is",
                         extra={"correlation_id": correlation_id, "reason": parsed.reason})
            return
        if same_host(parsed, inbound_hostname):
            headers["origin"] = self.config.upstream_origin

    def _rewrite_referer_header(self, headers: MutableHeaders, inbound_hostname: str, correlation_id):
        referer = headers.get("referer")
        if referer is None:
            return
        parsed = parse_url(referer)
        if isinstance(parsed, UrlParseError):
            logger.debug("Leaving unparseable Referer header as-is",
                         extra={"correlation_id": correlation_id, "reason": parsed.reason})
            return
        if same_host(parsed, inbound_hostname):
            headers["referer"] = f"{self.config.upstream_origin}{path_and_query(parsed)}"

    def transform_request(self, in_request: Request) -> ProxyRequest:
        correlation_id = getattr(in_request.state, "correlation_id", None)
        method = in_request.method.upper()
        strip = self.config.stripped_request_headers | HOP_BY_HOP_HEADERS
        if method in BODYLESS_METHODS:
            strip = strip | {"content-length"}

        headers = MutableHeaders(
            raw=[
                (k, v) for k, v in in_request.headers.raw
                if k.decode("latin-1").lower() not in strip
            ],
        )
        headers["host"] = self.config.upstream_host

        inbound_hostname = proxy_hostname(in_request)
        self._rewrite_origin_header(headers, inbound_hostname, correlation_id)
        self._rewrite_referer_header(headers, inbound_hostname, correlation_id)

        content = None if method in BODYLESS_METHODS else in_request.stream()

        return ProxyRequest(
            method=method,
            url=self.target_url(in_request),
            headers=headers,
            content=content,
        )

    def response_headers(self, upstream: httpx.Response) -> MutableHeaders:
        headers = MutableHeaders(
            raw=[
                (k.lower(), v)
                for k, v in upstream.headers.raw
                if k.decode("latin-1").lower() not in STRIP_RESPONSE_HEADERS
            ],
        )
        for key, value in CORS_HEADERS.items():
            headers[key] = value
        for key in SECURITY_RESPONSE_HEADERS:
            if key in headers:
                del headers[key]
        return headers

    async def _buffer_body(
        self, upstream: httpx.Response,
    ) -> typing.Tuple[bytes, typing.Optional[typing.AsyncIterator[bytes]]]:
        """Read the body up to the size limit.

        Returns the bytes read and, when the limit was exceeded, the iterator
        still holding the unread remainder.
        """
        limit = self.config.max_text_body_bytes
        chunks = []
        size = 0
        iterator = upstream.aiter_bytes()
        async for chunk in iterator:
            chunks.append(chunk)
            size += len(chunk)
            if size > limit:
                return b"".join(chunks), iterator
        return b"".join(chunks), None

    async def transform_response(self, in_request: Request, upstream: httpx.Response) -> ProxyResponse:
        correlation_id = getattr(in_request.state, "correlation_id", None)
        headers = self.response_headers(upstream)
        response = ProxyResponse(
            status_code=upstream.status_code,
            reason_phrase=upstream.reason_phrase,
            headers=headers,
        )

        if in_request.method.upper() == "HEAD":
            # No body follows, so the upstream length is the only accurate one.
            length = upstream.headers.get("content-length")
            if length is not None and "content-encoding" not in upstream.headers:
                headers["content-length"] = length
            response.content = b""
            return response

        if not is_text_content(headers.get("content-type")):
            response.stream = upstream.aiter_bytes()
            return response

        body, remainder = await self._buffer_body(upstream)
        if remainder is not None:
            logger.warning(
                "Text body exceeds rewrite limit, passing through unmodified",
                extra={
                    "correlation_id": correlation_id,
                    "max_text_body_bytes": self.config.max_text_body_bytes,
                },
            )
            response.stream = _chain(body, remainder)
            return response

        encoding = upstream.charset_encoding or "utf-8"
        try:
            text = body.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            logger.warning(
                "Could not decode text body, passing through unmodified",
                extra={"correlation_id": correlation_id, "encoding": encoding, "exception": str(e)},
            )
            response.content = body
            return response

        result = rewrite_text(
            text,
            proxy_origin=proxy_origin(in_request),
            proxy_hostname=proxy_hostname(in_request),
            upstream_host=self.config.upstream_host,
        )
        logger.debug(
            "Rewrote text body",
            extra={"correlation_id": correlation_id, "outcome": result.outcome.value},
        )
        response.text = result.text
        response.encoding = encoding
        return response
