import functools
import logging
import time
import typing
import uuid

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from mirrorgate.config import ProxyConfig, load_proxy_config
from mirrorgate.constants import CORRELATION_ID_HEADER, PROXY_ERROR_HEADER, PROXY_METHODS
from mirrorgate.datastructures import ProxyResponse
from mirrorgate.exceptions import MirrorGateException, TransformationException
from mirrorgate.forwarder import UpstreamForwarder
from mirrorgate.logging import setup_logging
from mirrorgate.redirects import rewrite_redirect
from mirrorgate.transform import ProxyTransformer
from mirrorgate.version import VERSION


setup_logging()

logger = logging.getLogger("mirrorgate")


def error_response(exc: Exception, correlation_id: str) -> PlainTextResponse:
    return PlainTextResponse(
        f"Proxy request failed: {exc!s}",
        status_code=500,
        headers={
            "Access-Control-Allow-Origin": "*",
            PROXY_ERROR_HEADER: "proxy",
            CORRELATION_ID_HEADER: correlation_id,
        },
    )


def mirrorgate_route():
    def wrapper(func):
        @functools.wraps(func)
        async def wrapped(*args, **kwargs):
            request: Request = kwargs.get('request') or args[-1]
            correlation_id = str(uuid.uuid4())
            request.state.correlation_id = correlation_id
            logger.info(
                "Incoming mirrorgate request",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "url": str(request.url),
                    "client_host": request.client.host if request.client else "unknown",
                }
            )
            start_time = time.time()

            try:
                response = await func(*args, **kwargs)
                elapsed_time = time.time() - start_time
                logger.info(
                    "Mirrorgate request processed successfully",
                    extra={
                        "correlation_id": correlation_id,
                        "status_code": response.status_code,
                        "content_type": response.headers.get("Content-Type", "unknown"),
                        "elapsed_time": f"{elapsed_time:.3f}s",
                    }
                )
                return response
            except MirrorGateException as me:
                elapsed_time = time.time() - start_time
                logger.error(
                    "MirrorGateException encountered",
                    exc_info=True,
                    extra={
                        "correlation_id": correlation_id,
                        "exception": str(me),
                        "elapsed_time": f"{elapsed_time:.3f}s",
                    }
                )
                return error_response(me, correlation_id)
            except Exception as exc:
                elapsed_time = time.time() - start_time
                logger.error(
                    "Unexpected error occurred",
                    exc_info=True,
                    extra={
                        "correlation_id": correlation_id,
                        "exception": str(exc),
                        "elapsed_time": f"{elapsed_time:.3f}s",
                    }
                )
                return error_response(exc, correlation_id)
        return wrapped
    return wrapper


async def _stream_and_close(
    stream: typing.AsyncIterator[bytes], forwarder: UpstreamForwarder,
) -> typing.AsyncIterator[bytes]:
    try:
        async for chunk in stream:
            yield chunk
    finally:
        await forwarder.aclose()


async def render_response(proxy_response: ProxyResponse, forwarder: UpstreamForwarder) -> Response:
    """Turn a ProxyResponse into an ASGI response.

    Buffered bodies are complete by now, so the upstream is closed right
    away. Streamed bodies close it when the stream ends, fails or is
    abandoned.
    """
    if proxy_response.is_streaming:
        return StreamingResponse(
            _stream_and_close(proxy_response.stream, forwarder),
            status_code=proxy_response.status_code,
            headers=proxy_response.headers,
        )
    await forwarder.aclose()
    if proxy_response.text is not None:
        content = proxy_response.text.encode(proxy_response.encoding)
    else:
        content = proxy_response.content or b""
    return Response(
        content=content,
        status_code=proxy_response.status_code,
        headers=proxy_response.headers,
    )


class MirrorGate:
    def __init__(
        self,
        config: ProxyConfig | None = None,
        transport: typing.Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or load_proxy_config()
        self.transport = transport
        self.transformer = ProxyTransformer(self.config)

        logger.info(
            "Mirrorgate configured",
            extra={
                "version": VERSION,
                "upstream_origin": self.config.upstream_origin,
                "proxy_client_timeout_secs": self.config.proxy_client_timeout_secs,
                "max_text_body_bytes": self.config.max_text_body_bytes,
            },
        )

    def forwarder(self) -> UpstreamForwarder:
        return UpstreamForwarder(self.config, transport=self.transport)

    @mirrorgate_route()
    async def _proxy_route(self, request: Request):
        correlation_id = request.state.correlation_id
        try:
            proxy_request = self.transformer.transform_request(request)
        except Exception as e:
            raise TransformationException(f"Error transforming request: {e!s}") from e

        forwarder = self.forwarder()
        upstream = await forwarder.send(proxy_request, correlation_id=correlation_id)

        try:
            proxy_response = rewrite_redirect(request, upstream, self.config)
            if proxy_response is None:
                proxy_response = await self.transformer.transform_response(request, upstream)
            return await render_response(proxy_response, forwarder)
        except Exception as e:
            await forwarder.aclose()
            raise TransformationException(f"Error transforming response: {e!s}") from e

    def to_fastapi(self, app: FastAPI):
        app.api_route("/{path:path}", methods=PROXY_METHODS)(self._proxy_route)
