import logging
import typing

import httpx

from mirrorgate.config import ProxyConfig
from mirrorgate.datastructures import ProxyRequest
from mirrorgate.exceptions import ProxyClientTimeoutException, UpstreamUnreachableException

logger = logging.getLogger("mirrorgate")


class UpstreamForwarder:
    """Sends one outbound request per call, with no retries.

    The request goes straight to the transport, so httpx never inspects a
    3xx Location. The response is returned unread in streaming mode;
    `aclose` must be awaited once the body has been consumed.

    A transport passed in is shared and left open; otherwise each forwarder
    opens its own connection pool and closes it in `aclose`.
    """

    def __init__(
        self,
        config: ProxyConfig,
        transport: typing.Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._shared_transport = transport
        self._transport: httpx.AsyncBaseTransport | None = None
        self._response: httpx.Response | None = None

    def build_request(self, proxy_request: ProxyRequest) -> httpx.Request:
        timeout = httpx.Timeout(self.config.proxy_client_timeout_secs)
        return httpx.Request(
            proxy_request.method,
            proxy_request.url,
            # Raw bytes, so non-ASCII header values pass through as received.
            headers=proxy_request.headers.raw,
            content=proxy_request.content,
            extensions={"timeout": timeout.as_dict()},
        )

    async def send(self, proxy_request: ProxyRequest, correlation_id: str | None = None) -> httpx.Response:
        if self._transport is not None:
            raise RuntimeError("UpstreamForwarder.send() may only be called once")

        self._transport = self._shared_transport or httpx.AsyncHTTPTransport()
        try:
            outbound = self.build_request(proxy_request)
            logger.debug(
                "Forwarding request upstream",
                extra={
                    "correlation_id": correlation_id,
                    "method": proxy_request.method,
                    "upstream_url": proxy_request.url,
                },
            )
            self._response = await self._transport.handle_async_request(outbound)
            self._response.request = outbound
        except httpx.TimeoutException as e:
            await self.aclose()
            raise ProxyClientTimeoutException(f"Request timed out: {e!s}") from e
        except httpx.RequestError as e:
            await self.aclose()
            raise UpstreamUnreachableException(
                f"Upstream {self.config.upstream_host} unreachable: {e!s}"
            ) from e
        except BaseException:
            await self.aclose()
            raise
        return self._response

    async def aclose(self):
        if self._response is not None:
            await self._response.aclose()
        if self._transport is not None and self._transport is not self._shared_transport:
            await self._transport.aclose()
