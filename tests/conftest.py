import typing

import httpx
import pytest
from starlette.requests import Request

from mirrorgate.config import ProxyConfig

UPSTREAM_HOST = "anyrouter.top"
PROXY_HOST = "proxy.example"


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def proxy_config():
    return ProxyConfig(upstream_host=UPSTREAM_HOST)


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: bytes = b"",
    headers: typing.Optional[typing.List[typing.Tuple[str, str]]] = None,
    body: bytes = b"",
    host: str = PROXY_HOST,
    scheme: str = "https",
) -> Request:
    raw_headers = [(b"host", host.encode())]
    for key, value in headers or []:
        raw_headers.append((key.lower().encode("latin-1"), value.encode("latin-1")))
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode(),
        "query_string": query_string,
        "root_path": "",
        "headers": raw_headers,
        "server": (host, 443),
        "client": ("203.0.113.7", 51234),
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


class ChunkStream(httpx.AsyncByteStream):
    """Upstream body that records how many chunks were pulled from it."""

    def __init__(self, chunks: typing.List[bytes]):
        self.chunks = chunks
        self.consumed = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.consumed += 1
            yield chunk

    async def aclose(self):
        self.closed = True
