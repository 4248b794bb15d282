import typing
from dataclasses import dataclass

from starlette.datastructures import MutableHeaders


@dataclass
class ProxyRequest:
    method: str
    url: str
    headers: MutableHeaders
    content: typing.Optional[typing.AsyncIterable[bytes]] = None


@dataclass
class ProxyResponse:
    status_code: int
    headers: MutableHeaders
    reason_phrase: str = ""
    encoding: str = "utf-8"
    # Exactly one of text / content / stream is set for a response with a body.
    text: typing.Optional[str] = None
    content: typing.Optional[bytes] = None
    stream: typing.Optional[typing.AsyncIterator[bytes]] = None

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None
