import typing

from starlette.requests import Request


def proxy_origin(request: Request) -> str:
    """Origin (scheme://host[:port]) the client used to reach the proxy."""
    url = request.url
    return f"{url.scheme}://{url.netloc}"


def proxy_hostname(request: Request) -> str:
    return (request.url.hostname or "").lower()


def split_header_names(value: typing.Optional[str]) -> typing.Tuple[str, ...]:
    if not value:
        return ()
    return tuple(name.strip().lower() for name in value.split(",") if name.strip())
