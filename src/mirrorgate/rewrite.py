import enum
import logging
import re
import typing
from dataclasses import dataclass

logger = logging.getLogger("mirrorgate")

TEXT_CONTENT_TYPE_RE = re.compile(
    r"text/|application/javascript|application/json|application/xml|font/",
    re.IGNORECASE,
)


def is_text_content(content_type: typing.Optional[str]) -> bool:
    return bool(content_type) and TEXT_CONTENT_TYPE_RE.search(content_type) is not None


class RewriteOutcome(str, enum.Enum):
    REWRITTEN = "rewritten"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class RewriteResult:
    text: str
    outcome: RewriteOutcome
    error: typing.Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.outcome is RewriteOutcome.FAILED


def _substitution_passes(proxy_origin: str, proxy_hostname: str, upstream_host: str):
    host = re.escape(upstream_host)
    return [
        (re.compile(rf"https?://{host}", re.IGNORECASE), proxy_origin),
        (re.compile(rf"//{host}", re.IGNORECASE), f"//{proxy_hostname}"),
        (re.compile(rf"\"https?://{host}", re.IGNORECASE), f"\"{proxy_origin}"),
    ]


def rewrite_text(body: str, proxy_origin: str, proxy_hostname: str, upstream_host: str) -> RewriteResult:
    """Point upstream-absolute and protocol-relative references at the proxy.

    Passes run in order, each over the output of the previous one:

    1. ``http(s)://<upstream>`` becomes ``<proxy_origin>``
    2. ``//<upstream>`` becomes ``//<proxy_hostname>``
    3. ``"http(s)://<upstream>`` becomes ``"<proxy_origin>``

    Matching is case-insensitive. On any failure the original body is
    returned with ``RewriteOutcome.FAILED``.
    """
    try:
        rewritten = body
        for pattern, replacement in _substitution_passes(proxy_origin, proxy_hostname, upstream_host):
            # A callable replacement keeps backslashes in the origin literal.
            rewritten = pattern.sub(lambda _m, r=replacement: r, rewritten)
    except (re.error, TypeError, ValueError) as e:
        logger.warning("URL rewrite failed", extra={"exception": str(e)})
        return RewriteResult(text=body, outcome=RewriteOutcome.FAILED, error=str(e))

    if rewritten == body:
        return RewriteResult(text=body, outcome=RewriteOutcome.UNCHANGED)
    return RewriteResult(text=rewritten, outcome=RewriteOutcome.REWRITTEN)
