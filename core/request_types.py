"""Shared request data types."""

from dataclasses import dataclass, field
from typing import Any

from core.exceptions import ErrorKind
from core.headers import HeaderSet

BODY_METHODS = frozenset({"POST", "PUT"})
SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")


@dataclass(frozen=True)
class ProxyRequest:
    """Inbound request as seen by the gateway."""

    method: str
    path_segments: tuple[str, ...]
    query: tuple[tuple[str, str], ...] = ()
    headers: HeaderSet = field(default_factory=HeaderSet)
    body: bytes | None = None

    @property
    def path(self) -> str:
        return "/".join(self.path_segments)

    @property
    def carries_body(self) -> bool:
        return self.method.upper() in BODY_METHODS


@dataclass(frozen=True)
class UpstreamReply:
    """Raw backend response before it is shaped for the caller."""

    status_code: int
    reason_phrase: str
    headers: HeaderSet
    content: bytes


@dataclass
class ProxyResponse:
    """Response handed back to the caller.

    ``content`` is the exact body to emit; ``strategy`` records how it was
    produced (``raw``, ``envelope``, ``unparseable``, ``unauthorized`` or
    ``error``).
    """

    status_code: int
    status_text: str
    headers: HeaderSet
    content: bytes
    strategy: str


@dataclass
class ErrorRecord:
    """Classified failure, rendered into a JSON error body."""

    kind: ErrorKind
    message: str
    status_code: int
    debug: dict[str, Any] | None = None
