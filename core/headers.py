"""Header handling for inbound and outbound traffic."""

from collections.abc import Iterable, Iterator, Mapping

AUTH_HEADER = "Authorization"
AUTH_HEADER_SPELLINGS = ("authorization", "Authorization", "AUTHORIZATION")

INBOUND_DROPPED = frozenset(
    {"host", "connection", "content-length", "content-encoding", "authorization"}
)
OUTBOUND_DROPPED = frozenset({"content-length", "transfer-encoding"})
CORS_PREFIX = "access-control-"


class HeaderSet:
    """Case-insensitive ordered header multimap.

    Values are grouped under the lower-cased name but keep the name they
    were added with, so ``items()`` re-emits the original casing while
    ``get()`` and ``in`` ignore case. Repeated headers such as
    ``Set-Cookie`` keep every value.
    """

    def __init__(self, headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None):
        self._entries: dict[str, list[tuple[str, str]]] = {}
        if headers is None:
            return
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        for name, value in pairs:
            self.add(name, value)

    def get(self, name: str, default: str | None = None) -> str | None:
        """First value stored under ``name``."""
        entries = self._entries.get(name.lower())
        return entries[0][1] if entries else default

    def get_all(self, name: str) -> list[str]:
        return [value for _, value in self._entries.get(name.lower(), [])]

    def set(self, name: str, value: str) -> None:
        """Replace every value of ``name``."""
        self._entries[name.lower()] = [(name, str(value))]

    def add(self, name: str, value: str) -> None:
        """Append a value, keeping any already stored under ``name``."""
        self._entries.setdefault(name.lower(), []).append((name, str(value)))

    def remove(self, name: str) -> None:
        self._entries.pop(name.lower(), None)

    def items(self) -> Iterator[tuple[str, str]]:
        """Iterate every (original-case name, value) pair."""
        for entries in self._entries.values():
            yield from entries

    def names(self) -> list[str]:
        return [entries[0][0] for entries in self._entries.values()]

    def copy(self) -> "HeaderSet":
        return HeaderSet(self.items())

    def to_dict(self) -> dict[str, str]:
        """One entry per name; repeated headers collapse to the last value."""
        return {entries[-1][0]: entries[-1][1] for entries in self._entries.values()}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderSet):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"HeaderSet({list(self.items())!r})"


class HeaderPolicy:
    """Decide which headers cross the gateway in each direction."""

    def find_authorization(self, headers: HeaderSet) -> str | None:
        """Locate the credential header regardless of the caller's casing."""
        for spelling in AUTH_HEADER_SPELLINGS:
            value = headers.get(spelling)
            if value:
                return value
        return None

    def select_inbound_headers(self, headers: HeaderSet) -> HeaderSet:
        """Headers to send to the backend; auth is re-emitted as ``Authorization``."""
        selected = HeaderSet()
        authorization = self.find_authorization(headers)
        if authorization:
            selected.set(AUTH_HEADER, authorization)
        for name, value in headers.items():
            if name.lower() not in INBOUND_DROPPED:
                selected.add(name, value)
        return selected

    def select_outbound_headers(self, headers: HeaderSet) -> HeaderSet:
        """Headers to return to the caller; framing headers are derived later."""
        selected = HeaderSet()
        for name, value in headers.items():
            key = name.lower()
            if key.startswith(CORS_PREFIX) or key in OUTBOUND_DROPPED:
                continue
            selected.add(name, value)
        return selected
