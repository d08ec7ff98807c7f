"""Response body classification and re-encoding for the caller."""

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from core.headers import HeaderSet
from core.request_types import ProxyResponse, UpstreamReply

JSON_MEDIA_TYPE = "application/json"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"
ENCODING_HEADER = "X-Response-Encoding"
ENCODING_BASE64 = "base64"

# Payloads up to this size are encoded in one pass.
SINGLE_PASS_LIMIT = 65536
# Multiple of 3 so no chunk emits '=' padding mid-stream.
CHUNK_SIZE = 65535

COMPACT_SEPARATORS = (",", ":")


@dataclass(frozen=True)
class RawBody:
    """Non-JSON body, forwarded untouched."""

    content: bytes


@dataclass(frozen=True)
class StructuredBody:
    """JSON body that parsed successfully."""

    value: Any


@dataclass(frozen=True)
class UnparseableBody:
    """Body declared as JSON that failed to parse."""

    content: bytes
    cause: str


BodyRepresentation = RawBody | StructuredBody | UnparseableBody


def is_json_content_type(content_type: str | None) -> bool:
    return bool(content_type) and JSON_MEDIA_TYPE in content_type.lower()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def loads_json(content: bytes | str) -> Any:
    """Parse strict JSON; NaN and Infinity literals are rejected.

    Raises:
        ValueError: If the content is not UTF-8 or not JSON.
    """
    return json.loads(content, parse_constant=_reject_constant)


def dumps_json(value: Any, compact: bool = False) -> bytes:
    """UTF-8 JSON bytes.

    Strings holding lone surrogates cannot be written as UTF-8, so those
    values fall back to ASCII output with ``\\uXXXX`` escapes.
    """
    separators = COMPACT_SEPARATORS if compact else None
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False, separators=separators).encode("utf-8")
    except UnicodeEncodeError:
        return json.dumps(value, allow_nan=False, separators=separators).encode("ascii")


def classify_body(content_type: str | None, content: bytes) -> BodyRepresentation:
    """Single classification step for a backend body."""
    if not is_json_content_type(content_type):
        return RawBody(content)
    try:
        return StructuredBody(loads_json(content))
    except ValueError as e:
        return UnparseableBody(content, str(e))


def canonical_json(value: Any) -> str:
    """Deterministic compact serialization, preserving parsed key order."""
    return json.dumps(value, ensure_ascii=False, allow_nan=False, separators=COMPACT_SEPARATORS)


def encode_base64(data: bytes) -> str:
    """Base64-encode, slicing payloads above the single-pass limit."""
    if len(data) <= SINGLE_PASS_LIMIT:
        return base64.b64encode(data).decode("ascii")
    chunks = []
    for start in range(0, len(data), CHUNK_SIZE):
        chunks.append(base64.b64encode(data[start : start + CHUNK_SIZE]).decode("ascii"))
    return "".join(chunks)


def build_envelope(value: Any) -> dict[str, str]:
    """Wrap the canonical JSON of ``value`` in ``{"encoded": ...}``."""
    return {"encoded": encode_base64(dumps_json(value, compact=True))}


def decode_response(headers: HeaderSet | Mapping[str, str], body: Any) -> Any:
    """Reverse the base64 envelope if the marker header says one was applied.

    Decoded text that is not JSON is returned as a string. Bodies without
    the marker, or without a string ``encoded`` field, come back unchanged.
    """
    if not isinstance(headers, HeaderSet):
        headers = HeaderSet(headers)
    if (headers.get(ENCODING_HEADER) or "").lower() != ENCODING_BASE64:
        return body
    if not isinstance(body, dict) or not isinstance(body.get("encoded"), str):
        return body
    try:
        text = base64.b64decode(body["encoded"], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return body
    try:
        return loads_json(text)
    except ValueError:
        return text


class ResponseEncoder:
    """Shape a backend reply into what the caller receives."""

    def encode(self, reply: UpstreamReply, headers: HeaderSet) -> ProxyResponse:
        """Encode ``reply`` using already-filtered outbound ``headers``."""
        content_type = reply.headers.get("content-type")
        representation = classify_body(content_type, reply.content)
        return self.render(reply, headers, representation)

    def render(
        self,
        reply: UpstreamReply,
        headers: HeaderSet,
        representation: BodyRepresentation,
    ) -> ProxyResponse:
        headers = headers.copy()
        headers.remove("content-length")

        if isinstance(representation, StructuredBody):
            headers.set("content-type", JSON_CONTENT_TYPE)
            headers.set(ENCODING_HEADER, ENCODING_BASE64)
            envelope = build_envelope(representation.value)
            return ProxyResponse(
                status_code=reply.status_code,
                status_text=reply.reason_phrase,
                headers=headers,
                content=json.dumps(envelope).encode("utf-8"),
                strategy="envelope",
            )

        if "content-type" not in headers:
            headers.set("content-type", JSON_CONTENT_TYPE)
        strategy = "unparseable" if isinstance(representation, UnparseableBody) else "raw"
        return ProxyResponse(
            status_code=reply.status_code,
            status_text=reply.reason_phrase,
            headers=headers,
            content=representation.content,
            strategy=strategy,
        )
