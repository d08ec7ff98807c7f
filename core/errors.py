"""Failure classification and structured error bodies."""

import traceback
from typing import Any

from core.encoding import ENCODING_HEADER, JSON_CONTENT_TYPE, dumps_json, loads_json
from core.exceptions import ConfigurationError, ErrorKind, GatewayError
from core.headers import HeaderSet
from core.request_types import ErrorRecord, ProxyResponse, UpstreamReply

CONFIGURATION_MESSAGE = "API base URL not configured or not HTTP"
PROXY_FAILURE_MESSAGE = "Failed to proxy request"
DEBUG_FIELD = "gatewayDebug"


def default_unauthorized_body() -> dict[str, Any]:
    return {"message": "Unauthorized", "statusCode": 401}


class ErrorNormalizer:
    """Turn backend 401s and gateway failures into defined response shapes."""

    def __init__(self, include_details: bool = False) -> None:
        self._include_details = include_details

    def classify(self, exc: BaseException, debug: dict[str, Any] | None = None) -> ErrorRecord:
        """Map an exception raised inside the gateway onto the taxonomy."""
        if isinstance(exc, GatewayError):
            return ErrorRecord(kind=exc.kind, message=exc.message, status_code=500, debug=debug)
        return ErrorRecord(
            kind=ErrorKind.INTERNAL,
            message=str(exc) or exc.__class__.__name__,
            status_code=500,
            debug=debug,
        )

    def failure_response(
        self,
        exc: BaseException,
        debug: dict[str, Any] | None = None,
    ) -> tuple[ErrorRecord, ProxyResponse]:
        """Build the 500 response for a failure raised before or during forwarding."""
        record = self.classify(exc, debug)
        if isinstance(exc, ConfigurationError):
            return record, _json_response(500, {"error": CONFIGURATION_MESSAGE}, "error")

        body: dict[str, Any] = {
            "error": PROXY_FAILURE_MESSAGE,
            "kind": str(record.kind),
            "message": record.message,
        }
        if self._include_details:
            body["details"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        if record.debug:
            body[DEBUG_FIELD] = record.debug
        return record, _json_response(500, body, "error")

    def unauthorized_response(
        self,
        reply: UpstreamReply,
        headers: HeaderSet,
        debug: dict[str, Any] | None = None,
    ) -> tuple[ErrorRecord, ProxyResponse]:
        """Build the caller-facing 401, keeping any JSON object the backend sent."""
        body = _parse_object(reply.content)
        if body is None:
            body = default_unauthorized_body()
        if debug:
            # Backend fields win over the debug block.
            body.setdefault(DEBUG_FIELD, debug)

        record = ErrorRecord(
            kind=ErrorKind.UPSTREAM_UNAUTHORIZED,
            message=str(body.get("message", "Unauthorized")),
            status_code=reply.status_code,
            debug=debug,
        )
        response = _json_response(reply.status_code, body, "unauthorized", headers)
        response.status_text = reply.reason_phrase
        return record, response


def upstream_error_record(reply: UpstreamReply) -> ErrorRecord:
    """Record for a passed-through backend error, used for observation only."""
    return ErrorRecord(
        kind=ErrorKind.UPSTREAM_ERROR,
        message=f"Backend returned {reply.status_code} {reply.reason_phrase}".strip(),
        status_code=reply.status_code,
    )


def _parse_object(content: bytes) -> dict[str, Any] | None:
    if not content or not content.strip():
        return None
    try:
        value = loads_json(content)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _json_response(
    status_code: int,
    body: dict[str, Any],
    strategy: str,
    headers: HeaderSet | None = None,
) -> ProxyResponse:
    headers = headers.copy() if headers is not None else HeaderSet()
    headers.remove("content-length")
    headers.remove(ENCODING_HEADER)
    headers.set("content-type", JSON_CONTENT_TYPE)
    return ProxyResponse(
        status_code=status_code,
        status_text="",
        headers=headers,
        content=dumps_json(body),
        strategy=strategy,
    )
