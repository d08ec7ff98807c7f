"""Per-request orchestration: filter, forward, shape, normalize."""

from typing import Any

from core.encoding import ResponseEncoder
from core.errors import ErrorNormalizer, upstream_error_record
from core.headers import HeaderPolicy
from core.protocols import GatewayObserver
from core.request_types import ProxyRequest, ProxyResponse, UpstreamReply
from services.forwarder import RequestForwarder

BODY_PREVIEW_CHARS = 500


class GatewayHandler:
    """Wire header policy, forwarder, encoder and normalizer together.

    Holds only collaborators; every call to ``handle`` is independent.
    """

    def __init__(
        self,
        forwarder: RequestForwarder,
        observer: GatewayObserver,
        encoder: ResponseEncoder | None = None,
        normalizer: ErrorNormalizer | None = None,
        header_policy: HeaderPolicy | None = None,
        debug_context: bool = False,
    ) -> None:
        self._forwarder = forwarder
        self._observer = observer
        self._encoder = encoder or ResponseEncoder()
        self._normalizer = normalizer or ErrorNormalizer()
        self._policy = header_policy or HeaderPolicy()
        self._debug_context = debug_context

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        """Run one request through the gateway and return the caller's response."""
        self._observer.request_received(request)
        target_url: str | None = None
        try:
            target_url = self._forwarder.target_url(request)
            self._observer.backend_call_issued(request.method, target_url)
            reply = await self._forwarder.forward(request)
            return self._shape(request, target_url, reply)
        except Exception as e:
            return self.fail(e, request, target_url)

    def reject(self, request: ProxyRequest, exc: BaseException) -> ProxyResponse:
        """Fail a request that could not be read far enough to forward."""
        self._observer.request_received(request)
        return self.fail(exc, request)

    def fail(
        self,
        exc: BaseException,
        request: ProxyRequest | None = None,
        target_url: str | None = None,
    ) -> ProxyResponse:
        """Classify a failure and build the caller's 500 response."""
        debug = self._debug(request, target_url) if request is not None else None
        record, response = self._normalizer.failure_response(exc, debug)
        self._observer.error_classified(record)
        self._observer.response_classified(response.status_code, response.strategy)
        return response

    def _shape(self, request: ProxyRequest, target_url: str, reply: UpstreamReply) -> ProxyResponse:
        headers = self._policy.select_outbound_headers(reply.headers)

        if reply.status_code == 401:
            record, response = self._normalizer.unauthorized_response(
                reply, headers, self._debug(request, target_url, reply.content)
            )
            self._observer.error_classified(record)
        else:
            response = self._encoder.encode(reply, headers)
            if reply.status_code >= 400:
                self._observer.error_classified(upstream_error_record(reply))

        self._observer.response_classified(response.status_code, response.strategy)
        return response

    def _debug(
        self,
        request: ProxyRequest,
        target_url: str | None,
        body: bytes | None = None,
    ) -> dict[str, Any] | None:
        if not self._debug_context:
            return None
        context: dict[str, Any] = {
            "forwardedHeaders": self._forwarder.prepare_headers(request).names(),
            "targetUrl": target_url,
        }
        if body is not None:
            context["bodyPreview"] = body[:BODY_PREVIEW_CHARS].decode("utf-8", errors="replace")
        return context
