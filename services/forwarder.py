"""Outbound request construction and dispatch to the HTTP backend."""

from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

import httpx

from core.exceptions import ConfigurationError, UpstreamTimeout, UpstreamUnreachable
from core.headers import HeaderPolicy, HeaderSet
from core.request_types import ProxyRequest, UpstreamReply

DEFAULT_CONTENT_TYPE = "application/json"
# RFC 3986 pchar minus '/', segments are joined by the caller.
SEGMENT_SAFE = "!$&'()*+,;=:@-._~"


def validate_base_url(base_url: str | None) -> str:
    """Return ``base_url`` if it is a plain-HTTP address, else raise."""
    if not base_url or not base_url.startswith("http://"):
        raise ConfigurationError(f"Backend base URL must use http:// (got {base_url!r})")
    return base_url


def build_target_url(base_url: str, request: ProxyRequest) -> str:
    """Resolve the joined path against ``base_url`` and append the query."""
    path = "/".join(quote(segment, safe=SEGMENT_SAFE) for segment in request.path_segments)
    if path:
        # Never let a leading segment like "http:" replace the backend host.
        path = "./" + path
    parts = urlsplit(urljoin(base_url, path))
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(request.query)
    return urlunsplit(parts._replace(query=urlencode(query)))


class RequestForwarder:
    """Issue exactly one backend call per inbound request."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str | None,
        timeout: float | None = None,
        header_policy: HeaderPolicy | None = None,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._timeout = timeout
        self._policy = header_policy or HeaderPolicy()

    def target_url(self, request: ProxyRequest) -> str:
        return build_target_url(validate_base_url(self._base_url), request)

    def prepare_headers(self, request: ProxyRequest) -> HeaderSet:
        """Filtered inbound headers plus a default content type for bodies."""
        headers = self._policy.select_inbound_headers(request.headers)
        # httpx negotiates its own compression and hands back decoded bodies.
        headers.remove("accept-encoding")
        if request.carries_body and "content-type" not in headers:
            headers.set("content-type", DEFAULT_CONTENT_TYPE)
        return headers

    async def forward(self, request: ProxyRequest) -> UpstreamReply:
        """Send ``request`` to the backend.

        Raises:
            ConfigurationError: If the base URL is unset or not http://.
            UpstreamTimeout: If the transport deadline is exceeded.
            UpstreamUnreachable: If the call cannot be completed.
        """
        url = self.target_url(request)
        headers = self.prepare_headers(request)
        body = request.body if request.carries_body else None

        try:
            response = await self._client.request(
                request.method.upper(),
                url,
                headers=list(headers.items()),
                content=body,
                timeout=self._timeout if self._timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"Upstream timeout: {e}", target_url=url) from e
        except httpx.RequestError as e:
            raise UpstreamUnreachable(f"Upstream connection error: {e}", target_url=url) from e

        reply_headers = HeaderSet(response.headers.multi_items())
        # Body below is already decompressed.
        reply_headers.remove("content-encoding")
        return UpstreamReply(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=reply_headers,
            content=response.content,
        )
