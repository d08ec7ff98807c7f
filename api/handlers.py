"""FastAPI route handlers."""

from fastapi import Request, Response
from starlette.requests import ClientDisconnect

from core.headers import HeaderSet
from core.request_types import BODY_METHODS, ProxyRequest, ProxyResponse
from services.gateway import GatewayHandler


async def _read_body(request: Request) -> bytes | None:
    """Read the inbound body; an unreadable body is forwarded as absent."""
    if request.method.upper() not in BODY_METHODS:
        return None
    try:
        return await request.body()
    except (ClientDisconnect, RuntimeError):
        return None


async def read_proxy_request(request: Request, path: str) -> ProxyRequest:
    """Describe the inbound request independently of the web framework."""
    return ProxyRequest(
        method=request.method.upper(),
        path_segments=tuple(path.split("/")) if path else (),
        query=tuple(request.query_params.multi_items()),
        headers=HeaderSet(request.headers.items()),
        body=await _read_body(request),
    )


def to_response(result: ProxyResponse) -> Response:
    """Emit a ProxyResponse; framing headers are derived from the final body."""
    response = Response(content=result.content, status_code=result.status_code)
    for name, value in result.headers.items():
        response.headers.append(name, value)
    return response


async def handle_proxy(request: Request, path: str) -> Response:
    """Handle /proxy/{path} for GET, POST, PUT and DELETE."""
    gateway: GatewayHandler = request.app.state.gateway
    try:
        proxy_request = await read_proxy_request(request, path)
    except Exception as e:
        # Report what is known so observers still see the request first.
        received = ProxyRequest(
            method=request.method.upper(),
            path_segments=tuple(path.split("/")) if path else (),
        )
        return to_response(gateway.reject(received, e))
    return to_response(await gateway.handle(proxy_request))
