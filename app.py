"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from api.handlers import handle_proxy
from core.config import Config
from core.encoding import ResponseEncoder
from core.errors import ErrorNormalizer
from core.headers import HeaderPolicy
from core.protocols import GatewayObserver
from core.request_types import SUPPORTED_METHODS
from services.forwarder import RequestForwarder
from services.gateway import GatewayHandler


def create_app(
    config: Config,
    observer: GatewayObserver,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        limits = httpx.Limits(
            max_connections=config.limits.max_connections,
            max_keepalive_connections=config.limits.max_keepalive_connections,
        )
        client = httpx.AsyncClient(
            timeout=config.backend.timeout,
            limits=limits,
            follow_redirects=False,
            transport=transport,
        )
        policy = HeaderPolicy()
        app.state.gateway = GatewayHandler(
            forwarder=RequestForwarder(
                client,
                config.backend.base_url,
                timeout=config.backend.timeout,
                header_policy=policy,
            ),
            observer=observer,
            encoder=ResponseEncoder(),
            normalizer=ErrorNormalizer(include_details=not config.is_production),
            header_policy=policy,
            debug_context=config.gateway.debug_context,
        )
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(title="Mixed-Content Gateway", version="0.1.0", lifespan=lifespan)
    prefix = config.gateway.route_prefix.rstrip("/")

    @app.api_route(prefix + "/{path:path}", methods=list(SUPPORTED_METHODS))
    async def proxy(request: Request, path: str):
        return await handle_proxy(request, path)

    return app
