"""Shared protocol definitions."""

from typing import Protocol

from core.request_types import ErrorRecord, ProxyRequest


class GatewayObserver(Protocol):
    """Protocol for lifecycle observation (Dashboard, file log)."""

    def request_received(self, request: ProxyRequest) -> None: ...
    def backend_call_issued(self, method: str, url: str) -> None: ...
    def response_classified(self, status: int, strategy: str) -> None: ...
    def error_classified(self, record: ErrorRecord) -> None: ...
