"""Shared logging utilities."""

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from core.exceptions import ErrorKind
from core.request_types import ErrorRecord, ProxyRequest

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "gateway.log"

SENSITIVE_MARKERS = ("key", "authorization", "token", "cookie", "secret")


def write_cli_log(
    level: str,
    message: str,
    *,
    log_file: Path | None = None,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    log_file = log_file or CLI_LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with log_file.open("a") as f:
        f.write(line)


def describe_request(request: ProxyRequest) -> str:
    """One-line summary: method and joined path."""
    return f"{request.method} /{request.path}"


def redact_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Redact sensitive headers."""
    redacted = {}
    for key, value in headers:
        if any(marker in key.lower() for marker in SENSITIVE_MARKERS):
            redacted[key] = _mask(value)
        else:
            redacted[key] = value
    return redacted


def format_error(record: ErrorRecord) -> str:
    return f"{record.kind} {record.status_code}: {record.message}"


def error_level(record: ErrorRecord) -> str:
    """Backend-originated failures are warnings; gateway failures are errors."""
    if record.kind in (ErrorKind.UPSTREAM_ERROR, ErrorKind.UPSTREAM_UNAUTHORIZED):
        return "WARNING"
    return "ERROR"


def clear_logs(log_file: Path | None = None) -> None:
    """Truncate the CLI log at startup."""
    log_file = log_file or CLI_LOG_FILE
    if log_file.exists():
        log_file.write_text("")


def _mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]


class LogObserver:
    """Headless observer that only writes the CLI log."""

    def __init__(self, log_file: Path | None = None) -> None:
        self._log_file = log_file

    def request_received(self, request: ProxyRequest) -> None:
        write_cli_log(
            "INFO",
            describe_request(request),
            log_file=self._log_file,
            headers=redact_headers(request.headers.items()),
        )

    def backend_call_issued(self, method: str, url: str) -> None:
        write_cli_log("DEBUG", f"{method} {url}", log_file=self._log_file)

    def response_classified(self, status: int, strategy: str) -> None:
        write_cli_log("INFO", "response", log_file=self._log_file, status=status, strategy=strategy)

    def error_classified(self, record: ErrorRecord) -> None:
        write_cli_log(error_level(record), format_error(record)[:200], log_file=self._log_file)
