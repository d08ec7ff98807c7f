"""CLI entry point for mixed-content-gateway."""

import sys
from datetime import datetime

from rich.console import Console

from app import create_app
from core.config import CONFIG_FILE, Config, load_config
from core.exceptions import ConfigurationError
from services.forwarder import validate_base_url
from ui.dashboard import Dashboard
from ui.log_utils import LogObserver, clear_logs, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    config = load_config()
    headless = not config.server.dashboard

    # Handle CLI arguments
    if len(sys.argv) > 1:
        arg = sys.argv[1]

        if arg == "--check":
            sys.exit(0 if print_backend_status(config) else 1)

        if arg == "--config":
            console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
            return

        if arg in ("--help", "-h"):
            _print_help()
            return

        if arg == "--no-dashboard":
            headless = True

    # The gateway still starts so callers get the configuration error envelope.
    print_backend_status(config)

    import uvicorn

    clear_logs()
    observer = LogObserver() if headless else Dashboard(config)
    app = create_app(config, observer)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",
        timeout_keep_alive=config.limits.keep_alive_timeout,
    )
    server = uvicorn.Server(uvicorn_config)

    if isinstance(observer, Dashboard):
        observer.start()
    start_time = datetime.now()
    write_cli_log("STARTUP", "Gateway started", port=config.server.port)
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Gateway stopped", duration=str(duration))
        if isinstance(observer, Dashboard):
            observer.stop()


def print_backend_status(config: Config) -> bool:
    """Report whether the backend base URL is usable."""
    try:
        base_url = validate_base_url(config.backend.base_url)
    except ConfigurationError:
        console.print("[red][ERROR][/red] API base URL not configured or not HTTP")
        console.print(f"[dim]Set API_BASE_URL or backend.base_url in {CONFIG_FILE}[/dim]")
        return False
    console.print(f"[green]Backend[/green] {base_url}")
    if not config.is_production:
        console.print(f"[yellow]Environment:[/yellow] {config.gateway.environment} (error details exposed)")
    return True


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Mixed-Content Gateway[/bold cyan]

Forwards same-origin HTTPS calls from the browser to a plain-HTTP backend.

[bold]Usage:[/bold]
    mixed-content-gateway                 Start with live dashboard
    mixed-content-gateway --no-dashboard  Start headless (file log only)
    mixed-content-gateway --check         Check backend configuration
    mixed-content-gateway --config        Show config location
    mixed-content-gateway --help          Show this help

[bold]Configuration:[/bold]
    API_BASE_URL (or API_URL)   Backend base, must start with http://
    GATEWAY_ENV                 production (default) hides error details
    GATEWAY_DEBUG_CONTEXT       1 to attach debug context to error bodies
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
