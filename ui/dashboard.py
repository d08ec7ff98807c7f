"""Real-time CLI dashboard for gateway monitoring."""

from datetime import datetime
from pathlib import Path
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from core.request_types import ErrorRecord, ProxyRequest
from ui.log_utils import LogObserver, format_error

console = Console()

STRATEGIES = ("raw", "envelope", "unparseable", "unauthorized", "error")


class RequestInfo:
    """Info about a single request."""

    def __init__(self, method: str, path: str, timestamp: datetime):
        self.method = method
        self.path = path[:60] + "..." if len(path) > 60 else path
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard showing recent requests and response strategies."""

    def __init__(self, config: Config, log_file: Path | None = None):
        self.config = config
        self._lock = Lock()
        self._log = LogObserver(log_file)
        self._recent: list[RequestInfo] = []
        self._max_recent = 8
        self._request_count = 0
        self._strategy_count = dict.fromkeys(STRATEGIES, 0)
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def request_received(self, request: ProxyRequest) -> None:
        with self._lock:
            self._request_count += 1
            self._recent.insert(0, RequestInfo(request.method, f"/{request.path}", datetime.now()))
            self._recent = self._recent[: self._max_recent]
            self._refresh()
        self._log.request_received(request)

    def backend_call_issued(self, method: str, url: str) -> None:
        self._log.backend_call_issued(method, url)

    def response_classified(self, status: int, strategy: str) -> None:
        with self._lock:
            self._strategy_count[strategy] = self._strategy_count.get(strategy, 0) + 1
            self._refresh()
        self._log.response_classified(status, strategy)

    def error_classified(self, record: ErrorRecord) -> None:
        with self._lock:
            message = format_error(record)
            truncated = message[:50] + "..." if len(message) > 50 else message
            self._errors.insert(0, truncated)
            self._errors = self._errors[:3]
            self._refresh()
        self._log.error_classified(record)

    @property
    def request_count(self) -> int:
        return self._request_count

    def strategy_count(self, strategy: str) -> int:
        return self._strategy_count.get(strategy, 0)

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=5),
        )

        layout["body"].split_row(
            Layout(name="strategies", ratio=1),
            Layout(name="recent", ratio=2),
        )

        layout["header"].update(self._build_header())
        layout["strategies"].update(self._build_strategies_panel())
        layout["recent"].update(self._build_recent_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        backend = self.config.backend.base_url or "unset"
        stats = Text()
        stats.append("Mixed-Content Gateway", style="bold cyan")
        stats.append("  |  ")
        stats.append(f"Requests: {self._request_count}", style="blue")
        stats.append("  |  ")
        stats.append(f"Backend: {backend}", style="magenta")
        stats.append("  |  ")
        stats.append(f"Port: {self.config.server.port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_strategies_panel(self) -> Panel:
        """Build response strategy counters."""
        content = Table.grid(padding=(0, 1))
        content.add_column()
        content.add_column(justify="right")
        for strategy in STRATEGIES:
            content.add_row(f"[bold]{strategy}[/bold]", str(self._strategy_count[strategy]))

        return Panel(content, title="[blue]Responses[/blue]", border_style="blue")

    def _build_recent_panel(self) -> Panel:
        """Build recent requests panel."""
        if self._recent:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Method", width=7)
            table.add_column("Path", ratio=2)

            for info in self._recent:
                table.add_row(info.timestamp.strftime("%H:%M:%S"), info.method, info.path)

            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[magenta]Recent[/magenta]", border_style="magenta")

    def _build_footer(self) -> Panel:
        """Build footer with errors and help."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            prefix = self.config.gateway.route_prefix
            content = Text(
                f"Point the browser at http://localhost:{self.config.server.port}{prefix}/...",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
