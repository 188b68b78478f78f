"""Real-time CLI dashboard for proxy monitoring."""

from collections.abc import Mapping
from datetime import datetime
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from ui.log_utils import write_cli_log, write_render_log

console = Console()


class RenderInfo:
    """Info about a single completed render."""

    def __init__(
        self,
        strategy: str,
        url: str,
        status: int,
        elapsed_ms: float,
        content_type: str,
        timestamp: datetime,
    ):
        self.strategy = strategy
        self.url = url[:70] + "..." if len(url) > 70 else url
        self.status = status
        self.elapsed_ms = elapsed_ms
        self.content_type = content_type.split(";", 1)[0]
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard showing recent renders and errors.

    With ``live=False`` nothing is drawn; log lines go straight to the console.
    """

    def __init__(self, config: Config, live: bool = True):
        self.config = config
        self._live_enabled = live
        self._lock = Lock()
        self._renders: list[RenderInfo] = []
        self._max_renders = 10
        self._request_count = {"direct": 0, "browser": 0, "errors": 0}
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        if not self._live_enabled:
            return self
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

    def log_render(
        self,
        strategy: str,
        url: str,
        status: int,
        elapsed_ms: float,
        *,
        content_type: str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Log a successful render."""
        with self._lock:
            self._request_count[strategy] = self._request_count.get(strategy, 0) + 1
            self._renders.insert(
                0,
                RenderInfo(strategy, url, status, elapsed_ms, content_type, datetime.now()),
            )
            self._renders = self._renders[: self._max_renders]
            self._refresh()

            if self.config.server.debug:
                write_render_log(
                    strategy,
                    url,
                    status,
                    elapsed_ms,
                    content_type=content_type,
                    headers=headers,
                )
            write_cli_log(
                strategy.upper(),
                url,
                status=status,
                ms=f"{elapsed_ms:.0f}",
                type=content_type,
            )
            self._echo(f"[green]{strategy}[/green] {status} {escape(url)} [dim]{elapsed_ms:.0f}ms[/dim]")

    def log_error(self, route: str, status: int, message: str) -> None:
        """Log an error."""
        with self._lock:
            self._request_count["errors"] += 1
            truncated = message[:80] + "..." if len(message) > 80 else message
            self._errors.insert(0, f"{route} {status}: {truncated}")
            self._errors = self._errors[:3]
            self._refresh()
            write_cli_log("ERROR", message[:200], route=route, status=status)
            self._echo(f"[red]{route} {status}[/red] {escape(message[:200])}")

    def log_warning(self, message: str, **extra: object) -> None:
        """Log a non-fatal problem (cleanup failures, skipped rewrites)."""
        write_cli_log("WARN", message, **extra)
        self._echo(f"[yellow]warn[/yellow] {escape(message)}")

    def _echo(self, markup: str) -> None:
        if not self._live_enabled:
            console.print(markup)

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

        layout["header"].update(self._build_header())
        layout["body"].update(self._build_renders_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        stats = Text()
        stats.append("Embed Proxy", style="bold cyan")
        stats.append("  |  ")
        stats.append(f"Direct: {self._request_count['direct']}", style="blue")
        stats.append("  |  ")
        stats.append(f"Browser: {self._request_count['browser']}", style="magenta")
        stats.append("  |  ")
        stats.append(f"Errors: {self._request_count['errors']}", style="red")
        stats.append("  |  ")
        stats.append(f"Port: {self.config.server.port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_renders_panel(self) -> Panel:
        """Build recent renders panel."""
        if self._renders:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Strategy", width=8)
            table.add_column("Status", width=6)
            table.add_column("URL", ratio=3)
            table.add_column("Type", ratio=1)
            table.add_column("ms", justify="right", width=7)

            for info in self._renders:
                table.add_row(
                    info.timestamp.strftime("%H:%M:%S"),
                    info.strategy,
                    str(info.status),
                    info.url,
                    info.content_type,
                    f"{info.elapsed_ms:.0f}",
                )

            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[blue]Recent renders[/blue]", border_style="blue")

    def _build_footer(self) -> Panel:
        """Build footer with errors and help."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            content = Text(
                f"Embed http://localhost:{self.config.server.port}/proxy?url=<TARGET_URL>",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
