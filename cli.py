"""CLI entry point for embed-proxy."""

import sys
from datetime import datetime

from rich.console import Console

from app import create_app
from core.config import config_path, load_config
from core.exceptions import ConfigurationError
from ui.dashboard import Dashboard
from ui.log_utils import clear_logs, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    try:
        config = load_config()
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {e}")
        sys.exit(1)

    args = sys.argv[1:]
    if "--help" in args or "-h" in args:
        _print_help()
        return

    if "--config" in args:
        console.print(f"[bold]Config:[/bold] {config_path()}")
        console.print_json(config.model_dump_json())
        return

    plain = "--plain" in args

    clear_logs()
    dashboard = Dashboard(config, live=not plain)

    import uvicorn

    app = create_app(config, dashboard)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",
        timeout_keep_alive=config.server.keep_alive_timeout,
    )
    server = uvicorn.Server(uvicorn_config)

    _print_banner(config)
    dashboard.start()
    start_time = datetime.now()
    write_cli_log(
        "STARTUP",
        "Proxy started",
        port=config.server.port,
        strategy=config.strategy,
        browser_mode=config.browser.mode,
    )
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        dashboard.stop()


def _print_banner(config):
    """Print startup summary."""
    port = config.server.port
    throttle = config.throttle
    console.print(f"[bold cyan]Embed Proxy[/bold cyan] on port {port} ({config.server.environment})")
    console.print(f"  Health:   http://localhost:{port}/health")
    if config.direct_enabled:
        console.print(f"  Proxy:    http://localhost:{port}/proxy?url=<TARGET_URL>")
    if config.browser_enabled:
        console.print(
            f"  Learn:    http://localhost:{port}/learn?url=<TARGET_URL> "
            f"[dim](browser: {config.browser.mode})[/dim]"
        )
    if throttle.enabled:
        console.print(f"  Throttle: enabled ({throttle.min_ms}-{throttle.max_ms}ms)")
    else:
        console.print("  Throttle: disabled")


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Embed Proxy[/bold cyan]

Fetches third-party pages for embedding in an iframe, either directly with
browser-like headers (/proxy) or rendered in headless Chromium (/learn).

[bold]Usage:[/bold]
    embed-proxy              Start with live dashboard
    embed-proxy --plain      Start with plain console logging
    embed-proxy --config     Show config location and effective settings
    embed-proxy --help       Show this help

[bold]Environment:[/bold]
    PORT, ENVIRONMENT, PUBLIC_BASE_URL, RENDER_STRATEGY (direct|browser|both),
    BROWSER_MODE (persistent|per_request), NAVIGATION_TIMEOUT_MS,
    FETCH_TIMEOUT_SECONDS, THROTTLE_ENABLED, THROTTLE_MIN_MS, THROTTLE_MAX_MS,
    EMBED_PROXY_CONFIG (config file path)
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
