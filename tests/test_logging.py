"""Tests for the dashboard and log files."""

import json

from core.config import Config
from ui import log_utils
from ui.dashboard import Dashboard


def _render_logs(strategy="direct"):
    return sorted((log_utils.LOG_ROOT / "renders" / strategy).glob("*.json"))


def test_render_log_written_in_debug_with_redaction():
    dashboard = Dashboard(Config(server={"debug": True}), live=False)

    dashboard.log_render(
        "direct",
        "https://example.com/",
        200,
        12.34,
        content_type="text/html; charset=utf-8",
        headers={"Cookie": "session=abcdefghijklmnop", "Authorization": "short", "Accept": "*/*"},
    )

    (path,) = _render_logs()
    payload = json.loads(path.read_text())
    assert payload["url"] == "https://example.com/"
    assert payload["elapsed_ms"] == 12.3
    assert payload["headers"] == {
        "Cookie": "sessio...mnop",
        "Authorization": "***",
        "Accept": "*/*",
    }
    assert "DIRECT: https://example.com/ status=200" in log_utils.CLI_LOG_FILE.read_text()


def test_render_log_skipped_without_debug():
    dashboard = Dashboard(Config(), live=False)

    dashboard.log_render("browser", "https://example.com/", 200, 1.0, content_type="text/html")

    assert _render_logs("browser") == []
    assert "BROWSER: https://example.com/" in log_utils.CLI_LOG_FILE.read_text()


def test_errors_and_warnings_reach_cli_log():
    dashboard = Dashboard(Config(), live=False)

    dashboard.log_error("direct", 404, "DNS_NOT_FOUND https://[weird].example: boom")
    dashboard.log_warning("Could not close page", error="page close failed")

    text = log_utils.CLI_LOG_FILE.read_text()
    assert "ERROR: DNS_NOT_FOUND https://[weird].example: boom route=direct status=404" in text
    assert "WARN: Could not close page error=page close failed" in text


def test_render_logs_are_pruned(monkeypatch):
    monkeypatch.setattr(log_utils, "MAX_RENDER_LOGS", 3)

    for i in range(5):
        log_utils.write_render_log("direct", f"https://example.com/{i}", 200, 1.0, content_type="text/html")

    logs = _render_logs()
    assert len(logs) == 3
    assert "https://example.com/4" in {json.loads(log.read_text())["url"] for log in logs}


def test_clear_logs_keeps_cli_log():
    log_utils.write_render_log("direct", "https://example.com/", 200, 1.0, content_type="text/html")
    log_utils.write_cli_log("STARTUP", "Proxy started", port=10000)

    log_utils.clear_logs()

    assert _render_logs() == []
    assert "STARTUP: Proxy started port=10000" in log_utils.CLI_LOG_FILE.read_text()
