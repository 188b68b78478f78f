"""Shared logging utilities."""

import json
import shutil
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "proxy.log"

MAX_RENDER_LOGS = 200
SENSITIVE_HEADERS = ("cookie", "authorization", "proxy-authorization")


def write_render_log(
    strategy: str,
    url: str,
    status: int,
    elapsed_ms: float,
    *,
    content_type: str,
    headers: Mapping[str, str] | None = None,
    log_root: Path | None = None,
) -> Path:
    """Write a single render log entry, keeping only the most recent files."""
    folder = (log_root or LOG_ROOT) / "renders" / strategy
    _prune_folder(folder, keep=MAX_RENDER_LOGS - 1)

    payload = {
        "timestamp": _utc_now(),
        "strategy": strategy,
        "url": url,
        "status": status,
        "elapsed_ms": round(elapsed_ms, 1),
        "content_type": content_type,
        "headers": _redact_headers(dict(headers or {})),
    }
    return _write_json(folder, payload)


def write_cli_log(
    level: str,
    message: str,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    CLI_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with CLI_LOG_FILE.open("a") as f:
        f.write(line)


def clear_logs(log_root: Path | None = None) -> None:
    """Remove render logs from a previous run; the CLI log is kept."""
    shutil.rmtree((log_root or LOG_ROOT) / "renders", ignore_errors=True)


def _prune_folder(folder: Path, keep: int) -> int:
    """Delete all but the `keep` most recent log files in a folder."""
    if not folder.exists():
        return 0

    files = sorted(folder.glob("*.json"))
    if len(files) <= keep:
        return 0

    deleted = 0
    # Filenames start with a timestamp, so sorted order is oldest first
    for old_file in files[: len(files) - keep]:
        try:
            old_file.unlink()
            deleted += 1
        except OSError:
            pass
    return deleted


def _write_json(folder: Path, payload: dict[str, Any]) -> Path:
    """Write payload to a unique JSON file in the given folder."""
    folder.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S.%fZ")
    file_path = folder / f"{timestamp}_{uuid4().hex}.json"
    file_path.write_text(json.dumps(payload, indent=2, default=str))
    return file_path


def _redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers."""
    redacted = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = _mask(value)
        else:
            redacted[key] = value
    return redacted


def _mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()
