"""Logging for stream, mode and render events.

Console output goes through Rich when it is installed. A file sink can be
attached at runtime; records are handed to it through a queue so the event
loop never waits on disk I/O.
"""

from __future__ import annotations

import atexit
from dataclasses import dataclass
import importlib
import importlib.util
import logging
import logging.handlers
from pathlib import Path
import queue
from typing import Any

LOGGER_NAME = "detection_dashboard"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

if importlib.util.find_spec("rich") is not None:
    RichHandler = importlib.import_module("rich.logging").RichHandler
    Text = importlib.import_module("rich.text").Text
    console = importlib.import_module("rich.console").Console(stderr=True)
else:
    RichHandler = None
    Text = None
    console = None


def _console_handler() -> logging.Handler:
    if RichHandler is not None:
        handler: logging.Handler = RichHandler(
            console=console, rich_tracebacks=True, show_path=False
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(message)s"))
    handler.set_name("dashboard-console")
    return handler


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Return the dashboard logger, attaching the console handler once."""

    dashboard_logger = logging.getLogger(LOGGER_NAME)
    dashboard_logger.setLevel(level)
    if not any(h.get_name() == "dashboard-console" for h in dashboard_logger.handlers):
        dashboard_logger.addHandler(_console_handler())
    dashboard_logger.propagate = False
    return dashboard_logger


logger = setup_logging()


def set_level(level_name: str) -> None:
    """Apply a level name such as ``DEBUG`` to the dashboard logger."""

    level = logging.getLevelName(str(level_name).upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)


@dataclass
class _FileSink:
    path: Path
    handler: logging.handlers.QueueHandler
    listener: logging.handlers.QueueListener


_file_sink: _FileSink | None = None


def disable_file_logging() -> None:
    """Detach the file sink and flush whatever it still holds."""

    global _file_sink

    sink, _file_sink = _file_sink, None
    if sink is None:
        return
    logger.removeHandler(sink.handler)
    sink.listener.stop()
    sink.listener.handlers[0].close()


def enable_file_logging(log_path: Path) -> Path:
    """Mirror dashboard records into ``log_path`` and return the resolved path.

    Calling it again with the same path is a no-op; a different path replaces
    the previous sink.
    """

    global _file_sink

    log_path = Path(log_path).expanduser()
    if _file_sink is not None and _file_sink.path == log_path:
        return log_path
    disable_file_logging()

    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    records: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = logging.handlers.QueueHandler(records)
    listener = logging.handlers.QueueListener(records, file_handler)
    listener.start()
    logger.addHandler(queue_handler)
    _file_sink = _FileSink(path=log_path, handler=queue_handler, listener=listener)
    return log_path


atexit.register(disable_file_logging)


def _format_text(message: str, style: str) -> Any:
    if Text is None:
        return message
    return Text(message, style=style)


def log_stream_event(direction: str, name: str, detail: str = "") -> None:
    """Log one stream-level event such as an open, close or dropped payload."""

    stream_emojis = {
        "opened": "🔌",
        "closed": "🔒",
        "errored": "❌",
        "message": "📥",
        "dropped": "🗑️",
        "reconnect": "🔁",
        "exhausted": "⛔",
    }
    emoji = stream_emojis.get(name, "❓")
    icon = "⬆️ - Out" if direction == "Outgoing" else "⬇️ - In"
    style = "bold cyan" if direction == "Outgoing" else "bold green"
    suffix = f" ({detail})" if detail else ""
    logger.info(_format_text(f"{emoji} {icon} {name}{suffix}", style=style))


def log_mode_transition(previous: Any, new: Any, reason: str | None = None) -> None:
    previous_value = getattr(previous, "value", previous)
    new_value = getattr(new, "value", new)
    suffix = f" ({reason})" if reason else ""
    logger.info(
        _format_text(f"🔀 Mode transition: {previous_value} -> {new_value}{suffix}", "bold magenta")
    )


def log_connection_transition(previous: Any, new: Any, attempts: int) -> None:
    previous_value = getattr(previous, "value", previous)
    new_value = getattr(new, "value", new)
    logger.info(
        _format_text(
            f"Stream connection: {previous_value} -> {new_value} (attempts={attempts})",
            "bold blue",
        )
    )


def log_error(message: str) -> None:
    logger.error(_format_text(message, style="bold red"))


def log_info(message: str, style: str = "bold white") -> None:
    logger.info(_format_text(message, style=style))


def log_warning(message: str) -> None:
    logger.warning(_format_text(message, style="bold yellow"))
