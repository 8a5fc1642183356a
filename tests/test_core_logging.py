from __future__ import annotations

import logging
import logging.handlers

from core import logging as core_logging


def test_file_sink_receives_records_and_detaches(tmp_path) -> None:
    log_path = tmp_path / "logs" / "dashboard.log"

    try:
        assert core_logging.enable_file_logging(log_path) == log_path
        assert core_logging.enable_file_logging(log_path) == log_path
        core_logging.log_stream_event("Incoming", "opened", "ws://backend/ws/detections")
    finally:
        core_logging.disable_file_logging()

    text = log_path.read_text(encoding="utf-8")
    assert text.count("opened (ws://backend/ws/detections)") == 1
    assert not any(
        isinstance(handler, logging.handlers.QueueHandler)
        for handler in core_logging.logger.handlers
    )


def test_set_level_accepts_names_and_falls_back_to_info(monkeypatch) -> None:
    monkeypatch.setattr(core_logging.logger, "level", core_logging.logger.level)

    core_logging.set_level("debug")
    assert core_logging.logger.level == logging.DEBUG

    core_logging.set_level("chatty")
    assert core_logging.logger.level == logging.INFO


def test_setup_logging_attaches_console_handler_once() -> None:
    core_logging.setup_logging()

    names = [handler.get_name() for handler in core_logging.logger.handlers]
    assert names.count("dashboard-console") == 1
