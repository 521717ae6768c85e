import asyncio
import json
import logging

from pixelchain.domain.entities.log_event import LogEvent
from pixelchain.infrastructure.config import Settings
from pixelchain.infrastructure.logging.event_log import (
    EventLineFormatter,
    EventLogSink,
    JSONFormatter,
    setup_logging,
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def make_event(**overrides):
    data = dict(
        level="info",
        user="alice@example.com",
        endpoint="/images/process",
        duration_ms=12.5,
        result="success",
        params={"type": "resize"},
        timestamp="2024-01-01T00:00:00+00:00",
    )
    data.update(overrides)
    return LogEvent(**data)


def test_to_dict_omits_missing_message():
    assert "message" not in make_event().to_dict()
    assert make_event(message="boom").to_dict()["message"] == "boom"


def test_to_line():
    line = make_event(level="error", result="error", message="boom").to_line()
    assert line == (
        "[2024-01-01T00:00:00+00:00] [ERROR] User: alice@example.com, "
        "Endpoint: /images/process, Duration: 12.5ms, Result: error, Message: boom"
    )


def test_sink_routes_level_and_payload():
    logger = logging.getLogger("tests.events")
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    handler = ListHandler()
    logger.addHandler(handler)
    try:
        sink = EventLogSink(logger)
        asyncio.run(sink.log(make_event()))
        asyncio.run(sink.log(make_event(level="error", result="error", message="bad width")))
    finally:
        logger.removeHandler(handler)

    info, error = handler.records
    assert info.levelno == logging.INFO
    assert error.levelno == logging.ERROR
    assert json.loads(JSONFormatter().format(error))["message"] == "bad width"
    assert EventLineFormatter().format(info).startswith("[2024-01-01T00:00:00+00:00] [INFO]")


def test_json_formatter_plain_record():
    record = logging.LogRecord("pixelchain.x", logging.WARNING, __file__, 1, "hello %s", ("there",), None)
    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "hello there"
    assert payload["level"] == "warning"


def test_setup_logging_writes_json_file(tmp_path):
    settings = Settings(log_dir=str(tmp_path / "logs"))
    setup_logging(settings)
    sink = EventLogSink()
    asyncio.run(sink.log(make_event()))
    for handler in logging.getLogger("pixelchain").handlers:
        handler.flush()
    lines = (tmp_path / "logs" / "app.log").read_text().splitlines()
    assert json.loads(lines[-1])["user"] == "alice@example.com"
