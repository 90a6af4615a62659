from __future__ import annotations

import json
import logging

from receipt_reader.core.logging import JsonFormatter, get_logger, log_event


class _Capture(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def test_log_event_masks_credentials_and_drops_empty_fields() -> None:
    logger = get_logger("receipt_reader.tests.logging")
    capture = _Capture()
    logger.addHandler(capture)
    try:
        log_event(logger, "ocr.backend.verify", backend="openai", api_key="sk-live", status=None)
    finally:
        logger.removeHandler(capture)

    record = capture.records[0]
    assert record.fields == {"backend": "openai", "api_key": "***"}

    line = json.loads(JsonFormatter().format(record))
    assert line["event"] == "ocr.backend.verify"
    assert line["api_key"] == "***"
    assert "sk-live" not in json.dumps(line)
