from __future__ import annotations

import math
import re

from receipt_reader.core.logging import get_logger, log_event
from receipt_reader.modules.ocr.parsing import find_json_candidate, load_json_object
from receipt_reader.modules.ocr.schemas import OdometerResult

logger = get_logger(__name__)

READING_ALIASES: tuple[str, ...] = ("reading", "odometer", "value", "number", "text")

INVALID_READING_ERROR = "Could not extract a valid odometer reading from the image using AI."


def parse_odometer_reading(raw_text: str | None) -> OdometerResult:
    candidate = _reading_candidate(raw_text or "")
    reading = normalize_reading(candidate)
    if reading is None:
        log_event(logger, "odometer.parse.failed", candidate=candidate[:80])
        return OdometerResult(success=False, error=INVALID_READING_ERROR)
    log_event(logger, "odometer.parse.success", reading=reading)
    return OdometerResult(success=True, reading=reading)


def normalize_reading(candidate: str) -> float | None:
    """
    Turn a loosely formatted reading into a float.

    Everything except digits and dots is dropped. With several dots, the last one is
    the decimal point and the others are treated as grouping, so ``"1.234.5"`` reads
    as ``1234.5``. A trailing sentence dot is ignored.
    """
    cleaned = re.sub(r"[^0-9.]", "", candidate or "").rstrip(".")
    parts = cleaned.split(".")
    if len(parts) > 2:
        cleaned = "".join(parts[:-1]) + "." + parts[-1]
    if not any(ch.isdigit() for ch in cleaned):
        return None
    try:
        reading = float(cleaned)
    except ValueError:
        return None
    # A digit run too long for a float overflows to inf.
    return reading if math.isfinite(reading) else None


def _reading_candidate(raw_text: str) -> str:
    obj = load_json_object(find_json_candidate(raw_text))
    if obj is not None:
        for key in READING_ALIASES:
            value = obj.get(key)
            if value is None or value == "" or isinstance(value, (bool, dict, list)):
                continue
            return str(value)
    return raw_text
