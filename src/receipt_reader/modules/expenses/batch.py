from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from receipt_reader.core.logging import get_logger, log_event, log_exception, monotonic_ms
from receipt_reader.core.storage import ReceiptStore, receipt_key
from receipt_reader.modules.expenses.schemas import BatchItemResult, ExpenseRecord
from receipt_reader.modules.expenses.service import ExpenseRepository
from receipt_reader.modules.ocr.schemas import ExtractionResult
from receipt_reader.modules.ocr.service import (
    INVALID_FILE_TYPE_ERROR,
    ExtractionRequest,
    ReceiptExtractor,
    document_kind_for,
    is_allowed_file,
)

logger = get_logger(__name__)

DEFAULT_TYPE = "Other"
DEFAULT_VENDOR = "Unknown Vendor"
DEFAULT_LOCATION = "Unknown Location"


class ValidationError(ValueError):
    """A mapped expense still lacks a required field after defaults were applied."""


@dataclass(frozen=True)
class UploadedFile:
    """An uploaded receipt; `reader` defers reading the body until the file is processed."""

    filename: str
    body: bytes = b""
    reader: Callable[[], bytes] | None = None

    def read(self) -> bytes:
        return self.reader() if self.reader is not None else self.body


@dataclass(frozen=True)
class BatchContext:
    trip_name: str
    backend: str | None = None
    template: str | None = None


class BatchCoordinator:
    """
    Turns a set of uploaded receipts into expenses, one file at a time.

    Each file moves through uploading -> extracting -> mapping -> persisting. Whatever
    goes wrong with one file is recorded on its own result; the remaining files are
    still processed, so the output always has one entry per input file.
    """

    def __init__(
        self,
        extractor: ReceiptExtractor,
        repository: ExpenseRepository,
        *,
        store: ReceiptStore | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._extractor = extractor
        self._repository = repository
        self._store = store
        self._today = today

    def process(
        self, files: Iterable[UploadedFile], context: BatchContext
    ) -> list[BatchItemResult]:
        start = time.monotonic()
        results: list[BatchItemResult] = []
        for index, upload in enumerate(files):
            results.append(self.process_file(upload, context, index=index))
        log_event(
            logger,
            "batch.finish",
            trip_name=context.trip_name,
            file_count=len(results),
            succeeded=sum(1 for r in results if r.status == "success"),
            failed=sum(1 for r in results if r.status == "failed"),
            duration_ms=monotonic_ms(start),
        )
        return results

    def process_file(
        self, upload: UploadedFile, context: BatchContext, *, index: int = 0
    ) -> BatchItemResult:
        filename = upload.filename or ""
        state = "uploading"
        try:
            self._log_state(filename, index, state)
            if not is_allowed_file(filename):
                return self._failed(filename, index, state, INVALID_FILE_TYPE_ERROR)
            body = upload.read()

            receipt_path: str | None = None
            if self._store is not None:
                receipt_path = self._store.put(key=receipt_key(filename), body=body).key

            state = "extracting"
            self._log_state(filename, index, state)
            result = self._extractor.extract(
                ExtractionRequest(
                    document=body,
                    kind=document_kind_for(filename),
                    template=context.template,
                    backend=context.backend,
                )
            )
            if not result.success or result.fields is None:
                return self._failed(
                    filename, index, state, result.error or "OCR failed to extract data"
                )

            state = "mapping"
            self._log_state(filename, index, state)
            record = build_expense_record(
                result,
                filename=filename,
                trip_name=context.trip_name,
                receipt_path=receipt_path,
                today=self._today(),
            )

            state = "persisting"
            self._log_state(filename, index, state)
            expense_id = self._repository.create_expense(record)
        except Exception as e:
            log_exception(
                logger,
                "batch.file.error",
                filename=filename,
                index=index,
                state=state,
            )
            return self._failed(filename, index, state, str(e) or type(e).__name__)

        self._log_state(filename, index, "done", expense_id=expense_id)
        return BatchItemResult(filename=filename, status="success", expense_id=expense_id)

    def _failed(self, filename: str, index: int, state: str, error: str) -> BatchItemResult:
        log_event(
            logger,
            "batch.file.failed",
            filename=filename,
            index=index,
            state=state,
            error=error,
        )
        return BatchItemResult(filename=filename, status="failed", error=error)

    def _log_state(self, filename: str, index: int, state: str, **fields) -> None:
        log_event(logger, "batch.file.state", filename=filename, index=index, state=state, **fields)


def build_expense_record(
    result: ExtractionResult,
    *,
    filename: str,
    trip_name: str,
    receipt_path: str | None,
    today: date,
) -> ExpenseRecord:
    fields = result.fields
    if fields is None:
        raise ValidationError(f"No data extracted from {filename}")

    comments = fields.description or (result.raw_text or "")[:200]
    values = {
        "date": normalize_receipt_date(fields.date) or today.isoformat(),
        "cost": Decimal(str(fields.cost)) if fields.cost is not None else Decimal("0"),
        "type": fields.type or DEFAULT_TYPE,
        "vendor": fields.vendor or DEFAULT_VENDOR,
        "location": fields.location or DEFAULT_LOCATION,
        "trip_name": (trip_name or "").strip(),
    }
    missing = [key for key, value in values.items() if value is None or value == ""]
    if missing:
        raise ValidationError(
            f"Missing required fields extracted from {filename}: {', '.join(missing)}"
        )
    return ExpenseRecord(**values, comments=comments, receipt_path=receipt_path)


def normalize_receipt_date(raw: str | None) -> str | None:
    """ISO-format a receipt date when its format is recognizable, else keep it as read."""
    if not raw:
        return None
    s = str(raw).strip()
    if not s:
        return None
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%d %b %Y", "%d %B %Y", "%b %d, %Y", "%B %d, %Y"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    # 12/31/2025 or 31/12/2025 (month first when ambiguous)
    m = re.fullmatch(r"([0-9]{1,2})[/\-.]([0-9]{1,2})[/\-.]([0-9]{4})", s)
    if m:
        a, b, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        for month, day in ((a, b), (b, a)):
            try:
                return date(year, month, day).isoformat()
            except ValueError:
                continue
    return s
