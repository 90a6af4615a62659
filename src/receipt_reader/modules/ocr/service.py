from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import PurePath

import httpx

from receipt_reader.core.logging import get_logger, log_event, monotonic_ms
from receipt_reader.modules.ocr.backends import DocumentKind, VisionBackend, get_backend
from receipt_reader.modules.ocr.config import BACKEND_PRIORITY, OcrConfig
from receipt_reader.modules.ocr.errors import BackendError, ConfigurationError
from receipt_reader.modules.ocr.odometer import parse_odometer_reading
from receipt_reader.modules.ocr.parsing import parse_receipt_text
from receipt_reader.modules.ocr.prompts import Template, build_prompt
from receipt_reader.modules.ocr.schemas import (
    BackendOut,
    ExtractionResult,
    OdometerResult,
    VerifyKeyOut,
)
from receipt_reader.modules.ocr.selection import backend_capabilities, select_backend

logger = get_logger(__name__)

ALLOWED_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".pdf"})

INVALID_FILE_TYPE_ERROR = "Invalid file type. Only JPG, PNG, GIF, and PDF files are allowed."


def is_allowed_file(filename: str | None) -> bool:
    return PurePath(filename or "").suffix.lower() in ALLOWED_EXTENSIONS


def document_kind_for(filename: str | None) -> DocumentKind:
    return "pdf" if PurePath(filename or "").suffix.lower() == ".pdf" else "image"


@dataclass(frozen=True)
class ExtractionRequest:
    document: bytes
    kind: DocumentKind
    template: Template | str | None = None
    backend: str | None = None


class ReceiptExtractor:
    """Single-file pipeline: pick a backend, prompt it once, parse its answer."""

    def __init__(self, config: OcrConfig, *, client: httpx.Client | None = None) -> None:
        self.config = config
        self._client = client

    def resolve_backend(self, kind: DocumentKind, requested: str | None) -> VisionBackend:
        name = select_backend(
            kind, requested or self.config.default_backend, backend_capabilities(self.config)
        )
        return get_backend(name, self.config, client=self._client)

    def extract(self, request: ExtractionRequest) -> ExtractionResult:
        start = time.monotonic()
        template = Template.parse(request.template or self.config.default_template)
        requested = request.backend or self.config.default_backend
        backend_name: str | None = None
        try:
            backend = self.resolve_backend(request.kind, requested)
            backend_name = backend.name
            raw_text = backend.extract(request.document, request.kind, build_prompt(template))
        except (ConfigurationError, BackendError) as e:
            log_event(
                logger,
                "ocr.extract.finish",
                status="failed",
                kind=request.kind,
                template=template.value,
                requested=requested,
                backend=backend_name,
                error_type=type(e).__name__,
                duration_ms=monotonic_ms(start),
            )
            return ExtractionResult(success=False, backend=backend_name, error=str(e))

        parsed = parse_receipt_text(raw_text)
        log_event(
            logger,
            "ocr.extract.finish",
            status="success",
            kind=request.kind,
            template=template.value,
            requested=requested,
            backend=backend_name,
            parse_method=parsed.method,
            fields=sorted(parsed.fields.populated()) or None,
            duration_ms=monotonic_ms(start),
        )
        return ExtractionResult(
            success=True,
            backend=backend_name,
            raw_text=raw_text,
            fields=parsed.fields,
            warning=parsed.note,
        )

    def read_odometer(
        self, document: bytes, *, kind: DocumentKind = "image", backend: str | None = None
    ) -> OdometerResult:
        start = time.monotonic()
        requested = backend or self.config.default_backend
        backend_name: str | None = None
        try:
            vision = self.resolve_backend(kind, requested)
            backend_name = vision.name
            raw_text = vision.extract(document, kind, build_prompt(Template.ODOMETER))
        except (ConfigurationError, BackendError) as e:
            log_event(
                logger,
                "odometer.extract.finish",
                status="failed",
                requested=requested,
                backend=backend_name,
                error_type=type(e).__name__,
                duration_ms=monotonic_ms(start),
            )
            return OdometerResult(success=False, backend=backend_name, error=str(e))

        result = parse_odometer_reading(raw_text)
        log_event(
            logger,
            "odometer.extract.finish",
            status="success" if result.success else "failed",
            requested=requested,
            backend=backend_name,
            duration_ms=monotonic_ms(start),
        )
        return result.model_copy(update={"backend": backend_name})

    def list_backends(self) -> list[BackendOut]:
        caps = backend_capabilities(self.config)
        out: list[BackendOut] = []
        for name in BACKEND_PRIORITY:
            backend = get_backend(name, self.config)
            out.append(
                BackendOut(
                    name=name,
                    label=backend.label,
                    supports_image=caps[name].supports_image,
                    supports_pdf=caps[name].supports_pdf,
                    has_credential=caps[name].has_credential,
                    is_default=name == self.config.default_backend,
                )
            )
        return out

    def verify_api_key(self, backend: str, api_key: str) -> VerifyKeyOut:
        """Check a candidate key with one lightweight provider call."""
        vision = get_backend(backend, self.config, client=self._client)
        if not api_key or not api_key.strip():
            return VerifyKeyOut(success=False, message="API key is required for this OCR method")
        try:
            vision.verify(api_key.strip())
        except BackendError as e:
            log_event(
                logger,
                "ocr.backend.verify",
                backend=vision.name,
                status="failed",
                status_code=e.status_code,
            )
            return VerifyKeyOut(
                success=False, message=f"Invalid {vision.label} API key or API error"
            )
        log_event(logger, "ocr.backend.verify", backend=vision.name, status="success")
        return VerifyKeyOut(success=True, message=f"{vision.name} API key is valid")
