from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from receipt_reader.core.logging import get_logger, log_event
from receipt_reader.modules.ocr.backends import BACKENDS, DocumentKind
from receipt_reader.modules.ocr.config import BACKEND_LABELS, BACKEND_PRIORITY, OcrConfig
from receipt_reader.modules.ocr.errors import ConfigurationError, NoCapableBackendError

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackendCapability:
    supports_image: bool
    supports_pdf: bool
    has_credential: bool


def backend_capabilities(config: OcrConfig) -> dict[str, BackendCapability]:
    return {
        name: BackendCapability(
            supports_image=BACKENDS[name].supports_image,
            supports_pdf=BACKENDS[name].supports_pdf,
            has_credential=config.has_credential(name),
        )
        for name in BACKEND_PRIORITY
    }


def select_backend(
    kind: DocumentKind,
    requested: str | None,
    capabilities: Mapping[str, BackendCapability],
) -> str:
    """
    Resolve the backend that will actually read the document.

    Images go to the requested backend unchanged. PDFs need a vision backend with a
    key; when the requested one can't serve, the first configured backend in
    `BACKEND_PRIORITY` is used instead.
    """
    method = (requested or "").strip().lower()

    if kind == "pdf":
        cap = capabilities.get(method)
        if cap and cap.supports_pdf and cap.has_credential:
            log_event(logger, "ocr.backend.selected", backend=method, kind=kind)
            return method
        for name in BACKEND_PRIORITY:
            cap = capabilities.get(name)
            if cap and cap.supports_pdf and cap.has_credential:
                log_event(
                    logger,
                    "ocr.backend.fallback",
                    requested=method or None,
                    backend=name,
                    kind=kind,
                )
                return name
        providers = ", ".join(BACKEND_LABELS[name] for name in BACKEND_PRIORITY)
        raise NoCapableBackendError(
            f"No vision API ({providers}) configured for PDF processing. "
            f"Method '{method or requested}' cannot be used for PDFs. "
            "Please configure a vision API key in the settings page."
        )

    cap = capabilities.get(method)
    if cap is None or not cap.supports_image:
        raise ConfigurationError(
            f"Unsupported OCR method for image: {requested}. "
            "Only Gemini, OpenAI, Claude, and OpenRouter are supported."
        )
    if not cap.has_credential:
        raise ConfigurationError(
            f"No API key configured for {method}. Please set your API key in the settings page."
        )
    log_event(logger, "ocr.backend.selected", backend=method, kind=kind)
    return method
