from __future__ import annotations

import logging

import receipt_reader.models  # noqa: F401
from receipt_reader.core.config import settings
from receipt_reader.core.db import engine
from receipt_reader.core.logging import get_logger, log_event
from receipt_reader.core.models import Base
from receipt_reader.modules.ocr.config import OcrConfig

logger = get_logger(__name__)


def bootstrap() -> None:
    if settings.environment == "dev" and str(settings.database_url).startswith("sqlite"):
        Base.metadata.create_all(engine)

    config = OcrConfig.from_settings(settings)
    configured = config.configured_backends()
    log_event(
        logger,
        "ocr.config.loaded",
        default_backend=config.default_backend,
        default_template=config.default_template,
        configured_backends=configured,
    )
    if not configured:
        log_event(
            logger,
            "ocr.config.no_backends",
            level=logging.WARNING,
            hint="Set GEMINI_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY or OPENROUTER_API_KEY",
        )
