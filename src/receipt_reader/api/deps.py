from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from receipt_reader.core.config import settings
from receipt_reader.core.db import db_session
from receipt_reader.core.storage import ReceiptStore, get_storage
from receipt_reader.modules.expenses.service import ExpenseRepository, SqlExpenseRepository
from receipt_reader.modules.ocr.config import OcrConfig
from receipt_reader.modules.ocr.service import ReceiptExtractor


def get_ocr_config() -> OcrConfig:
    return OcrConfig.from_settings(settings)


def get_extractor(config: OcrConfig = Depends(get_ocr_config)) -> ReceiptExtractor:
    return ReceiptExtractor(config)


def get_expense_repository(session: Session = Depends(db_session)) -> ExpenseRepository:
    return SqlExpenseRepository(session)


def get_receipt_store() -> ReceiptStore:
    return get_storage()
