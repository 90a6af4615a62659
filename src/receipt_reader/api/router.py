from __future__ import annotations

from fastapi import APIRouter

from receipt_reader.modules.expenses.api import router as expenses_router
from receipt_reader.modules.ocr.api import router as ocr_router

router = APIRouter()

router.include_router(ocr_router, prefix="/api")
router.include_router(expenses_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
