from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from receipt_reader.api.deps import get_expense_repository, get_extractor, get_receipt_store
from receipt_reader.core.db import db_session
from receipt_reader.core.logging import get_logger, log_event
from receipt_reader.core.storage import ReceiptStore
from receipt_reader.modules.expenses.batch import BatchContext, BatchCoordinator, UploadedFile
from receipt_reader.modules.expenses.schemas import BatchResultOut, ExpenseOut
from receipt_reader.modules.expenses.service import ExpenseRepository, list_expenses
from receipt_reader.modules.ocr.service import ReceiptExtractor

router = APIRouter(tags=["expenses"])
logger = get_logger(__name__)


@router.post("/expenses/batch", response_model=BatchResultOut)
async def batch_process_receipts(
    receipts: list[UploadFile] = File(...),
    trip_name: str = Form(...),
    method: str | None = Form(None),
    template: str | None = Form(None),
    extractor: ReceiptExtractor = Depends(get_extractor),
    repository: ExpenseRepository = Depends(get_expense_repository),
    store: ReceiptStore = Depends(get_receipt_store),
) -> BatchResultOut:
    if not receipts:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No receipt files uploaded"
        )
    if not trip_name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Trip name is required")
    log_event(
        logger,
        "batch.received",
        trip_name=trip_name,
        file_count=len(receipts),
        method=method,
        template=template,
    )
    coordinator = BatchCoordinator(extractor, repository, store=store)
    context = BatchContext(trip_name=trip_name, backend=method or None, template=template or None)
    # Bodies are read lazily so only one receipt is held in memory at a time.
    files = [
        UploadedFile(filename=upload.filename or "", reader=upload.file.read)
        for upload in receipts
    ]
    results = await run_in_threadpool(coordinator.process, files, context)
    return BatchResultOut(message="Batch processing complete", results=results)


@router.get("/expenses", response_model=list[ExpenseOut])
def list_expenses_endpoint(
    trip_name: str | None = None,
    session: Session = Depends(db_session),
) -> list[ExpenseOut]:
    expenses = list_expenses(session, trip_name=trip_name)
    return [ExpenseOut.model_validate(e, from_attributes=True) for e in expenses]
