from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from receipt_reader.api.deps import get_extractor
from receipt_reader.core.logging import get_logger, log_event
from receipt_reader.modules.ocr.errors import ConfigurationError
from receipt_reader.modules.ocr.schemas import (
    BackendOut,
    ExtractionResponse,
    ExtractionResult,
    OdometerResult,
    VerifyKeyIn,
    VerifyKeyOut,
)
from receipt_reader.modules.ocr.service import (
    INVALID_FILE_TYPE_ERROR,
    ExtractionRequest,
    ReceiptExtractor,
    document_kind_for,
    is_allowed_file,
)

router = APIRouter(tags=["ocr"])
logger = get_logger(__name__)

_FORM_KEYS = ("date", "cost", "currency", "description", "type", "vendor", "location")


@router.post("/ocr/process", response_model=ExtractionResponse)
async def process_receipt(
    receipt: UploadFile = File(...),
    method: str | None = Form(None),
    template: str | None = Form(None),
    extractor: ReceiptExtractor = Depends(get_extractor),
) -> ExtractionResponse:
    filename = receipt.filename or ""
    if not is_allowed_file(filename):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_FILE_TYPE_ERROR)
    body = await receipt.read()
    log_event(
        logger,
        "upload.received",
        filename=filename,
        content_type=receipt.content_type,
        byte_size=len(body),
        method=method,
        template=template,
    )
    request = ExtractionRequest(
        document=body,
        kind=document_kind_for(filename),
        template=template or None,
        backend=method or None,
    )
    result = await run_in_threadpool(extractor.extract, request)
    return ExtractionResponse(**result.model_dump(), form_data=_form_data(result))


@router.post("/ocr/odometer", response_model=OdometerResult)
async def read_odometer(
    odometer_image: UploadFile = File(...),
    method: str | None = Form(None),
    extractor: ReceiptExtractor = Depends(get_extractor),
) -> OdometerResult:
    filename = odometer_image.filename or ""
    if not is_allowed_file(filename):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_FILE_TYPE_ERROR)
    body = await odometer_image.read()
    log_event(
        logger,
        "upload.received",
        filename=filename,
        content_type=odometer_image.content_type,
        byte_size=len(body),
        method=method,
        template="odometer",
    )
    return await run_in_threadpool(
        extractor.read_odometer, body, kind=document_kind_for(filename), backend=method or None
    )


@router.get("/ocr/backends", response_model=list[BackendOut])
def list_backends(extractor: ReceiptExtractor = Depends(get_extractor)) -> list[BackendOut]:
    return extractor.list_backends()


@router.post("/ocr/backends/{backend}/verify", response_model=VerifyKeyOut)
def verify_backend_key(
    backend: str,
    payload: VerifyKeyIn,
    extractor: ReceiptExtractor = Depends(get_extractor),
) -> VerifyKeyOut:
    try:
        return extractor.verify_api_key(backend, payload.api_key)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


def _form_data(result: ExtractionResult) -> dict[str, Any]:
    if not result.success or result.fields is None:
        return {
            "date": "",
            "vendor": "",
            "location": "",
            "cost": "",
            "type": "other",
            "items": [],
            "payment_method": "",
            "description": "",
        }
    populated = result.fields.populated()
    return {key: str(populated[key]) if key in populated else "" for key in _FORM_KEYS}
