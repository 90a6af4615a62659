from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    name: str | None = None
    price: float | None = None


class ExtractedFields(BaseModel):
    date: str | None = None
    cost: float | None = None
    currency: str | None = None
    vendor: str | None = None
    location: str | None = None
    type: str | None = None
    description: str | None = None
    payment_method: str | None = None
    items: list[LineItem] | None = None

    def populated(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ExtractionResult(BaseModel):
    success: bool
    backend: str | None = None
    raw_text: str | None = None
    fields: ExtractedFields | None = None
    error: str | None = None
    warning: str | None = None


class ExtractionResponse(ExtractionResult):
    form_data: dict[str, Any] = Field(default_factory=dict)


class OdometerResult(BaseModel):
    success: bool
    reading: float | None = None
    backend: str | None = None
    error: str | None = None


class BackendOut(BaseModel):
    name: str
    label: str
    supports_image: bool
    supports_pdf: bool
    has_credential: bool
    is_default: bool


class VerifyKeyIn(BaseModel):
    api_key: str


class VerifyKeyOut(BaseModel):
    success: bool
    message: str
