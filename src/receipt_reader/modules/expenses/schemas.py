from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class ExpenseRecord(BaseModel):
    date: str
    cost: Decimal
    type: str
    vendor: str
    location: str
    trip_name: str
    comments: str = ""
    receipt_path: str | None = None


class ExpenseOut(BaseModel):
    id: int
    date: str
    cost: Decimal
    type: str
    vendor: str
    location: str
    trip_name: str
    comments: str | None
    receipt_path: str | None
    created_at: datetime


class BatchItemResult(BaseModel):
    filename: str
    status: Literal["success", "failed"]
    error: str = ""
    expense_id: int | None = None


class BatchResultOut(BaseModel):
    message: str
    results: list[BatchItemResult]
