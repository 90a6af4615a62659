from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Literal

from receipt_reader.core.logging import get_logger, log_event
from receipt_reader.modules.ocr.schemas import ExtractedFields, LineItem

logger = get_logger(__name__)

# First alias present in the model's JSON wins. The order (e.g. `cost` before `total`)
# is historical and kept for compatibility with stored extractions.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date", "Date", "transactionDate", "TransactionDate"),
    "vendor": (
        "vendor",
        "Vendor",
        "business",
        "Business",
        "businessName",
        "BusinessName",
        "merchant",
        "Merchant",
    ),
    "location": ("location", "Location", "address", "Address"),
    "cost": ("cost", "Cost", "total", "Total", "totalAmount", "TotalAmount", "amount", "Amount"),
    "currency": ("currency", "Currency", "currencyCode", "CurrencyCode"),
    "items": ("items", "Items", "products", "Products", "lineItems", "LineItems"),
    "payment_method": ("paymentMethod", "PaymentMethod", "payment", "Payment"),
    "description": ("description", "Description", "purpose", "Purpose"),
    "type": ("type", "Type", "expenseType", "ExpenseType", "category", "Category"),
}

_ITEM_NAME_KEYS = ("name", "Name", "description", "Description", "item", "Item")
_ITEM_PRICE_KEYS = ("price", "Price", "amount", "Amount", "total", "Total", "cost", "Cost")

CURRENCY_CODES = ("USD", "EUR", "CAD", "GBP", "JPY")

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.I)
_BRACED_RE = re.compile(r"\{.*\}", re.S)
_DATE_RE = re.compile(r"\b(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})\b")
_KEYWORD_AMOUNT_RE = re.compile(r"\b(?:total|amount|cost)[:\s]*\$?\s?([0-9,]+\.[0-9]{2})", re.I)
_SYMBOL_AMOUNT_RE = re.compile(r"[$€£]\s?([0-9,]+\.[0-9]{2})")
_CURRENCY_RE = re.compile(r"\b(" + "|".join(CURRENCY_CODES) + r")\b", re.I)


@dataclass(frozen=True)
class FieldExtraction:
    fields: ExtractedFields
    method: Literal["json", "regex"]
    note: str | None = None


def find_json_candidate(text: str) -> str | None:
    """Fenced ```json block first, otherwise the widest {...} span."""
    if not text:
        return None
    m = _FENCED_JSON_RE.search(text)
    if m:
        return m.group(1).strip()
    m = _BRACED_RE.search(text)
    if m:
        return m.group(0).strip()
    return None


def load_json_object(candidate: str | None) -> dict[str, Any] | None:
    if not candidate:
        return None
    try:
        obj = json.loads(candidate)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def parse_amount(value: Any) -> float | None:
    """Numeric value of an amount, or None when it is missing, unreadable or not finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite(value)
    cleaned = re.sub(r"[^0-9.]", "", str(value))
    m = re.search(r"[0-9]+\.?[0-9]*", cleaned)
    if not m:
        return None
    return _finite(m.group(0))


def _finite(value: Any) -> float | None:
    # json.loads accepts NaN/Infinity and very long digit runs overflow to inf.
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def parse_receipt_text(text: str | None) -> FieldExtraction:
    raw = text or ""
    candidate = find_json_candidate(raw)
    if candidate is None:
        note = "No structured JSON data found"
    else:
        obj = load_json_object(candidate)
        if obj is None:
            note = "Model output contained malformed JSON"
        else:
            fields = map_json_fields(obj)
            if fields.populated():
                return FieldExtraction(fields=fields, method="json")
            note = "JSON found but no expected fields were present"

    fields = scan_text_fields(raw)
    if not fields.populated():
        note = f"{note}; no receipt fields could be detected"
    log_event(
        logger,
        "ocr.parse.fallback",
        reason=note,
        detected=sorted(fields.populated()) or None,
        text_len=len(raw),
    )
    return FieldExtraction(fields=fields, method="regex", note=note)


def map_json_fields(obj: dict[str, Any]) -> ExtractedFields:
    values: dict[str, Any] = {}
    for field_name, aliases in FIELD_ALIASES.items():
        if field_name == "cost":
            values["cost"] = _first_amount(obj, aliases)
        elif field_name == "items":
            values["items"] = _first_items(obj, aliases)
        else:
            values[field_name] = _first_text(obj, aliases)
    currency = values.get("currency")
    if currency and len(currency) == 3 and currency.isalpha():
        values["currency"] = currency.upper()
    return ExtractedFields(**values)


def scan_text_fields(text: str) -> ExtractedFields:
    values: dict[str, Any] = {}
    m = _DATE_RE.search(text)
    if m:
        values["date"] = m.group(1)
    m = _KEYWORD_AMOUNT_RE.search(text) or _SYMBOL_AMOUNT_RE.search(text)
    if m:
        values["cost"] = parse_amount(m.group(1))
    m = _CURRENCY_RE.search(text)
    if m:
        values["currency"] = m.group(1).upper()
    return ExtractedFields(**values)


def _first_text(obj: dict[str, Any], aliases: tuple[str, ...]) -> str | None:
    for key in aliases:
        value = obj.get(key)
        if not value or isinstance(value, (dict, list)):
            continue
        s = str(value).strip()
        if s:
            return s
    return None


def _first_amount(obj: dict[str, Any], aliases: tuple[str, ...]) -> float | None:
    for key in aliases:
        if obj.get(key) is not None:
            return parse_amount(obj[key])
    return None


def _first_items(obj: dict[str, Any], aliases: tuple[str, ...]) -> list[LineItem] | None:
    for key in aliases:
        value = obj.get(key)
        if isinstance(value, list) and value:
            items = [item for item in (_line_item(v) for v in value) if item is not None]
            return items or None
    return None


def _line_item(value: Any) -> LineItem | None:
    if isinstance(value, str):
        return LineItem(name=value.strip()) if value.strip() else None
    if not isinstance(value, dict):
        return None
    name = _first_text(value, _ITEM_NAME_KEYS)
    price = _first_amount(value, _ITEM_PRICE_KEYS)
    if name is None and price is None:
        return None
    return LineItem(name=name, price=price)
