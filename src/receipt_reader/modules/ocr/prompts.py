from __future__ import annotations

import enum


class Template(str, enum.Enum):
    GENERAL = "general"
    TRAVEL = "travel"
    ODOMETER = "odometer"

    @classmethod
    def parse(cls, value: str | Template | None) -> Template:
        if isinstance(value, Template):
            return value
        raw = (value or "").strip().lower()
        for template in cls:
            if template.value == raw:
                return template
        return cls.GENERAL


SYSTEM_PROMPT = (
    "You are an AI assistant specialized in extracting and structuring data from receipts. "
    "Return ONLY a valid JSON object."
)

_ODOMETER_PROMPT = (
    "This is an image of a car's odometer. Extract ONLY the numerical reading displayed. "
    "Ignore any other text or symbols (like 'km', 'miles', 'trip'). "
    "Return ONLY the number as plain text, e.g., '123456.7'. "
    'If you can return JSON, use the format {"reading": "123456.7"}.'
)

_TRAVEL_PROMPT = (
    "You are an AI specialized in extracting data from travel expense receipts (image or PDF). "
    "Extract the following REQUIRED fields: Transaction Date (date as string 'YYYY-MM-DD' if "
    "possible, otherwise original format), Cost/Amount (cost as a number), Currency Code "
    "(currency as a 3-letter string like 'USD', 'EUR', 'CAD'), a concise Description/Purpose "
    "(description as string), Expense Type (type as string, e.g., Food, Transportation), "
    "Vendor Name (vendor as string), and Location (location as string). "
    "Return ONLY a valid JSON object containing ALL these fields: "
    "date, cost, currency, description, type, vendor, location. "
    'Example: {"date": "2024-03-15", "cost": 45.50, "currency": "USD", '
    '"description": "Taxi fare", "type": "Transportation", "vendor": "City Cabs", '
    '"location": "New York, NY"}'
)

_GENERAL_PROMPT = (
    "You are an AI specialized in reading and extracting data from general receipts "
    "(image or PDF). Extract all visible text. Then, analyze to identify: date, "
    "vendor/business name (vendor), location, individual items purchased with prices "
    "(items array with name and price), subtotal, tax, total amount (total), and payment "
    "method (paymentMethod). Return ONLY a structured JSON object with these fields."
)

_PROMPTS: dict[Template, str] = {
    Template.ODOMETER: _ODOMETER_PROMPT,
    Template.TRAVEL: _TRAVEL_PROMPT,
    Template.GENERAL: _GENERAL_PROMPT,
}


def build_prompt(template: str | Template | None) -> str:
    return _PROMPTS[Template.parse(template)]
