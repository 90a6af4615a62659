from __future__ import annotations

from receipt_reader.modules.ocr.parsing import (
    find_json_candidate,
    parse_amount,
    parse_receipt_text,
)


def test_fenced_json_block_is_preferred():
    text = (
        'Sure! {"ignored": true}\n'
        "```JSON\n"
        '{"Date": "2024-03-15", "Total": "45.50", "Merchant": "City Cabs", "currency": "usd"}\n'
        "```\n"
        "Let me know if you need more."
    )
    parsed = parse_receipt_text(text)

    assert parsed.method == "json"
    assert parsed.note is None
    assert parsed.fields.date == "2024-03-15"
    assert parsed.fields.cost == 45.5
    assert parsed.fields.vendor == "City Cabs"
    assert parsed.fields.currency == "USD"


def test_first_alias_wins():
    parsed = parse_receipt_text('{"cost": 10, "total": 99, "vendor": "A", "merchant": "B"}')

    assert parsed.fields.cost == 10.0
    assert parsed.fields.vendor == "A"


def test_null_cost_alias_is_skipped():
    parsed = parse_receipt_text('{"cost": null, "totalAmount": "12.00", "vendor": "Shop"}')

    assert parsed.fields.cost == 12.0


def test_formatted_amount_string_is_cleaned():
    assert parse_amount("$1,234.56") == 1234.56
    assert parse_amount("EUR 7") == 7.0
    assert parse_amount("n/a") is None
    assert parse_amount(True) is None


def test_bare_json_with_nested_items():
    text = (
        "Receipt data: "
        '{"vendor": "Corner Deli", "items": [{"name": "Coffee", "price": "3.50"}, '
        '{"description": "Bagel", "amount": 2}], "paymentMethod": "VISA"}'
    )
    parsed = parse_receipt_text(text)

    assert parsed.method == "json"
    assert parsed.fields.vendor == "Corner Deli"
    assert parsed.fields.payment_method == "VISA"
    assert [(i.name, i.price) for i in parsed.fields.items] == [
        ("Coffee", 3.5),
        ("Bagel", 2.0),
    ]


def test_plain_text_falls_back_to_regex_scan():
    text = "CITY CABS\n03/15/2024\nFare 40.00\nTip 5.50\nTotal: $45.50 USD\nThank you"
    parsed = parse_receipt_text(text)

    assert parsed.method == "regex"
    assert parsed.note == "No structured JSON data found"
    assert parsed.fields.date == "03/15/2024"
    assert parsed.fields.cost == 45.5
    assert parsed.fields.currency == "USD"
    assert parsed.fields.vendor is None


def test_json_without_known_fields_uses_regex_only():
    text = '{"store_id": 42, "note": "see below"}\nAmount: 18.25 EUR'
    parsed = parse_receipt_text(text)

    assert parsed.method == "regex"
    assert parsed.note == "JSON found but no expected fields were present"
    assert parsed.fields.populated() == {"cost": 18.25, "currency": "EUR"}


def test_malformed_json_is_reported_in_note():
    parsed = parse_receipt_text('{"vendor": "Shop", "cost": }  total 9.99')

    assert parsed.method == "regex"
    assert parsed.note == "Model output contained malformed JSON"
    assert parsed.fields.cost == 9.99


def test_nothing_detected_yields_empty_fields_with_note():
    parsed = parse_receipt_text("The image is too blurry to read.")

    assert parsed.method == "regex"
    assert parsed.fields.populated() == {}
    assert parsed.note == "No structured JSON data found; no receipt fields could be detected"


def test_subtotal_does_not_shadow_total():
    parsed = parse_receipt_text("Subtotal: 10.00\nTax: 0.80\nTotal: 10.80")

    assert parsed.fields.cost == 10.8


def test_symbol_amount_used_without_keyword():
    parsed = parse_receipt_text("Paid €23.40 on 1.2.2024")

    assert parsed.fields.cost == 23.4
    assert parsed.fields.date == "1.2.2024"


def test_find_json_candidate_handles_empty_text():
    assert find_json_candidate("") is None
    assert find_json_candidate("no braces here") is None


def test_non_finite_json_amount_is_not_detected():
    parsed = parse_receipt_text(
        '{"vendor": "X", "cost": NaN, "items": [{"name": "Tea", "price": Infinity}]}'
    )

    assert parsed.method == "json"
    assert parsed.fields.vendor == "X"
    assert parsed.fields.cost is None
    assert parsed.fields.items[0].price is None


def test_overflowing_amounts_are_not_detected():
    assert parse_amount("9" * 400) is None
    assert parse_amount(10**400) is None
    assert parse_amount(float("-inf")) is None

    parsed = parse_receipt_text("Total: " + "9" * 400 + ".00 USD")
    assert parsed.fields.cost is None
    assert parsed.fields.currency == "USD"
