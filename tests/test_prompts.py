from __future__ import annotations

import pytest

from receipt_reader.modules.ocr.prompts import Template, build_prompt


@pytest.mark.parametrize("value", [None, "", "unknown", "GENERAL"])
def test_unknown_templates_fall_back_to_general(value):
    assert Template.parse(value) is Template.GENERAL


def test_travel_prompt_lists_required_fields():
    prompt = build_prompt("Travel")
    for key in ("date", "cost", "currency", "description", "type", "vendor", "location"):
        assert key in prompt
    assert "JSON" in prompt


def test_odometer_prompt_asks_for_number_only():
    prompt = build_prompt(Template.ODOMETER)
    assert "odometer" in prompt
    assert '{"reading"' in prompt


def test_general_prompt_asks_for_items_and_total():
    prompt = build_prompt("general")
    assert "items" in prompt
    assert "total" in prompt
    assert "paymentMethod" in prompt
