from __future__ import annotations

import base64
import json

import httpx
import pytest

from receipt_reader.modules.ocr.backends import get_backend, sniff_mime_type
from receipt_reader.modules.ocr.config import OcrConfig
from receipt_reader.modules.ocr.errors import ConfigurationError
from receipt_reader.modules.ocr.service import ExtractionRequest, ReceiptExtractor

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PDF_BYTES = b"%PDF-1.4 receipt"

CANNED_TEXT = (
    "Here is the data I found:\n"
    "```json\n"
    '{"date":"2024-03-15","cost":45.5,"vendor":"City Cabs"}\n'
    "```"
)


def _envelope(backend: str, text: str) -> dict:
    if backend == "gemini":
        return {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    if backend == "claude":
        return {"content": [{"type": "text", "text": text}]}
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("backend", ["gemini", "openai", "claude", "openrouter"])
def test_every_backend_yields_the_same_fields(backend):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_envelope(backend, CANNED_TEXT))

    extractor = ReceiptExtractor(OcrConfig.for_keys(**{backend: "secret"}), client=_client(handler))
    result = extractor.extract(
        ExtractionRequest(document=PNG_BYTES, kind="image", template="travel", backend=backend)
    )

    assert result.success is True
    assert result.backend == backend
    assert result.fields is not None
    assert result.fields.date == "2024-03-15"
    assert result.fields.cost == 45.5
    assert result.fields.vendor == "City Cabs"
    assert result.warning is None
    assert len(seen) == 1


def test_gemini_request_shape():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=_envelope("gemini", "{}"))

    backend = get_backend("gemini", OcrConfig.for_keys(gemini="g-key"), client=_client(handler))
    backend.extract(PNG_BYTES, "image", "read this")

    assert captured["url"].params["key"] == "g-key"
    assert captured["url"].path.endswith("/models/gemini-1.5-flash:generateContent")
    parts = captured["body"]["contents"][0]["parts"]
    assert parts[0] == {"text": "read this"}
    assert parts[1]["inline_data"]["mime_type"] == "image/png"
    assert base64.b64decode(parts[1]["inline_data"]["data"]) == PNG_BYTES


def test_openai_sends_bearer_token_and_file_part_for_pdf():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=_envelope("openai", "ok"))

    backend = get_backend("openai", OcrConfig.for_keys(openai="o-key"), client=_client(handler))
    assert backend.extract(PDF_BYTES, "pdf", "read this") == "ok"

    assert captured["headers"]["authorization"] == "Bearer o-key"
    content = captured["body"]["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "read this"}
    assert content[1]["type"] == "file"
    assert content[1]["file"]["file_data"].startswith("data:application/pdf;base64,")


def test_claude_sends_document_block_and_version_header():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=_envelope("claude", "ok"))

    backend = get_backend("claude", OcrConfig.for_keys(claude="c-key"), client=_client(handler))
    backend.extract(PDF_BYTES, "pdf", "read this")

    assert captured["headers"]["x-api-key"] == "c-key"
    assert captured["headers"]["anthropic-version"] == "2023-06-01"
    assert "JSON" in captured["body"]["system"]
    block = captured["body"]["messages"][0]["content"][1]
    assert block["type"] == "document"
    assert block["source"]["media_type"] == "application/pdf"


def test_openrouter_sends_referer_header():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = request.headers
        return httpx.Response(200, json=_envelope("openrouter", "ok"))

    backend = get_backend(
        "openrouter", OcrConfig.for_keys(openrouter="r-key"), client=_client(handler)
    )
    backend.extract(PNG_BYTES, "image", "read this")

    assert captured["headers"]["authorization"] == "Bearer r-key"
    assert captured["headers"]["http-referer"] == "https://expense-tracker-app.com"


def test_non_2xx_response_embeds_provider_error_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text='{"error": "quota exceeded"}')

    extractor = ReceiptExtractor(OcrConfig.for_keys(openai="o-key"), client=_client(handler))
    result = extractor.extract(
        ExtractionRequest(document=PNG_BYTES, kind="image", backend="openai")
    )

    assert result.success is False
    assert result.backend == "openai"
    assert "OpenAI API error" in (result.error or "")
    assert "quota exceeded" in (result.error or "")


def test_envelope_without_text_is_unexpected_format():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    extractor = ReceiptExtractor(OcrConfig.for_keys(openai="o-key"), client=_client(handler))
    result = extractor.extract(
        ExtractionRequest(document=PNG_BYTES, kind="image", backend="openai")
    )

    assert result.success is False
    assert result.error == "Unexpected response format from OpenAI API"


def test_network_failure_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    extractor = ReceiptExtractor(OcrConfig.for_keys(gemini="g-key"), client=_client(handler))
    result = extractor.extract(ExtractionRequest(document=PNG_BYTES, kind="image"))

    assert result.success is False
    assert "connection refused" in (result.error or "")


def test_missing_credential_fails_before_any_request():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    backend = get_backend("claude", OcrConfig.for_keys(gemini="g-key"), client=_client(handler))
    with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
        backend.extract(PNG_BYTES, "image", "read this")


def test_missing_credential_for_image_is_a_failed_result():
    extractor = ReceiptExtractor(OcrConfig.for_keys(gemini="g-key"))
    result = extractor.extract(
        ExtractionRequest(document=PNG_BYTES, kind="image", backend="claude")
    )

    assert result.success is False
    assert result.backend is None
    assert "Please set your API key" in (result.error or "")


def test_sniff_mime_type():
    assert sniff_mime_type(PNG_BYTES, "image") == "image/png"
    assert sniff_mime_type(b"GIF89a....", "image") == "image/gif"
    assert sniff_mime_type(b"\xff\xd8\xff\xe0", "image") == "image/jpeg"
    assert sniff_mime_type(b"anything", "pdf") == "application/pdf"


def test_verify_api_key_reports_success_and_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") == "Bearer good":
            return httpx.Response(200, json={"data": []})
        return httpx.Response(401, json={"error": "invalid key"})

    extractor = ReceiptExtractor(OcrConfig(), client=_client(handler))

    ok = extractor.verify_api_key("openai", "good")
    assert ok.success is True
    assert ok.message == "openai API key is valid"

    bad = extractor.verify_api_key("openai", "bad")
    assert bad.success is False
    assert "Invalid OpenAI API key" in bad.message

    empty = extractor.verify_api_key("openai", " ")
    assert empty.success is False


def test_verify_api_key_rejects_unknown_backend():
    with pytest.raises(ConfigurationError):
        ReceiptExtractor(OcrConfig()).verify_api_key("tesseract", "key")
