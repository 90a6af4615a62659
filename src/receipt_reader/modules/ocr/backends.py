from __future__ import annotations

import base64
import time
from typing import Any, Literal

import httpx

from receipt_reader.core.logging import get_logger, log_event, monotonic_ms
from receipt_reader.modules.ocr.config import (
    BACKEND_LABELS,
    CLAUDE,
    GEMINI,
    OPENAI,
    OPENROUTER,
    OcrConfig,
)
from receipt_reader.modules.ocr.errors import BackendError, ConfigurationError
from receipt_reader.modules.ocr.prompts import SYSTEM_PROMPT

logger = get_logger(__name__)

DocumentKind = Literal["image", "pdf"]


def sniff_mime_type(body: bytes, kind: DocumentKind) -> str:
    if kind == "pdf":
        return "application/pdf"
    b = body.lstrip()
    if b.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if b.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if len(b) >= 12 and b.startswith(b"RIFF") and b[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


class VisionBackend:
    """
    One vision-capable provider.

    Subclasses describe how a (prompt, document) pair becomes a provider request and
    where the answer text lives in the provider's JSON envelope. The shared `extract`
    method performs exactly one HTTP call and never retries.
    """

    name: str = ""
    env_var: str = ""
    default_model: str = ""
    default_base_url: str = ""
    supports_image: bool = True
    supports_pdf: bool = True

    def __init__(self, config: OcrConfig, *, client: httpx.Client | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def label(self) -> str:
        return BACKEND_LABELS.get(self.name, self.name)

    @property
    def model(self) -> str:
        return self.config.model_for(self.name, self.default_model)

    @property
    def base_url(self) -> str:
        return self.config.base_url_for(self.name, self.default_base_url)

    def extract(self, document: bytes, kind: DocumentKind, prompt: str) -> str:
        api_key = self._require_api_key()
        mime_type = sniff_mime_type(document, kind)
        data = base64.b64encode(document).decode("ascii")
        url, headers, params, payload = self.build_request(
            api_key=api_key, prompt=prompt, data=data, mime_type=mime_type
        )
        envelope = self._send(
            "POST", url, headers=headers, params=params, payload=payload, byte_size=len(document)
        )
        text = self.response_text(envelope)
        if not isinstance(text, str) or not text.strip():
            raise BackendError(self.name, f"Unexpected response format from {self.label} API")
        return text

    def verify(self, api_key: str) -> None:
        """Raise `BackendError` unless the provider accepts `api_key`."""
        raise NotImplementedError  # pragma: no cover

    def build_request(
        self, *, api_key: str, prompt: str, data: str, mime_type: str
    ) -> tuple[str, dict[str, str], dict[str, str], dict[str, Any]]:
        raise NotImplementedError  # pragma: no cover

    def response_text(self, envelope: Any) -> str | None:
        raise NotImplementedError  # pragma: no cover

    def _require_api_key(self) -> str:
        api_key = self.config.api_key(self.name)
        if not api_key:
            raise ConfigurationError(
                f"{self.label} API key not configured. Please set {self.env_var} "
                "or choose another OCR method in the settings page."
            )
        return api_key

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
        byte_size: int | None = None,
    ) -> Any:
        start = time.monotonic()
        log_event(
            logger,
            "ocr.backend.request",
            backend=self.name,
            model=self.model,
            url=url,
            byte_size=byte_size,
        )
        send = self._client.request if self._client is not None else httpx.request
        try:
            resp = send(
                method,
                url,
                headers=headers,
                params=params or None,
                json=payload,
                timeout=self.config.timeout_seconds,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            log_event(
                logger,
                "ocr.backend.error",
                backend=self.name,
                reason=type(e).__name__,
                duration_ms=monotonic_ms(start),
            )
            raise BackendError(self.name, f"{self.label} API error: {e}") from e

        if resp.is_error:
            log_event(
                logger,
                "ocr.backend.error",
                backend=self.name,
                status_code=resp.status_code,
                duration_ms=monotonic_ms(start),
            )
            raise BackendError(
                self.name, f"{self.label} API error: {resp.text}", status_code=resp.status_code
            )

        log_event(
            logger,
            "ocr.backend.response",
            backend=self.name,
            status_code=resp.status_code,
            duration_ms=monotonic_ms(start),
        )
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(
                self.name, f"Unexpected response format from {self.label} API"
            ) from e


def _chat_completion_text(envelope: Any) -> str | None:
    try:
        content = envelope["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None


def _chat_document_part(*, data: str, mime_type: str) -> dict[str, Any]:
    data_url = f"data:{mime_type};base64,{data}"
    if mime_type == "application/pdf":
        return {"type": "file", "file": {"filename": "receipt.pdf", "file_data": data_url}}
    return {"type": "image_url", "image_url": {"url": data_url}}


class GeminiBackend(VisionBackend):
    name = GEMINI
    env_var = "GEMINI_API_KEY"
    default_model = "gemini-1.5-flash"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def build_request(self, *, api_key, prompt, data, mime_type):
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {"inline_data": {"mime_type": mime_type, "data": data}},
                    ]
                }
            ],
            "generationConfig": {
                "temperature": 0.1,
                "maxOutputTokens": self.config.max_tokens,
            },
        }
        return url, {"Content-Type": "application/json"}, {"key": api_key}, payload

    def response_text(self, envelope):
        try:
            text = envelope["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) else None

    def verify(self, api_key: str) -> None:
        self._send("GET", f"{self.base_url}/models", headers={}, params={"key": api_key})


class OpenAIBackend(VisionBackend):
    name = OPENAI
    env_var = "OPENAI_API_KEY"
    default_model = "gpt-4o"
    default_base_url = "https://api.openai.com/v1"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    def build_request(self, *, api_key, prompt, data, mime_type):
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        _chat_document_part(data=data, mime_type=mime_type),
                    ],
                }
            ],
            "max_tokens": self.config.max_tokens,
        }
        return f"{self.base_url}/chat/completions", self._headers(api_key), {}, payload

    def response_text(self, envelope):
        return _chat_completion_text(envelope)

    def verify(self, api_key: str) -> None:
        self._send("GET", f"{self.base_url}/models", headers=self._headers(api_key))


class ClaudeBackend(VisionBackend):
    name = CLAUDE
    env_var = "ANTHROPIC_API_KEY"
    default_model = "claude-3-haiku-20240307"
    default_base_url = "https://api.anthropic.com/v1"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self.config.anthropic_version,
        }

    def build_request(self, *, api_key, prompt, data, mime_type):
        source = {"type": "base64", "media_type": mime_type, "data": data}
        block_type = "document" if mime_type == "application/pdf" else "image"
        payload = {
            "model": self.model,
            "max_tokens": self.config.max_tokens,
            "system": SYSTEM_PROMPT,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": block_type, "source": source},
                    ],
                }
            ],
        }
        return f"{self.base_url}/messages", self._headers(api_key), {}, payload

    def response_text(self, envelope):
        blocks = envelope.get("content") if isinstance(envelope, dict) else None
        if not isinstance(blocks, list):
            return None
        for block in blocks:
            if isinstance(block, dict) and isinstance(block.get("text"), str):
                return block["text"]
        return None

    def verify(self, api_key: str) -> None:
        self._send(
            "POST",
            f"{self.base_url}/messages",
            headers=self._headers(api_key),
            payload={
                "model": self.model,
                "max_tokens": 10,
                "messages": [{"role": "user", "content": "Hello"}],
            },
        )


class OpenRouterBackend(VisionBackend):
    name = OPENROUTER
    env_var = "OPENROUTER_API_KEY"
    default_model = "anthropic/claude-3-haiku"
    default_base_url = "https://openrouter.ai/api/v1"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": self.config.openrouter_referer,
        }

    def build_request(self, *, api_key, prompt, data, mime_type):
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        _chat_document_part(data=data, mime_type=mime_type),
                    ],
                }
            ],
        }
        return f"{self.base_url}/chat/completions", self._headers(api_key), {}, payload

    def response_text(self, envelope):
        return _chat_completion_text(envelope)

    def verify(self, api_key: str) -> None:
        self._send("GET", f"{self.base_url}/models", headers=self._headers(api_key))


BACKENDS: dict[str, type[VisionBackend]] = {
    cls.name: cls for cls in (GeminiBackend, OpenAIBackend, ClaudeBackend, OpenRouterBackend)
}


def get_backend(
    name: str, config: OcrConfig, *, client: httpx.Client | None = None
) -> VisionBackend:
    backend_cls = BACKENDS.get((name or "").strip().lower())
    if backend_cls is None:
        raise ConfigurationError(
            f"Unsupported OCR method: {name}. "
            "Only Gemini, OpenAI, Claude, and OpenRouter are supported."
        )
    return backend_cls(config, client=client)
