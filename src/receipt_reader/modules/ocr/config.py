from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from receipt_reader.core.config import Settings

GEMINI = "gemini"
OPENAI = "openai"
CLAUDE = "claude"
OPENROUTER = "openrouter"

# PDF fallback order.
BACKEND_PRIORITY: tuple[str, ...] = (GEMINI, OPENAI, CLAUDE, OPENROUTER)

BACKEND_LABELS: dict[str, str] = {
    GEMINI: "Gemini",
    OPENAI: "OpenAI",
    CLAUDE: "Claude",
    OPENROUTER: "OpenRouter",
}


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class OcrConfig:
    """Read-only view of everything the extraction pipeline needs."""

    api_keys: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    default_backend: str = GEMINI
    default_template: str = "general"
    models: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    base_urls: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    anthropic_version: str = "2023-06-01"
    openrouter_referer: str = "https://expense-tracker-app.com"
    timeout_seconds: float = 60.0
    max_tokens: int = 2000

    @classmethod
    def from_settings(cls, settings: Settings) -> OcrConfig:
        keys = {
            GEMINI: settings.gemini_api_key,
            OPENAI: settings.openai_api_key,
            CLAUDE: settings.anthropic_api_key,
            OPENROUTER: settings.openrouter_api_key,
        }
        return cls(
            api_keys=_frozen({k: v.strip() for k, v in keys.items() if v and v.strip()}),
            default_backend=(settings.default_ocr_method or GEMINI).strip().lower(),
            default_template=(settings.ocr_template or "general").strip().lower(),
            models=_frozen(
                {
                    GEMINI: settings.gemini_model,
                    OPENAI: settings.openai_model,
                    CLAUDE: settings.claude_model,
                    OPENROUTER: settings.openrouter_model,
                }
            ),
            base_urls=_frozen(
                {
                    GEMINI: settings.gemini_base_url,
                    OPENAI: settings.openai_base_url,
                    CLAUDE: settings.anthropic_base_url,
                    OPENROUTER: settings.openrouter_base_url,
                }
            ),
            anthropic_version=settings.anthropic_version,
            openrouter_referer=settings.openrouter_referer,
            timeout_seconds=float(settings.ocr_http_timeout_seconds or 60.0),
            max_tokens=int(settings.ocr_max_tokens or 2000),
        )

    @classmethod
    def for_keys(cls, **api_keys: str) -> OcrConfig:
        """Build a config from explicit API keys, e.g. ``OcrConfig.for_keys(gemini="k")``."""
        return cls(api_keys=_frozen({k: v for k, v in api_keys.items() if v}))

    def has_credential(self, backend: str) -> bool:
        return bool(self.api_keys.get(backend))

    def api_key(self, backend: str) -> str | None:
        return self.api_keys.get(backend)

    def model_for(self, backend: str, default: str) -> str:
        return self.models.get(backend) or default

    def base_url_for(self, backend: str, default: str) -> str:
        return (self.base_urls.get(backend) or default).rstrip("/")

    def configured_backends(self) -> list[str]:
        return [name for name in BACKEND_PRIORITY if self.has_credential(name)]
