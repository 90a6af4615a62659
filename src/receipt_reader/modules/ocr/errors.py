from __future__ import annotations


class ConfigurationError(RuntimeError):
    """The requested backend is unknown or has no API key configured."""


class NoCapableBackendError(ConfigurationError):
    """No vision backend with a configured API key can read the document."""


class BackendError(RuntimeError):
    """A provider call failed or answered with an unusable envelope."""

    def __init__(self, backend: str, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.backend = backend
        self.status_code = status_code
