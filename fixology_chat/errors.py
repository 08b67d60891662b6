from __future__ import annotations

from typing import Optional


class FixologyError(Exception):
    """Base class for errors raised by the chat service."""


class ConfigurationError(FixologyError):
    """Raised when the service cannot run with the current configuration."""


class RequestValidationError(FixologyError):
    """Raised when a chat request body fails validation."""

    def __init__(self, error: str, debug: str) -> None:
        super().__init__(error)
        self.error = error
        self.debug = debug


class ProviderError(FixologyError):
    """Raised when a model provider call fails."""

    def __init__(self, provider: str, status_code: Optional[int], body: str) -> None:
        if status_code is None:
            message = f"{provider} API request failed: {body}"
        else:
            message = f"{provider} API error {status_code}: {body}"
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.body = body
