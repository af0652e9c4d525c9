# core/errors.py
from __future__ import annotations
from typing import Optional


class TariffEngineError(Exception):
    """Base class for every error raised by the tariff engine."""


class InvalidInput(TariffEngineError, ValueError):
    """Caller error: malformed, missing or negative input."""


class UpstreamTimeout(TariffEngineError):
    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Upstream timed out after {timeout:g}s: {url}")
        self.url = url
        self.timeout = timeout


class UpstreamError(TariffEngineError):
    """Non-200 answer (or transport failure) from a tariff authority."""

    def __init__(self, url: str, status_code: Optional[int], message: str = "") -> None:
        detail = message or f"HTTP {status_code}"
        super().__init__(f"Upstream error ({detail}): {url}")
        self.url = url
        self.status_code = status_code


class UpstreamParseError(TariffEngineError):
    def __init__(self, url: str, message: str = "malformed JSON body") -> None:
        super().__init__(f"Upstream parse error ({message}): {url}")
        self.url = url


class CacheWriteFailure(TariffEngineError):
    """Raised by a cache tier that could not store a result. Never fatal."""
