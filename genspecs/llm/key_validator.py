from __future__ import annotations

from typing import Optional

import httpx

from genspecs.utils.logging import get_logger
from genspecs.utils.schemas import ValidationResult

LOGGER = get_logger(__name__)

_STATUS_ERRORS = {
    401: "Invalid API key. Please check your OpenRouter API key.",
    402: "Insufficient credits. Please add credits to your account.",
    403: "Access forbidden. Please check your API key permissions.",
    429: "Rate limit exceeded. Please try again later.",
}
CONNECTIVITY_ERROR = "Failed to validate API key. Please check your internet connection."
MISSING_KEY_ERROR = "API key is required"


class OpenRouterKeyValidator:
    """Checks a key against the provider's key-introspection endpoint."""

    def __init__(
        self,
        base_url: str = "https://openrouter.ai/api/v1",
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/auth/key"
        self.timeout = timeout
        self._transport = transport

    async def __call__(self, api_key: str) -> ValidationResult:
        if not api_key:
            return ValidationResult(is_valid=False, error=MISSING_KEY_ERROR)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as exc:
            LOGGER.warning("API key validation request failed: %s", type(exc).__name__)
            return ValidationResult(is_valid=False, error=CONNECTIVITY_ERROR)

        if response.is_success:
            LOGGER.info("API key validated successfully")
            return ValidationResult(is_valid=True)

        error = _STATUS_ERRORS.get(
            response.status_code, f"Validation failed (Status: {response.status_code})"
        )
        LOGGER.info("API key validation failed with status %d", response.status_code)
        return ValidationResult(is_valid=False, error=error)


class MockKeyValidator:
    """Accepts any non-empty key without network access."""

    async def __call__(self, api_key: str) -> ValidationResult:
        if not api_key:
            return ValidationResult(is_valid=False, error=MISSING_KEY_ERROR)
        return ValidationResult(is_valid=True)
