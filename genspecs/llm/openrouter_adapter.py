from __future__ import annotations

from typing import Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from genspecs.core.errors import ProviderError, TransportError
from genspecs.utils.logging import get_logger

from .adapter import BaseCompletionClient
from .errors import describe_provider_error, extract_error_message

LOGGER = get_logger(__name__)


class OpenRouterCompletionClient(BaseCompletionClient):

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "anthropic/claude-3.5-sonnet:beta",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        site_url: str = "",
        site_name: str = "GenSpecs",
        timeout: float = 25.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        # OpenRouter speaks the OpenAI wire format
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            default_headers={
                "HTTP-Referer": site_url,
                "X-Title": site_name,
            },
            max_retries=0,
            timeout=timeout,
            http_client=http_client,
        )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        LOGGER.info("Calling OpenRouter with model '%s' (prompt chars=%d)", self.model, len(user_prompt))
        try:
            response = await self.client.chat.completions.create(
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APITimeoutError as exc:
            LOGGER.warning("OpenRouter request timed out")
            raise TransportError("Request to the model provider timed out", timed_out=True) from exc
        except APIConnectionError as exc:
            LOGGER.warning("OpenRouter connection failed: %s", exc)
            raise TransportError("Could not reach the model provider") from exc
        except APIStatusError as exc:
            detail = extract_error_message(exc.response, fallback=exc.message)
            request_id = exc.response.headers.get("x-request-id") if exc.response is not None else None
            LOGGER.error("OpenRouter returned %s: %s", exc.status_code, detail)
            raise ProviderError(
                describe_provider_error(exc.status_code, detail, request_id),
                status_code=exc.status_code,
                detail=detail,
            ) from exc

        choices = response.choices or []
        content = choices[0].message.content if choices and choices[0].message else None
        LOGGER.info("OpenRouter response received (length=%d)", len(content or ""))
        return content or ""

    async def aclose(self) -> None:
        await self.client.close()
