from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from genspecs.core.errors import CompletionError, TransportError
from genspecs.settings import Settings, get_settings
from genspecs.utils.logging import get_logger

from .adapter import BaseCompletionClient

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    timeout_seconds: float = 25.0
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    max_backoff_seconds: float = 8.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            timeout_seconds=settings.request_timeout_seconds,
            max_attempts=settings.retry_max_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
            max_backoff_seconds=settings.retry_max_backoff_seconds,
        )


def is_retryable(exc: BaseException) -> bool:
    # Timeouts, aborts, network failures and upstream 504s only
    return isinstance(exc, CompletionError) and exc.retryable


async def _attempt(client: BaseCompletionClient, system_prompt: str, user_prompt: str, timeout: float) -> str:
    try:
        return await asyncio.wait_for(client.complete(system_prompt, user_prompt), timeout=timeout)
    except asyncio.TimeoutError as exc:
        LOGGER.warning("Completion attempt aborted after %.1fs", timeout)
        raise TransportError(
            f"Request timed out after {timeout:g} seconds", timed_out=True
        ) from exc


async def complete_with_retry(
    client: BaseCompletionClient,
    system_prompt: str,
    user_prompt: str,
    policy: Optional[RetryPolicy] = None,
) -> str:
    """Run one completion with a hard timeout per attempt and bounded retries.

    The last typed error is re-raised once attempts are exhausted.
    """
    policy = policy or RetryPolicy.from_settings()
    text = ""
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(is_retryable),
        wait=wait_exponential(multiplier=policy.backoff_seconds, max=policy.max_backoff_seconds),
        stop=stop_after_attempt(policy.max_attempts),
        before_sleep=before_sleep_log(LOGGER, logging.INFO),
        reraise=True,
    ):
        with attempt:
            text = await _attempt(client, system_prompt, user_prompt, policy.timeout_seconds)
    return text
