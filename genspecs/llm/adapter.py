from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from genspecs.settings import Settings, get_settings


class BaseCompletionClient(ABC):
    """One chat completion per call. Retries belong to the caller."""

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...

    async def aclose(self) -> None:
        return None


ClientFactory = Callable[[str], BaseCompletionClient]


def create_completion_client(api_key: str, settings: Optional[Settings] = None) -> BaseCompletionClient:
    """Build a client bound to ``api_key``. Nothing is cached between calls."""
    settings = settings or get_settings()
    if settings.llm_mode == "mock":
        from .mock_adapter import MockCompletionClient
        return MockCompletionClient()

    from .openrouter_adapter import OpenRouterCompletionClient
    return OpenRouterCompletionClient(
        api_key=api_key,
        base_url=settings.openrouter_base_url,
        model=settings.openrouter_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        site_url=settings.site_url,
        site_name=settings.site_name,
        timeout=settings.request_timeout_seconds,
    )


def get_client_factory(settings: Optional[Settings] = None) -> ClientFactory:
    settings = settings or get_settings()
    return lambda api_key: create_completion_client(api_key, settings)
