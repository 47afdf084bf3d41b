from __future__ import annotations

from .adapter import BaseCompletionClient


class MockCompletionClient(BaseCompletionClient):

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        first_line = user_prompt.strip().splitlines()[0] if user_prompt.strip() else "Document"
        return (
            "# Mock output\n\n"
            f"_{first_line}_\n\n"
            "This document was produced by the mock completion client.\n"
        )
