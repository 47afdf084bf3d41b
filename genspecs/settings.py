from functools import lru_cache
from pathlib import Path
from typing import ClassVar, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    data_root: Path = Field(default=Path(__file__).resolve().parents[1] / "data")
    llm_mode: Literal["openrouter", "mock"] = Field(default="openrouter")

    # OpenRouter (OpenAI-compatible) completion endpoint
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    openrouter_model: str = Field(default="anthropic/claude-3.5-sonnet:beta")
    llm_temperature: float = Field(default=0.7)
    llm_max_tokens: int = Field(default=2000)
    site_url: str = Field(default="")
    site_name: str = Field(default="GenSpecs")

    # Timeouts and retries around every generation call
    request_timeout_seconds: float = Field(default=25.0, gt=0)
    retry_max_attempts: int = Field(default=3, ge=1, le=5)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)
    retry_max_backoff_seconds: float = Field(default=8.0, ge=0)
    validation_timeout_seconds: float = Field(default=10.0, gt=0)

    # False keeps finished documents in "draft" until the user accepts them
    auto_accept: bool = Field(default=True)

    # Obfuscates the stored API key only; this is not a secret store.
    encryption_passphrase: str = Field(default="genspecs_key_v1")
    encryption_iterations: int = Field(default=100_000, ge=1)

    admin_api_key: Optional[str] = Field(default=None)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    root_env: ClassVar[str] = str(Path(__file__).resolve().parents[1] / ".env")

    model_config = {
        "env_file": root_env,
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.data_root / 'genspecs.db'}"


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.data_root.mkdir(parents=True, exist_ok=True)
    return settings
