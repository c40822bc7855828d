"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "media-orchestrator"
    app_env: str = "dev"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    confidence_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    provider_timeout_s: float = Field(default=120.0, ge=0.01)
    tool_timeout_s: float = Field(default=30.0, ge=0.01)

    video_poll_interval_s: float = Field(default=3.0, ge=0.001)
    video_timeout_s: float = Field(default=600.0, ge=0.01)

    task_ttl_s: float = Field(default=3600.0, ge=0.0)
    task_max_records: int = Field(default=1000, ge=1)
    cleanup_interval_s: float = Field(default=600.0, ge=0.01)

    chat_max_rounds: int = Field(default=10, ge=1)
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=60.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.2, ge=0.0)
    llm_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=4096, ge=1)

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    zai_api_key: str = ""
    zai_base_url: str = "https://open.bigmodel.cn/api/paas/v4"
    elevenlabs_api_key: str = ""
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    default_voice_id: str = "21m00Tcm4TlvDq8ikWAM"

    model_config = SettingsConfigDict(
        env_prefix="MEDIA_ORCHESTRATOR_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_zai_api_key(self) -> str:
        return self.zai_api_key or os.getenv("ZAI_API_KEY", "")

    def resolved_elevenlabs_api_key(self) -> str:
        return self.elevenlabs_api_key or os.getenv("ELEVENLABS_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
