"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "agent-relay"
    app_env: str = "dev"
    log_level: str = "INFO"
    dispatch_timeout_s: float = Field(default=30.0, gt=0.0)
    health_timeout_s: float = Field(default=5.0, gt=0.0)
    answer_timeout_s: float = Field(default=45.0, gt=0.0)
    dedupe_timeout_s: float = Field(default=60.0, gt=0.0)
    retrieval_max_results: int = Field(default=2, ge=1, le=50)
    retrieval_rank_before_truncate: bool = False
    corpus_dir: str = ""
    simulated_latency_min_ms: int = Field(default=10, ge=0)
    simulated_latency_max_ms: int = Field(default=50, ge=0)
    llm_provider: str = "mock"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=20.0, ge=0.5)
    openai_api_key: str = ""
    paraphrase_citations: bool = True
    default_persona: str = "default"

    model_config = SettingsConfigDict(
        env_prefix="AGENT_RELAY_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_corpus_dir(self) -> Path | None:
        if not self.corpus_dir:
            return None
        return Path(self.corpus_dir).expanduser().resolve()

    def latency_window_ms(self) -> tuple[int, int]:
        low = self.simulated_latency_min_ms
        return low, max(low, self.simulated_latency_max_ms)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
