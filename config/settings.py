"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from config.llm_config import LLMConfig


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False
    log_level: str = "info"

    # ── LLM ──────────────────────────────────────────────────
    default_model: str = "dashscope/qwen-max"
    analysis_model: str = ""  # Full-bundle analysis; empty = default_model
    tutor_model: str = ""  # Q&A and gap-filling practice questions
    test_author_model: str = ""  # Test/answer generation and grading
    max_tokens: int = 8192
    temperature: float | None = None
    model_timeout_seconds: float = 120.0
    max_concurrent_llm_calls: int = 10

    # Provider API keys
    dashscope_api_key: str = ""
    zai_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # ── Embeddings ───────────────────────────────────────────
    embedding_model: str = "text-embedding-v3"
    embedding_dim: int = 1024
    embedding_base_url: str = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    embedding_api_key: str = ""  # empty = dashscope_api_key
    embedding_timeout_seconds: float = 30.0

    # ── Text extraction ──────────────────────────────────────
    extraction_timeout_seconds: float = 60.0
    max_document_bytes: int = 50 * 1024 * 1024

    # ── Artifact store ───────────────────────────────────────
    content_store_type: str = "memory"  # "memory" or "redis"
    redis_url: str = ""  # e.g. redis://:password@host:6379/0

    # ── Status polling ───────────────────────────────────────
    status_poll_interval_seconds: float = 3.0
    # A pending/running record untouched for this long is treated as abandoned
    # (worker killed mid-run).  Keep it above extraction + model + embedding timeouts.
    stale_run_seconds: float = 900.0

    # ── Helpers ───────────────────────────────────────────────

    def model_for(self, role: str) -> str:
        """Resolve the model name for a pipeline role, falling back to the default."""
        override = {
            "analysis": self.analysis_model,
            "tutor": self.tutor_model,
            "test_author": self.test_author_model,
        }.get(role, "")
        return override or self.default_model

    def get_default_llm_config(self) -> LLMConfig:
        """Build an :class:`LLMConfig` from global .env defaults."""
        return LLMConfig(
            model=self.default_model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout=self.model_timeout_seconds,
        )


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
