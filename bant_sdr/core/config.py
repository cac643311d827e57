"""
Application configuration - Centralized settings and environment variables.

This module provides type-safe configuration with sensible defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ModelConfig:
    """LLM model configuration."""
    name: str = "llama-3.3-70b-versatile"
    temperature: float = 0.7
    timeout_seconds: float = 30.0


@dataclass
class SalesConfig:
    """Per-channel conversation limits."""
    whatsapp_max_tokens: int = 200
    voice_max_tokens: int = 300
    history_window: int = 10


@dataclass
class RetryConfig:
    """Retry policy for transient LLM failures."""
    max_retries: int = 1
    base_delay: float = 0.5
    max_delay: float = 4.0


@dataclass
class Settings:
    """
    Application settings.

    Loads from environment variables with sensible defaults.
    Does NOT fail if API keys are missing (allows import without env).
    """

    # API Keys (optional at import time)
    groq_api_key: str | None = field(default=None)
    api_key: str | None = field(default=None)

    # Model settings
    model: ModelConfig = field(default_factory=ModelConfig)

    # Conversation settings
    sales: SalesConfig = field(default_factory=SalesConfig)

    # LLM retry settings
    retry: RetryConfig = field(default_factory=RetryConfig)

    # Tool calls are forwarded here (no tools when unset)
    tools_webhook_url: str | None = None

    # State store (in-memory when unset)
    redis_url: str | None = None

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Load values from environment after initialization."""
        if self.groq_api_key is None:
            self.groq_api_key = os.getenv("GROQ_API_KEY")

        if self.api_key is None:
            self.api_key = os.getenv("API_KEY")

        if self.tools_webhook_url is None:
            self.tools_webhook_url = os.getenv("TOOLS_WEBHOOK_URL")

        if self.redis_url is None:
            self.redis_url = os.getenv("REDIS_URL")

        # Load optional overrides
        if model_name := os.getenv("GROQ_MODEL"):
            self.model.name = model_name

        if port := os.getenv("API_PORT"):
            self.api_port = int(port)

        if host := os.getenv("API_HOST"):
            self.api_host = host

        if level := os.getenv("LOG_LEVEL"):
            self.log_level = level.upper()

        if os.getenv("DEBUG", "").lower() in ("1", "true", "yes"):
            self.debug = True
            self.log_level = "DEBUG"

    @property
    def has_api_key(self) -> bool:
        """Check if the LLM API key is configured."""
        return bool(self.groq_api_key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (excludes sensitive data)."""
        return {
            "model": {
                "name": self.model.name,
                "temperature": self.model.temperature,
                "timeout_seconds": self.model.timeout_seconds,
            },
            "sales": {
                "whatsapp_max_tokens": self.sales.whatsapp_max_tokens,
                "voice_max_tokens": self.sales.voice_max_tokens,
                "history_window": self.sales.history_window,
            },
            "retry": {
                "max_retries": self.retry.max_retries,
                "base_delay": self.retry.base_delay,
                "max_delay": self.retry.max_delay,
            },
            "api": {
                "host": self.api_host,
                "port": self.api_port,
                "debug": self.debug,
                "requires_api_key": bool(self.api_key),
            },
            "state_store": "redis" if self.redis_url else "memory",
            "tools_enabled": bool(self.tools_webhook_url),
            "has_api_key": self.has_api_key,
        }


# Global settings instance
settings = Settings()
