"""
Tests for configuration and retry helpers.
"""

from __future__ import annotations

import pytest

from bant_sdr.core.config import Settings
from bant_sdr.core.retry import calculate_backoff, retry_async


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test defaults without environment overrides."""
        for var in ("GROQ_API_KEY", "GROQ_MODEL", "API_KEY", "REDIS_URL", "DEBUG", "LOG_LEVEL"):
            monkeypatch.delenv(var, raising=False)
        settings = Settings()

        assert settings.has_api_key is False
        assert settings.model.name == "llama-3.3-70b-versatile"
        assert settings.sales.whatsapp_max_tokens == 200
        assert settings.sales.voice_max_tokens == 300
        assert settings.log_level == "INFO"

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment variables are picked up."""
        monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
        monkeypatch.setenv("GROQ_MODEL", "llama-3.1-8b-instant")
        monkeypatch.setenv("API_PORT", "9000")
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings()

        assert settings.groq_api_key == "gsk-test"
        assert settings.has_api_key is True
        assert settings.model.name == "llama-3.1-8b-instant"
        assert settings.api_port == 9000
        assert settings.log_level == "DEBUG"

    def test_to_dict_has_no_secrets(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test secrets never appear in the public config."""
        monkeypatch.setenv("GROQ_API_KEY", "gsk-secret")
        monkeypatch.setenv("API_KEY", "client-secret")
        rendered = str(Settings().to_dict())

        assert "gsk-secret" not in rendered
        assert "client-secret" not in rendered


class TestRetry:
    """Tests for backoff and retry_async."""

    def test_backoff_without_jitter(self) -> None:
        """Test exponential growth capped at max_delay."""
        assert calculate_backoff(0, base_delay=0.5, jitter=False) == 0.5
        assert calculate_backoff(1, base_delay=0.5, jitter=False) == 1.0
        assert calculate_backoff(10, base_delay=0.5, max_delay=4.0, jitter=False) == 4.0

    def test_backoff_jitter_range(self) -> None:
        """Test jitter stays within half to one and a half times the delay."""
        for _ in range(20):
            assert 0.25 <= calculate_backoff(0, base_delay=0.5) < 0.75

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        """Test a transient failure is retried once."""
        attempts = []

        @retry_async(max_retries=1, base_delay=0.0, exceptions=(ConnectionError,))
        async def flaky() -> str:
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("reset")
            return "ok"

        assert await flaky() == "ok"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self) -> None:
        """Test the last error is re-raised."""
        @retry_async(max_retries=1, base_delay=0.0, exceptions=(ConnectionError,))
        async def always_fails() -> None:
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            await always_fails()

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self) -> None:
        """Test non-listed exceptions propagate immediately."""
        attempts = []

        @retry_async(max_retries=3, base_delay=0.0, exceptions=(ConnectionError,))
        async def bad_input() -> None:
            attempts.append(1)
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await bad_input()
        assert len(attempts) == 1
