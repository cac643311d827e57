"""
State Store - Per-contact EnhancedState persistence.

Two backends share the same async get/set contract: an in-memory dict for
development and tests, and Redis for deployments. Both store the record as
JSON under ``state:{contact_id}``.
"""

from __future__ import annotations

import json
from typing import Protocol

import redis.asyncio as aioredis

from bant_sdr.core.logger import logger
from bant_sdr.orchestration.state import EnhancedState


def state_key(contact_id: str) -> str:
    """Key under which a contact's state is stored."""
    return f"state:{contact_id}"


def decode_state(contact_id: str, raw: str | bytes | None) -> EnhancedState | None:
    """
    Parse a stored record.

    Unreadable records (bad JSON, wrong shape, unknown stage or action) are
    logged and treated as absent so the turn starts fresh instead of failing.
    """
    if not raw:
        return None
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        return EnhancedState.from_dict(data)
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as exc:
        logger.warning(f"[STATE] [{contact_id}] Discarding unreadable state: {exc}")
        return None


class StateStore(Protocol):
    """Key-value persistence for EnhancedState."""

    async def get(self, contact_id: str) -> EnhancedState | None:
        ...

    async def set(self, contact_id: str, state: EnhancedState) -> None:
        ...


class InMemoryStateStore:
    """Process-local store. State is lost on restart."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    async def get(self, contact_id: str) -> EnhancedState | None:
        return decode_state(contact_id, self._records.get(state_key(contact_id)))

    async def set(self, contact_id: str, state: EnhancedState) -> None:
        self._records[state_key(contact_id)] = json.dumps(state.to_dict(), ensure_ascii=False)

    def clear(self) -> None:
        self._records.clear()


class RedisStateStore:
    """
    Redis-backed store.

    Connection errors propagate as ``redis.RedisError``; the orchestrator
    decides how to degrade.
    """

    def __init__(self, url: str | None = None, client: aioredis.Redis | None = None) -> None:
        """
        Initialize the store.

        Args:
            url: Redis connection URL, e.g. ``redis://localhost:6379/0``.
            client: Pre-built client (takes precedence over ``url``).
        """
        if client is None and not url:
            raise ValueError("RedisStateStore needs a url or a client")
        self._client = client or aioredis.from_url(url, decode_responses=True)

    async def get(self, contact_id: str) -> EnhancedState | None:
        raw = await self._client.get(state_key(contact_id))
        if raw:
            logger.debug(f"[STATE] [{contact_id}] Loaded state from Redis")
        return decode_state(contact_id, raw)

    async def set(self, contact_id: str, state: EnhancedState) -> None:
        await self._client.set(state_key(contact_id), json.dumps(state.to_dict(), ensure_ascii=False))
        logger.debug(f"[STATE] [{contact_id}] Saved state to Redis")

    async def close(self) -> None:
        await self._client.aclose()


def build_state_store(redis_url: str | None) -> StateStore:
    """Redis store when a URL is configured, in-memory otherwise."""
    if redis_url:
        logger.info("[STATE] Using Redis state store")
        return RedisStateStore(url=redis_url)
    logger.info("[STATE] Using in-memory state store")
    return InMemoryStateStore()
