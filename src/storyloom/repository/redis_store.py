"""Redis-backed story repository and agent directory.

Stories are JSON documents keyed by ``{prefix}:story:{id}``; a sorted set
``{prefix}:stories`` (score = ``created_at``) orders them newest first.
Agents live at ``{prefix}:agent:{id}`` and are indexed by a sorted set
``{prefix}:agents`` scored by ``joined_at``.
"""

from __future__ import annotations

import logging
from typing import Any

from redis.asyncio import Redis  # type: ignore[import-untyped]

from storyloom.models import Agent
from storyloom.models import Story
from storyloom.repository.base import DuplicateStoryError
from storyloom.repository.base import merge_story

logger = logging.getLogger(__name__)

_CLEAR_BATCH_SIZE = 100


def _decode(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


class _RedisKeys:
    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self.story_index = f"{prefix}:stories"
        self.agent_index = f"{prefix}:agents"

    def story(self, story_id: str) -> str:
        return f"{self.prefix}:story:{story_id}"

    def agent(self, agent_id: str) -> str:
        return f"{self.prefix}:agent:{agent_id}"


class RedisStoryRepository:
    """Story repository on Redis. Last write wins; callers run one pipeline per story."""

    def __init__(self, redis: Redis, *, key_prefix: str = "storyloom") -> None:
        self._redis = redis
        self._keys = _RedisKeys(key_prefix)

    async def create(self, story: Story) -> None:
        created = await self._redis.set(
            self._keys.story(story.id), story.model_dump_json(), nx=True
        )
        if not created:
            raise DuplicateStoryError(f"Story {story.id} already exists")
        await self._redis.zadd(self._keys.story_index, {story.id: story.created_at})

    async def update(self, story_id: str, **fields: Any) -> None:
        key = self._keys.story(story_id)
        raw = await self._redis.get(key)
        if raw is None:
            return
        merged = merge_story(Story.model_validate_json(raw), fields)
        # xx: never resurrect a story deleted between read and write
        await self._redis.set(key, merged.model_dump_json(), xx=True)

    async def get(self, story_id: str) -> Story | None:
        raw = await self._redis.get(self._keys.story(story_id))
        if raw is None:
            return None
        return Story.model_validate_json(raw)

    async def list_all(self) -> list[Story]:
        ids = [_decode(i) for i in await self._redis.zrevrange(self._keys.story_index, 0, -1)]
        if not ids:
            return []
        pipe = self._redis.pipeline()
        for story_id in ids:
            pipe.get(self._keys.story(story_id))
        raw_results = await pipe.execute()

        stories: list[Story] = []
        stale: list[str] = []
        for story_id, raw in zip(ids, raw_results):
            if raw is None:
                stale.append(story_id)
            else:
                stories.append(Story.model_validate_json(raw))
        if stale:
            logger.debug("Pruning %d stale story index entries", len(stale))
            await self._redis.zrem(self._keys.story_index, *stale)
        return stories

    async def clear(self) -> None:
        """Remove every key under this repository's prefix (test helper)."""
        batch: list = []
        async for key in self._redis.scan_iter(match=f"{self._keys.prefix}:*"):
            batch.append(key)
            if len(batch) >= _CLEAR_BATCH_SIZE:
                await self._redis.delete(*batch)
                batch.clear()
        if batch:
            await self._redis.delete(*batch)


class RedisAgentDirectory:
    """Agent directory on Redis; ``upsert`` replaces the whole record."""

    def __init__(self, redis: Redis, *, key_prefix: str = "storyloom") -> None:
        self._redis = redis
        self._keys = _RedisKeys(key_prefix)

    async def get(self, agent_id: str) -> Agent | None:
        raw = await self._redis.get(self._keys.agent(agent_id))
        if raw is None:
            return None
        return Agent.model_validate_json(raw)

    async def upsert(self, agent: Agent) -> None:
        pipe = self._redis.pipeline()
        pipe.set(self._keys.agent(agent.id), agent.model_dump_json())
        pipe.zadd(self._keys.agent_index, {agent.id: agent.joined_at})
        await pipe.execute()

    async def list_all(self) -> list[Agent]:
        ids = [_decode(i) for i in await self._redis.zrange(self._keys.agent_index, 0, -1)]
        if not ids:
            return []
        pipe = self._redis.pipeline()
        for agent_id in ids:
            pipe.get(self._keys.agent(agent_id))
        raw_results = await pipe.execute()
        return [Agent.model_validate_json(raw) for raw in raw_results if raw is not None]
