"""Process-local repositories.

Records are kept as JSON strings, the same representation the Redis
backend stores, so readers never alias the repository's state.
"""

from __future__ import annotations

import asyncio
from typing import Any

from storyloom.models import Agent
from storyloom.models import Story
from storyloom.repository.base import DuplicateStoryError
from storyloom.repository.base import merge_story


class InMemoryStoryRepository:
    """Story repository backed by a dict. Construct one per process or per test."""

    def __init__(self) -> None:
        self._stories: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create(self, story: Story) -> None:
        async with self._lock:
            if story.id in self._stories:
                raise DuplicateStoryError(f"Story {story.id} already exists")
            self._stories[story.id] = story.model_dump_json()

    async def update(self, story_id: str, **fields: Any) -> None:
        async with self._lock:
            raw = self._stories.get(story_id)
            if raw is None:
                return
            merged = merge_story(Story.model_validate_json(raw), fields)
            self._stories[story_id] = merged.model_dump_json()

    async def get(self, story_id: str) -> Story | None:
        raw = self._stories.get(story_id)
        return Story.model_validate_json(raw) if raw is not None else None

    async def list_all(self) -> list[Story]:
        stories = [Story.model_validate_json(raw) for raw in self._stories.values()]
        stories.sort(key=lambda s: s.created_at, reverse=True)
        return stories


class InMemoryAgentDirectory:
    """Agent directory backed by a dict; iteration follows insertion order."""

    def __init__(self) -> None:
        self._agents: dict[str, str] = {}

    async def get(self, agent_id: str) -> Agent | None:
        raw = self._agents.get(agent_id)
        return Agent.model_validate_json(raw) if raw is not None else None

    async def upsert(self, agent: Agent) -> None:
        self._agents[agent.id] = agent.model_dump_json()

    async def list_all(self) -> list[Agent]:
        return [Agent.model_validate_json(raw) for raw in self._agents.values()]
