"""Unit tests for the in-memory repositories and the backend factory."""

from __future__ import annotations

import pytest

from storyloom.config import RepositoryConfig
from storyloom.models import MemoryFragment
from storyloom.models import Story
from storyloom.models import StoryStatus
from storyloom.repository import AgentDirectory
from storyloom.repository import build_repositories
from storyloom.repository import DuplicateStoryError
from storyloom.repository import InMemoryAgentDirectory
from storyloom.repository import InMemoryStoryRepository
from storyloom.repository import RedisAgentDirectory
from storyloom.repository import RedisStoryRepository
from storyloom.repository import StoryRepository
from tests.helpers.doubles import make_agent


class TestInMemoryStoryRepository:
    async def test_create_and_get(self, stories):
        await stories.create(Story(id="s1", theme="Chengdu"))
        story = await stories.get("s1")
        assert story.theme == "Chengdu"
        assert story.status is StoryStatus.waiting

    async def test_get_missing_returns_none(self, stories):
        assert await stories.get("nope") is None

    async def test_duplicate_create_rejected(self, stories):
        await stories.create(Story(id="s1", theme="t"))
        with pytest.raises(DuplicateStoryError):
            await stories.create(Story(id="s1", theme="other"))

    async def test_update_merges_fields(self, stories):
        await stories.create(Story(id="s1", theme="t"))
        fragment = MemoryFragment(agent_id="a", agent_name="A", content="c")
        await stories.update("s1", status=StoryStatus.extracting, fragments=[fragment])

        story = await stories.get("s1")
        assert story.status is StoryStatus.extracting
        assert story.fragments == [fragment]
        assert story.theme == "t"

    async def test_update_missing_story_is_noop(self, stories):
        await stories.update("ghost", status=StoryStatus.completed)
        assert await stories.get("ghost") is None

    async def test_update_rejects_unknown_field(self, stories):
        await stories.create(Story(id="s1", theme="t"))
        with pytest.raises(ValueError):
            await stories.update("s1", mood="sunny")

    async def test_reads_do_not_alias_state(self, stories):
        await stories.create(Story(id="s1", theme="t"))
        story = await stories.get("s1")
        story.theme = "changed locally"
        assert (await stories.get("s1")).theme == "t"

    async def test_list_all_newest_first(self, stories):
        await stories.create(Story(id="old", theme="t", created_at=1))
        await stories.create(Story(id="new", theme="t", created_at=2))
        assert [s.id for s in await stories.list_all()] == ["new", "old"]

    def test_satisfies_protocol(self, stories):
        assert isinstance(stories, StoryRepository)


class TestInMemoryAgentDirectory:
    async def test_upsert_and_get(self, agents):
        await agents.upsert(make_agent("alice"))
        assert (await agents.get("alice")).name == "Alice"
        assert await agents.get("bob") is None

    async def test_upsert_replaces(self, agents):
        await agents.upsert(make_agent("alice"))
        await agents.upsert(make_agent("alice", name="Alice Again"))
        assert [a.name for a in await agents.list_all()] == ["Alice Again"]

    async def test_list_keeps_insertion_order(self, agents):
        for agent_id in ("c", "a", "b"):
            await agents.upsert(make_agent(agent_id))
        assert [a.id for a in await agents.list_all()] == ["c", "a", "b"]

    def test_satisfies_protocol(self, agents):
        assert isinstance(agents, AgentDirectory)


class TestBuildRepositories:
    def test_memory_backend(self):
        stories, agents = build_repositories(RepositoryConfig())
        assert isinstance(stories, InMemoryStoryRepository)
        assert isinstance(agents, InMemoryAgentDirectory)

    def test_redis_backend(self):
        stories, agents = build_repositories(
            RepositoryConfig(backend="redis", redis_url="redis://localhost:6399")
        )
        assert isinstance(stories, RedisStoryRepository)
        assert isinstance(agents, RedisAgentDirectory)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Supported backends: memory, redis"):
            build_repositories(RepositoryConfig(backend="sqlite"))
