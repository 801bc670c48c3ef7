"""Repository domain — story state and agent records behind async protocols."""

from __future__ import annotations

from redis.asyncio import Redis  # type: ignore[import-untyped]

from storyloom.config import RepositoryConfig
from storyloom.repository.base import AgentDirectory
from storyloom.repository.base import DuplicateStoryError
from storyloom.repository.base import merge_story
from storyloom.repository.base import StoryNotFoundError
from storyloom.repository.base import StoryRepository
from storyloom.repository.in_memory import InMemoryAgentDirectory
from storyloom.repository.in_memory import InMemoryStoryRepository
from storyloom.repository.redis_store import RedisAgentDirectory
from storyloom.repository.redis_store import RedisStoryRepository

__all__ = [
    "AgentDirectory",
    "DuplicateStoryError",
    "InMemoryAgentDirectory",
    "InMemoryStoryRepository",
    "RedisAgentDirectory",
    "RedisStoryRepository",
    "StoryNotFoundError",
    "StoryRepository",
    "build_repositories",
    "merge_story",
]


def build_repositories(
    config: RepositoryConfig,
) -> tuple[StoryRepository, AgentDirectory]:
    """Create the story repository and agent directory for *config*."""
    backend = config.backend.strip().lower()
    if backend == "memory":
        return InMemoryStoryRepository(), InMemoryAgentDirectory()
    if backend == "redis":
        client = Redis.from_url(config.redis_url)
        return (
            RedisStoryRepository(client, key_prefix=config.key_prefix),
            RedisAgentDirectory(client, key_prefix=config.key_prefix),
        )
    raise ValueError(
        f"Unsupported repository backend '{config.backend}'. "
        "Supported backends: memory, redis."
    )
