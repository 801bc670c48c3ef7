"""Repository protocols and shared helpers.

The orchestrator only talks to these protocols, so a test can inject a
fresh in-memory pair while a deployment uses Redis.
"""

from __future__ import annotations

from typing import Any
from typing import Protocol
from typing import runtime_checkable

from storyloom.models import Agent
from storyloom.models import Story


class StoryNotFoundError(LookupError):
    """Raised when a story id does not resolve to a stored story."""


class DuplicateStoryError(ValueError):
    """Raised by ``StoryRepository.create`` when the id is already taken."""


@runtime_checkable
class StoryRepository(Protocol):
    """Mutable story state, keyed by story id."""

    async def create(self, story: Story) -> None: ...

    async def update(self, story_id: str, **fields: Any) -> None: ...

    async def get(self, story_id: str) -> Story | None: ...

    async def list_all(self) -> list[Story]: ...


@runtime_checkable
class AgentDirectory(Protocol):
    """Agent records, keyed by agent id."""

    async def get(self, agent_id: str) -> Agent | None: ...

    async def upsert(self, agent: Agent) -> None: ...

    async def list_all(self) -> list[Agent]: ...


_STORY_FIELDS = frozenset(Story.model_fields)


def merge_story(story: Story, fields: dict[str, Any]) -> Story:
    """Return *story* with *fields* merged in and re-validated.

    Unknown field names are rejected so a typo cannot silently drop an
    update. Nested models are dumped first so the result shares no
    objects with the caller.
    """
    unknown = set(fields) - _STORY_FIELDS
    if unknown:
        raise ValueError(f"Unknown story fields: {', '.join(sorted(unknown))}")
    if "id" in fields and fields["id"] != story.id:
        raise ValueError("Story id cannot be changed")

    merged = Story.model_validate({**story.model_dump(), **fields})
    return Story.model_validate_json(merged.model_dump_json())
