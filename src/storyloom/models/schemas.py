"""Pydantic models for agent structured output and the MCP interface.

``ExtractionResponse`` and ``ProposalResponse`` describe the JSON objects
agents are asked to return; their JSON schemas are embedded in the
prompts. The ``*Result`` models shape MCP tool responses.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field
from pydantic import model_validator

from storyloom.models.story import Agent
from storyloom.models.story import Story

# ---------------------------------------------------------------------------
# Structured agent output
# ---------------------------------------------------------------------------


class _AgentResponse(BaseModel):
    """Agents sometimes answer null for a field; treat that as absent."""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: object) -> object:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ExtractionResponse(_AgentResponse):
    """Phase 1 answer: one memory relevant to the theme, if any."""

    has_memory: bool = Field(
        default=False,
        description="False when the agent has no relevant memory.",
    )
    memory_title: str = Field(default="", description="One-line title.")
    memory_content: str = Field(
        default="",
        description="The memory told in first person, 80-150 characters.",
    )
    emotion: str = Field(
        default="reflective",
        description="One of happy, nostalgic, excited, reflective, surprising.",
    )
    time_hint: str = Field(default="", description="Roughly when it happened.")
    unique_detail: str = Field(default="", description="Most distinctive detail.")


class ProposalResponse(_AgentResponse):
    """Phase 2 answer: where the agent's fragment belongs and why."""

    proposed_position: str = Field(
        default="middle",
        description="One of opening, middle, climax, closing.",
    )
    reason: str = Field(default="", description="Why this position fits.")
    connection_to_others: str = Field(
        default="",
        description="Which other memory this one links to, and how.",
    )
    transition_suggestion: str = Field(
        default="",
        description="How to transition into this fragment.",
    )


# ---------------------------------------------------------------------------
# MCP tool results
# ---------------------------------------------------------------------------


class CreateStoryInput(BaseModel):
    """Input for create_story."""

    theme: str = Field(min_length=1, description="Story theme.")
    description: str = Field(default="", description="Free-text brief.")
    initiator_id: str = Field(default="", description="Initiating agent id.")
    participant_ids: list[str] | None = Field(
        default=None,
        description="Explicit participants; matched by theme when omitted.",
    )


class CreateDemoStoryInput(BaseModel):
    """Input for create_demo_story."""

    theme: str = Field(min_length=1, description="Story theme.")
    description: str = Field(default="", description="Free-text brief.")
    real_agent_count: int = Field(
        default=2,
        description="How many roster members contribute for real; clamped.",
    )


class CreateStoryResult(BaseModel):
    """Output of create_story / create_demo_story."""

    story_id: str = ""
    status: str = Field(description="'accepted' or 'rejected'.")
    participant_count: int = 0
    error_code: str | None = None
    message: str | None = None


class GetStoryResult(BaseModel):
    """Output of get_story."""

    status: str = Field(description="'ok' or 'not_found'.")
    story: Story | None = None
    error_code: str | None = None
    message: str | None = None


class ListStoriesResult(BaseModel):
    stories: list[Story] = Field(default_factory=list)


class ListAgentsResult(BaseModel):
    agents: list[Agent] = Field(default_factory=list)
