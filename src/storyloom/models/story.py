"""Story domain models: agents, memory fragments, and stories.

Pydantic v2 models. Every repository write stores a full ``model_dump``
of the changed fields, so these models are also the persisted format.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class StoryStatus(str, Enum):
    """Lifecycle of one story. Strictly forward; ``completed`` is terminal."""

    waiting = "waiting"
    extracting = "extracting"
    negotiating = "negotiating"
    weaving = "weaving"
    composing = "composing"
    completed = "completed"

    @property
    def step(self) -> int:
        return _STATUS_SEQUENCE.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is StoryStatus.completed

    def can_advance_to(self, other: StoryStatus) -> bool:
        """True when *other* lies strictly after this status."""
        return other.step > self.step


_STATUS_SEQUENCE = list(StoryStatus)


class Emotion(str, Enum):
    happy = "happy"
    nostalgic = "nostalgic"
    excited = "excited"
    reflective = "reflective"
    surprising = "surprising"

    @classmethod
    def parse(cls, value: object) -> Emotion:
        """Lenient parse; anything unrecognized reads as ``reflective``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.reflective


class NarrativePosition(str, Enum):
    """Where a fragment proposes to sit in the story, in story order."""

    opening = "opening"
    middle = "middle"
    climax = "climax"
    closing = "closing"

    @property
    def rank(self) -> int:
        return _POSITION_SEQUENCE.index(self)

    @classmethod
    def rank_of(cls, value: str | None) -> int:
        """Rank for a raw proposal string; unknown or missing ranks as middle."""
        try:
            return cls(value).rank
        except ValueError:
            return cls.middle.rank


_POSITION_SEQUENCE = list(NarrativePosition)


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent(BaseModel):
    """A participant backed by a private memory store and a hosted endpoint."""

    id: str = Field(description="Unique agent identifier.")
    name: str = Field(description="Display name.")
    avatar_url: str = Field(default="", description="Avatar image URL.")
    access_token: str = Field(description="Bearer token for the hosting service.")
    refresh_token: str = Field(default="", description="Refresh token.")
    token_expires_at: int = Field(
        default=0,
        description="Access-token expiry, Unix epoch milliseconds.",
    )
    shades: list[str] = Field(
        default_factory=list,
        description="Free-text capability / interest tags.",
    )
    memory_snippets: list[str] = Field(
        default_factory=list,
        description="Short memory excerpts used for theme matching.",
    )
    credits: int = Field(default=0, description="Credit balance.")
    joined_at: int = Field(
        default_factory=now_ms,
        description="Join time, Unix epoch milliseconds.",
    )


# ---------------------------------------------------------------------------
# MemoryFragment
# ---------------------------------------------------------------------------


class MemoryFragment(BaseModel):
    """One agent's contribution to one story.

    Created by extraction, enriched by negotiation (position, notes) and
    again by weaving (``refined_content``).
    """

    agent_id: str = Field(description="Owning agent identifier.")
    agent_name: str = Field(description="Owning agent display name.")
    agent_avatar: str = Field(default="", description="Owning agent avatar URL.")
    title: str = Field(default="", description="Short title.")
    content: str = Field(default="", description="First-person raw memory.")
    emotion: Emotion = Field(default=Emotion.reflective)
    time_hint: str = Field(default="", description="When it happened, free text.")
    unique_detail: str = Field(default="", description="The most distinctive detail.")
    proposed_position: str | None = Field(
        default=None,
        description="Negotiated position (opening/middle/climax/closing).",
    )
    connection_note: str | None = Field(
        default=None,
        description="How this fragment relates to another one.",
    )
    transition_hint: str | None = Field(
        default=None,
        description="Suggested transition into this fragment.",
    )
    refined_content: str | None = Field(
        default=None,
        description="Content re-rendered for continuity during weaving.",
    )
    is_ai_generated: bool = Field(
        default=False,
        description="True for synthesized fill-ins in elastic mode.",
    )

    @field_validator("emotion", mode="before")
    @classmethod
    def _lenient_emotion(cls, value: object) -> Emotion:
        return Emotion.parse(value)

    @property
    def position_rank(self) -> int:
        return NarrativePosition.rank_of(self.proposed_position)

    @property
    def display_content(self) -> str:
        return self.refined_content or self.content


# ---------------------------------------------------------------------------
# Story
# ---------------------------------------------------------------------------


class Story(BaseModel):
    """Mutable state of one collaborative narrative."""

    id: str = Field(description="Unique story identifier.")
    theme: str = Field(description="Story theme; also the narrative title.")
    description: str = Field(default="", description="Free-text brief.")
    initiator_id: str = Field(default="", description="Who started the story.")
    initiator_name: str = Field(default="", description="Initiator display name.")
    status: StoryStatus = Field(default=StoryStatus.waiting)
    participant_ids: list[str] = Field(
        default_factory=list,
        description="Participant agent ids, fixed at creation.",
    )
    fragments: list[MemoryFragment] = Field(
        default_factory=list,
        description="Fragments in the most recently applied order.",
    )
    final_narrative: str | None = Field(default=None)
    target_piece_count: int | None = Field(
        default=None,
        description="Elastic mode only: total fragments wanted.",
    )
    real_piece_count: int | None = Field(
        default=None,
        description="Elastic mode only: fragments contributed by real agents.",
    )
    created_at: int = Field(default_factory=now_ms)
    completed_at: int | None = Field(default=None)

    @property
    def is_elastic(self) -> bool:
        return self.target_piece_count is not None
