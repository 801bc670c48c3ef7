"""Models domain — story state and structured-output shapes."""

from storyloom.models.schemas import ExtractionResponse
from storyloom.models.schemas import ProposalResponse
from storyloom.models.story import Agent
from storyloom.models.story import Emotion
from storyloom.models.story import MemoryFragment
from storyloom.models.story import NarrativePosition
from storyloom.models.story import now_ms
from storyloom.models.story import Story
from storyloom.models.story import StoryStatus

__all__ = [
    "Agent",
    "Emotion",
    "ExtractionResponse",
    "MemoryFragment",
    "NarrativePosition",
    "ProposalResponse",
    "Story",
    "StoryStatus",
    "now_ms",
]
