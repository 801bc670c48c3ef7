"""Participant matching, demo seeding, and story construction."""

from __future__ import annotations

import logging
import re
import secrets

from storyloom.models import Agent
from storyloom.models import now_ms
from storyloom.models import Story
from storyloom.presets import DEFAULT_PRESETS
from storyloom.presets import PresetTable
from storyloom.repository import AgentDirectory
from storyloom.repository import StoryRepository

logger = logging.getLogger(__name__)

_WORD_SPLIT_RE = re.compile(r"\s+")

TAG_HIT_SCORE = 3
SNIPPET_HIT_SCORE = 1


def _score(agent: Agent, words: list[str]) -> int:
    score = 1
    tags = [s.lower() for s in agent.shades]
    snippets = " ".join(agent.memory_snippets).lower()
    for word in words:
        if len(word) < 2:
            continue
        for tag in tags:
            if tag in word or word in tag:
                score += TAG_HIT_SCORE
        if word in snippets:
            score += SNIPPET_HIT_SCORE
    return score


def match_agents_for_theme(
    agents: list[Agent],
    theme: str,
    description: str,
    initiator_id: str,
    max_agents: int = 6,
) -> list[Agent]:
    """Pick up to *max_agents* agents whose tags and memories fit the theme.

    The initiator is never picked. Ties keep directory order.
    """
    candidates = [a for a in agents if a.id != initiator_id]
    if not candidates:
        return []
    words = [w for w in _WORD_SPLIT_RE.split(f"{theme} {description}".lower()) if w]
    scored = sorted(candidates, key=lambda a: _score(a, words), reverse=True)
    return scored[:max_agents]


async def seed_demo_agents(
    directory: AgentDirectory,
    presets: PresetTable = DEFAULT_PRESETS,
) -> list[Agent]:
    """Upsert the fixed demo roster; returns the seeded records."""
    seeded = [
        preset.to_agent(joined_days_ago=days)
        for days, preset in enumerate(presets, start=1)
    ]
    for agent in seeded:
        await directory.upsert(agent)
    logger.info("Seeded %d demo agents", len(seeded))
    return seeded


def new_story_id() -> str:
    return f"story-{now_ms()}-{secrets.token_hex(3)}"


async def create_story(
    stories: StoryRepository,
    *,
    theme: str,
    description: str = "",
    initiator_id: str = "",
    initiator_name: str = "",
    participant_ids: list[str],
) -> Story:
    """Create and store a story in ``waiting`` state."""
    story = Story(
        id=new_story_id(),
        theme=theme,
        description=description,
        initiator_id=initiator_id,
        initiator_name=initiator_name,
        participant_ids=list(dict.fromkeys(participant_ids)),
    )
    await stories.create(story)
    return story


def clamp_real_count(requested: int, roster_size: int) -> int:
    """Clamp a requested real-participant count to ``[1, roster_size]``."""
    return max(1, min(requested, roster_size))


async def create_elastic_story(
    stories: StoryRepository,
    *,
    theme: str,
    description: str = "",
    real_agent_count: int = 2,
    target_piece_count: int | None = None,
    presets: PresetTable = DEFAULT_PRESETS,
    initiator_id: str = "demo-user",
    initiator_name: str = "you",
) -> Story:
    """Create a demo story where the first N canonical agents are real.

    The story aims for *target_piece_count* fragments (the whole roster when
    omitted, never more); the gap is filled with synthetic fragments when
    the story runs.
    """
    target = min(target_piece_count or len(presets), len(presets))
    real = clamp_real_count(real_agent_count, target)
    story = Story(
        id=new_story_id(),
        theme=theme,
        description=description,
        initiator_id=initiator_id,
        initiator_name=initiator_name,
        participant_ids=presets.canonical_order[:real],
        target_piece_count=target,
        real_piece_count=real,
    )
    await stories.create(story)
    return story
