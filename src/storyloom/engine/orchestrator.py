"""Narrative orchestrator: extraction -> negotiation -> weaving -> composition.

Runs the four-phase pipeline for one story and publishes every step to
the story repository, so pollers observe incremental progress. Only a
missing story escapes ``run_narrative``; every other failure is encoded
in the persisted story, which always ends ``completed`` with a non-empty
narrative.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any

from pydantic import ValidationError

from storyloom.audit import AuditEventType
from storyloom.audit import AuditLogger
from storyloom.client import AgentClient
from storyloom.client import AgentInvocationError
from storyloom.client import drain_stream
from storyloom.client import parse_structured
from storyloom.client import StructuredOutputError
from storyloom.config import NarrativeConfig
from storyloom.engine.composition import compose_narrative
from storyloom.engine.composition import GENERIC_FAILURE_MESSAGE
from storyloom.engine.composition import NO_PARTICIPANTS_MESSAGE
from storyloom.engine.composition import sort_by_position
from storyloom.engine.prompt_builder import build_extraction_message
from storyloom.engine.prompt_builder import build_fragment_digest
from storyloom.engine.prompt_builder import build_proposal_message
from storyloom.engine.prompt_builder import build_weaving_prompt
from storyloom.engine.prompt_builder import MEMORY_EXTRACTION_CONTROL
from storyloom.engine.prompt_builder import NARRATIVE_PROPOSAL_CONTROL
from storyloom.models import Agent
from storyloom.models import ExtractionResponse
from storyloom.models import MemoryFragment
from storyloom.models import now_ms
from storyloom.models import ProposalResponse
from storyloom.models import Story
from storyloom.models import StoryStatus
from storyloom.observability import default_recorder
from storyloom.observability import LatencyRecorder
from storyloom.presets import DEFAULT_PRESETS
from storyloom.presets import FragmentPreset
from storyloom.presets import PresetTable
from storyloom.repository import AgentDirectory
from storyloom.repository import StoryNotFoundError
from storyloom.repository import StoryRepository

logger = logging.getLogger(__name__)

SYNTHETIC_NAME_SUFFIX = " (AI-completed)"

# Per-participant failures that fall back instead of aborting the run
_CONTAINED_ERRORS = (
    AgentInvocationError,
    StructuredOutputError,
    ValidationError,
    TimeoutError,
)


# ---------------------------------------------------------------------------
# Story writer
# ---------------------------------------------------------------------------


class _StoryWriter:
    """Publishes snapshots of one story and enforces forward-only status."""

    def __init__(
        self,
        repository: StoryRepository,
        story: Story,
        audit_logger: AuditLogger | None,
    ) -> None:
        self._repository = repository
        self.story_id = story.id
        self.status = story.status
        self._audit = audit_logger
        self._lock = asyncio.Lock()

    async def advance(self, status: StoryStatus, **fields: Any) -> None:
        async with self._lock:
            if not self.status.can_advance_to(status):
                raise RuntimeError(
                    f"Illegal status transition {self.status.value} -> {status.value}"
                )
            previous = self.status
            await self._repository.update(self.story_id, status=status, **fields)
            self.status = status
        logger.info(
            "story=%s status %s -> %s", self.story_id, previous.value, status.value
        )
        if self._audit is not None:
            await self._audit.record(
                AuditEventType.PHASE_TRANSITION,
                self.story_id,
                from_status=previous.value,
                to_status=status.value,
            )

    async def save_fragments(self, fragments: list[MemoryFragment]) -> None:
        """Write the current fragment list; concurrent callers are serialized."""
        async with self._lock:
            snapshot = [f.model_copy() for f in fragments]
            await self._repository.update(self.story_id, fragments=snapshot)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class NarrativeOrchestrator:
    """Runs the memory-weaving pipeline for stories held in a repository.

    Designed for single-shot use per story id; the caller must not start
    two runs for the same story.
    """

    def __init__(
        self,
        stories: StoryRepository,
        agents: AgentDirectory,
        client: AgentClient,
        config: NarrativeConfig | None = None,
        *,
        presets: PresetTable = DEFAULT_PRESETS,
        audit_logger: AuditLogger | None = None,
        metrics: LatencyRecorder | None = None,
    ) -> None:
        self._stories = stories
        self._agents = agents
        self._client = client
        self._config = config or NarrativeConfig()
        self._presets = presets
        self._audit = audit_logger
        self._metrics = metrics or default_recorder()

    async def run_narrative(self, story_id: str) -> None:
        """Run all phases for *story_id*.

        Raises ``StoryNotFoundError`` when the story does not exist;
        nothing else escapes.
        """
        story = await self._stories.get(story_id)
        if story is None:
            raise StoryNotFoundError(f"Story {story_id} not found")

        writer = _StoryWriter(self._stories, story, self._audit)
        outcome = "failed"
        async with self._metrics.track("narrative.run"):
            try:
                outcome = await self._run(story, writer)
            except Exception:
                logger.exception("Narrative run failed for story %s", story_id)
                if not writer.status.is_terminal:
                    await writer.advance(
                        StoryStatus.completed,
                        final_narrative=GENERIC_FAILURE_MESSAGE,
                        completed_at=now_ms(),
                    )
        if self._audit is not None:
            final = await self._stories.get(story_id)
            await self._audit.record(
                AuditEventType.NARRATIVE_COMPLETED,
                story_id,
                outcome=outcome,
                fragment_count=len(final.fragments) if final else 0,
            )

    async def _run(self, story: Story, writer: _StoryWriter) -> str:
        agents = await self._resolve_agents(story)
        if not agents:
            logger.warning("Story %s has no live participants", story.id)
            await writer.advance(
                StoryStatus.completed,
                fragments=[],
                final_narrative=NO_PARTICIPANTS_MESSAGE,
                completed_at=now_ms(),
            )
            return "no_participants"

        synthetic = self._synthetic_presets(story, agents) if story.is_elastic else []

        # Phase 1: extraction
        await writer.advance(StoryStatus.extracting)
        fragments = await self._extract_memories(story, agents, synthetic, writer)

        # Phase 2: negotiation
        await writer.advance(StoryStatus.negotiating, fragments=fragments)
        negotiated = await self._negotiate(story, agents, fragments, writer)

        # Phase 3: weaving
        await writer.advance(StoryStatus.weaving, fragments=negotiated)
        woven = await self._weave(story, agents, negotiated)

        # Phase 4: composition
        await writer.advance(StoryStatus.composing, fragments=woven)
        narrative = compose_narrative(story.theme, woven, elastic=story.is_elastic)
        await writer.advance(
            StoryStatus.completed,
            fragments=woven,
            final_narrative=narrative,
            completed_at=now_ms(),
        )
        return "completed"

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    async def _resolve_agents(self, story: Story) -> list[Agent]:
        agents: list[Agent] = []
        seen: set[str] = set()
        for agent_id in story.participant_ids:
            if agent_id in seen:
                continue
            seen.add(agent_id)
            agent = await self._agents.get(agent_id)
            if agent is None:
                logger.warning("Story %s: participant %s not found", story.id, agent_id)
                continue
            agents.append(agent)
        return agents

    def _synthetic_presets(
        self, story: Story, agents: list[Agent]
    ) -> list[FragmentPreset]:
        """Presets filling the gap between live participants and the target."""
        live = {a.id for a in agents}
        missing = max((story.target_piece_count or 0) - len(agents), 0)
        candidates = [p for p in self._presets if p.agent_id not in live]
        return candidates[:missing]

    async def _synthetic_fragment(self, preset: FragmentPreset) -> MemoryFragment:
        agent = await self._agents.get(preset.agent_id)
        name = agent.name if agent is not None else preset.agent_name
        return MemoryFragment(
            agent_id=preset.agent_id,
            agent_name=f"{name}{SYNTHETIC_NAME_SUFFIX}",
            agent_avatar=agent.avatar_url if agent is not None else "",
            title=preset.title,
            content=preset.content,
            emotion=preset.emotion,
            time_hint=preset.time_hint,
            unique_detail=preset.unique_detail,
            is_ai_generated=True,
        )

    # ------------------------------------------------------------------
    # Invocation helpers
    # ------------------------------------------------------------------

    async def _invoke_structured(
        self, agent: Agent, message: str, action_control: str, operation: str
    ) -> dict[str, Any]:
        async with self._metrics.track(operation):
            raw = await asyncio.wait_for(
                drain_stream(self._client.act(agent.access_token, message, action_control)),
                timeout=self._config.invocation_timeout_seconds,
            )
        return parse_structured(raw)

    async def _invoke_free(self, agent: Agent, message: str, operation: str) -> str:
        async with self._metrics.track(operation):
            return await asyncio.wait_for(
                drain_stream(self._client.chat(agent.access_token, message)),
                timeout=self._config.invocation_timeout_seconds,
            )

    async def _record_failure(
        self, story: Story, agent_id: str, phase: str, exc: BaseException
    ) -> None:
        logger.warning(
            "story=%s phase=%s agent=%s failed: %s", story.id, phase, agent_id, exc
        )
        if self._audit is not None:
            await self._audit.record(
                AuditEventType.INVOCATION_FAILED,
                story.id,
                phase=phase,
                agent_id=agent_id,
                error=str(exc)[:200],
            )

    @staticmethod
    async def _settle(branches: list[Awaitable[Any]]) -> list[Any]:
        """Wait for every branch; exceptions are returned, never raised."""
        return await asyncio.gather(*branches, return_exceptions=True)

    # ------------------------------------------------------------------
    # Phase 1: extraction
    # ------------------------------------------------------------------

    async def _extract_memories(
        self,
        story: Story,
        agents: list[Agent],
        synthetic: list[FragmentPreset],
        writer: _StoryWriter,
    ) -> list[MemoryFragment]:
        """Fragments in completion order, synthetic ones after all real ones."""
        fragments: list[MemoryFragment] = []
        message = build_extraction_message(story)

        async def extract_one(agent: Agent) -> None:
            try:
                data = await self._invoke_structured(
                    agent, message, MEMORY_EXTRACTION_CONTROL, "agent.extract"
                )
                response = ExtractionResponse.model_validate(data)
            except _CONTAINED_ERRORS as exc:
                await self._record_failure(story, agent.id, "extract", exc)
                return
            if not response.has_memory:
                logger.info("story=%s agent=%s has no relevant memory", story.id, agent.id)
                return
            fragments.append(
                MemoryFragment(
                    agent_id=agent.id,
                    agent_name=agent.name,
                    agent_avatar=agent.avatar_url,
                    title=response.memory_title,
                    content=response.memory_content,
                    emotion=response.emotion,
                    time_hint=response.time_hint,
                    unique_detail=response.unique_detail,
                )
            )
            await writer.save_fragments(fragments)

        results = await self._settle([extract_one(a) for a in agents])
        for agent, result in zip(agents, results):
            if isinstance(result, BaseException):
                await self._record_failure(story, agent.id, "extract", result)

        for preset in synthetic:
            fragments.append(await self._synthetic_fragment(preset))
            await writer.save_fragments(fragments)
        return fragments

    # ------------------------------------------------------------------
    # Phase 2: negotiation
    # ------------------------------------------------------------------

    async def _negotiate(
        self,
        story: Story,
        agents: list[Agent],
        fragments: list[MemoryFragment],
        writer: _StoryWriter,
    ) -> list[MemoryFragment]:
        """Collect one position proposal per fragment and sort by it."""
        by_id = {a.id: a for a in agents}
        digest = build_fragment_digest(
            fragments, excerpt_chars=self._config.digest_excerpt_chars
        )
        negotiated = list(fragments)

        def apply(idx: int, proposal: ProposalResponse | None) -> None:
            fragment = fragments[idx]
            if proposal is None:
                negotiated[idx] = fragment.model_copy(
                    update={"proposed_position": "middle"}
                )
                return
            negotiated[idx] = fragment.model_copy(
                update={
                    "proposed_position": proposal.proposed_position.strip().lower()
                    or "middle",
                    "connection_note": proposal.connection_to_others,
                    "transition_hint": proposal.transition_suggestion,
                }
            )

        async def negotiate_one(idx: int, fragment: MemoryFragment) -> None:
            if fragment.is_ai_generated:
                preset = self._presets.get(fragment.agent_id)
                apply(
                    idx,
                    ProposalResponse(
                        proposed_position=preset.proposed_position,
                        reason=preset.reason,
                        connection_to_others=preset.connection_note,
                        transition_suggestion=preset.transition_hint,
                    )
                    if preset is not None
                    else None,
                )
                await writer.save_fragments(negotiated)
                return

            agent = by_id.get(fragment.agent_id)
            proposal: ProposalResponse | None = None
            if agent is not None:
                try:
                    data = await self._invoke_structured(
                        agent,
                        build_proposal_message(story, digest, fragment),
                        NARRATIVE_PROPOSAL_CONTROL,
                        "agent.negotiate",
                    )
                    proposal = ProposalResponse.model_validate(data)
                except _CONTAINED_ERRORS as exc:
                    await self._record_failure(story, agent.id, "negotiate", exc)
            apply(idx, proposal)
            await writer.save_fragments(negotiated)

        results = await self._settle(
            [negotiate_one(i, f) for i, f in enumerate(fragments)]
        )
        for idx, result in enumerate(results):
            if isinstance(result, BaseException):
                await self._record_failure(
                    story, fragments[idx].agent_id, "negotiate", result
                )
                apply(idx, None)

        return sort_by_position(negotiated)

    # ------------------------------------------------------------------
    # Phase 3: weaving
    # ------------------------------------------------------------------

    async def _weave(
        self,
        story: Story,
        agents: list[Agent],
        negotiated: list[MemoryFragment],
    ) -> list[MemoryFragment]:
        """Re-render each fragment against its neighbors in negotiated order.

        Neighbor text always comes from *negotiated*, never from output
        produced earlier in this loop.
        """
        by_id = {a.id: a for a in agents}
        total = len(negotiated)
        woven: list[MemoryFragment] = []

        for i, fragment in enumerate(negotiated):
            if fragment.is_ai_generated:
                preset = self._presets.get(fragment.agent_id)
                refined = (preset.refined_content if preset else "") or fragment.content
                woven.append(fragment.model_copy(update={"refined_content": refined}))
                continue

            refined = fragment.content
            agent = by_id.get(fragment.agent_id)
            if agent is not None:
                prompt = build_weaving_prompt(
                    story,
                    fragment,
                    index=i,
                    total=total,
                    previous=negotiated[i - 1] if i > 0 else None,
                    following=negotiated[i + 1] if i < total - 1 else None,
                    previous_excerpt_chars=self._config.previous_excerpt_chars,
                )
                # Any failure here falls back to the raw content, as the
                # settled fan-out does for the concurrent phases
                try:
                    text = await self._invoke_free(agent, prompt, "agent.weave")
                except Exception as exc:
                    await self._record_failure(story, agent.id, "weave", exc)
                else:
                    if text.strip():
                        refined = text.strip()[: self._config.refined_max_chars]
            woven.append(fragment.model_copy(update={"refined_content": refined}))

        return woven
