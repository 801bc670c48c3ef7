"""StoryLoom — FastMCP server exposing the memory-weaving pipeline.

Story creation returns immediately; the narrative runs as a background
task and callers poll ``get_story`` to watch it progress. Call
``configure(...)`` before using the tools.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from fastmcp import FastMCP
from pydantic import ValidationError

from storyloom.audit import AuditEventType
from storyloom.audit import AuditLogger
from storyloom.client import AgentClient
from storyloom.client import build_agent_client
from storyloom.config import AgentClientConfig
from storyloom.config import AuditConfig
from storyloom.config import NarrativeConfig
from storyloom.config import RepositoryConfig
from storyloom.engine import create_elastic_story
from storyloom.engine import create_story as _create_story
from storyloom.engine import match_agents_for_theme
from storyloom.engine import NarrativeOrchestrator
from storyloom.engine import seed_demo_agents
from storyloom.models import Story
from storyloom.models.schemas import CreateDemoStoryInput
from storyloom.models.schemas import CreateStoryInput
from storyloom.models.schemas import CreateStoryResult
from storyloom.models.schemas import GetStoryResult
from storyloom.models.schemas import ListAgentsResult
from storyloom.models.schemas import ListStoriesResult
from storyloom.presets import DEFAULT_PRESETS
from storyloom.presets import PresetTable
from storyloom.repository import AgentDirectory
from storyloom.repository import build_repositories
from storyloom.repository import StoryNotFoundError
from storyloom.repository import StoryRepository

logger = logging.getLogger(__name__)

mcp = FastMCP("StoryLoom")

# ---------------------------------------------------------------------------
# Server state (set via configure())
# ---------------------------------------------------------------------------

_stories: StoryRepository | None = None
_agents: AgentDirectory | None = None
_orchestrator: NarrativeOrchestrator | None = None
_audit_logger: AuditLogger | None = None
_narrative_config = NarrativeConfig()
_presets: PresetTable = DEFAULT_PRESETS
_running: set[asyncio.Task] = set()


async def configure(
    *,
    repository_config: RepositoryConfig | None = None,
    agent_client_config: AgentClientConfig | None = None,
    agent_client: AgentClient | None = None,
    narrative_config: NarrativeConfig | None = None,
    audit_config: AuditConfig | None = None,
    presets: PresetTable = DEFAULT_PRESETS,
) -> None:
    """Initialize repositories, the agent client and the orchestrator."""
    global _stories, _agents, _orchestrator, _audit_logger, _narrative_config, _presets
    await shutdown()

    _presets = presets
    _narrative_config = narrative_config or NarrativeConfig()
    _stories, _agents = build_repositories(repository_config or RepositoryConfig())
    _audit_logger = AuditLogger(audit_config or AuditConfig())
    client = agent_client or build_agent_client(
        agent_client_config or AgentClientConfig(), presets=presets
    )
    _orchestrator = NarrativeOrchestrator(
        _stories,
        _agents,
        client,
        _narrative_config,
        presets=presets,
        audit_logger=_audit_logger,
    )


async def shutdown() -> None:
    """Cancel in-flight narrative runs and release server state."""
    global _stories, _agents, _orchestrator, _audit_logger
    tasks = list(_running)
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
    _running.clear()
    _stories = None
    _agents = None
    _orchestrator = None
    _audit_logger = None


async def _wait_for_pending() -> None:
    """Wait until every scheduled narrative run has finished (test helper)."""
    while _running:
        await asyncio.gather(*list(_running), return_exceptions=True)


def _get_state() -> tuple[StoryRepository, AgentDirectory, NarrativeOrchestrator]:
    if _stories is None or _agents is None or _orchestrator is None:
        raise RuntimeError("Server not configured. Call configure() first.")
    return _stories, _agents, _orchestrator


async def _run_in_background(orchestrator: NarrativeOrchestrator, story_id: str) -> None:
    try:
        await orchestrator.run_narrative(story_id)
    except StoryNotFoundError:
        logger.error("Scheduled story %s vanished before it could run", story_id)


def _schedule(orchestrator: NarrativeOrchestrator, story_id: str) -> None:
    task = asyncio.create_task(_run_in_background(orchestrator, story_id))
    _running.add(task)
    task.add_done_callback(_running.discard)


async def _story_created(story: Story) -> None:
    if _audit_logger is not None:
        await _audit_logger.record(
            AuditEventType.STORY_CREATED,
            story.id,
            theme=story.theme,
            participant_count=len(story.participant_ids),
            elastic=story.is_elastic,
        )


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    return str(err.get("msg", "Invalid input"))


def _create_rejected(error_code: str, message: str) -> CreateStoryResult:
    return CreateStoryResult(status="rejected", error_code=error_code, message=message)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool
async def create_story(
    theme: str,
    description: str = "",
    initiator_id: str = "",
    participant_ids: list[str] | None = None,
) -> CreateStoryResult:
    """Start a collaborative story and weave it in the background.

    Args:
        theme: What the story is about; also its title.
        description: Optional brief shared with every participant.
        initiator_id: Agent id of the initiator; never picked as participant.
        participant_ids: Explicit participants. When omitted, agents are
            matched to the theme by their tags and memory snippets.
    """
    stories, agents, orchestrator = _get_state()
    try:
        validated = CreateStoryInput.model_validate(
            {
                "theme": theme,
                "description": description,
                "initiator_id": initiator_id,
                "participant_ids": participant_ids,
            }
        )
    except ValidationError as exc:
        return _create_rejected("validation_error", _validation_message(exc))
    if not validated.theme.strip():
        return _create_rejected("missing_theme", "theme must not be blank.")

    limit = _narrative_config.max_participants
    if validated.participant_ids is not None:
        chosen = list(dict.fromkeys(validated.participant_ids))
        if len(chosen) > limit:
            return _create_rejected(
                "too_many_participants",
                f"At most {limit} participants can take part in one story.",
            )
    else:
        matched = match_agents_for_theme(
            await agents.list_all(),
            validated.theme,
            validated.description,
            validated.initiator_id,
            max_agents=limit,
        )
        chosen = [a.id for a in matched]

    initiator = await agents.get(validated.initiator_id) if validated.initiator_id else None
    story = await _create_story(
        stories,
        theme=validated.theme.strip(),
        description=validated.description,
        initiator_id=validated.initiator_id,
        initiator_name=initiator.name if initiator is not None else "",
        participant_ids=chosen,
    )
    await _story_created(story)
    _schedule(orchestrator, story.id)
    return CreateStoryResult(
        story_id=story.id,
        status="accepted",
        participant_count=len(story.participant_ids),
    )


@mcp.tool
async def create_demo_story(
    theme: str,
    description: str = "",
    real_agent_count: int = 2,
) -> CreateStoryResult:
    """Start a demo story with the built-in roster.

    The first ``real_agent_count`` roster members (clamped to the roster
    size, at least one) contribute for real; the rest are filled in with
    pre-authored AI-completed fragments.

    Args:
        theme: What the story is about; also its title.
        description: Optional brief shared with every participant.
        real_agent_count: How many roster members take part for real.
    """
    stories, agents, orchestrator = _get_state()
    try:
        validated = CreateDemoStoryInput.model_validate(
            {
                "theme": theme,
                "description": description,
                "real_agent_count": real_agent_count,
            }
        )
    except ValidationError as exc:
        return _create_rejected("validation_error", _validation_message(exc))
    if not validated.theme.strip():
        return _create_rejected("missing_theme", "theme must not be blank.")

    await seed_demo_agents(agents, _presets)
    story = await create_elastic_story(
        stories,
        theme=validated.theme.strip(),
        description=validated.description,
        real_agent_count=validated.real_agent_count,
        target_piece_count=_narrative_config.target_piece_count,
        presets=_presets,
    )
    await _story_created(story)
    _schedule(orchestrator, story.id)
    return CreateStoryResult(
        story_id=story.id,
        status="accepted",
        participant_count=len(story.participant_ids),
    )


@mcp.tool
async def get_story(story_id: str) -> GetStoryResult:
    """Return the current state of a story.

    Args:
        story_id: Identifier returned by create_story / create_demo_story.
    """
    stories, _, _ = _get_state()
    story = await stories.get(story_id)
    if story is None:
        return GetStoryResult(
            status="not_found",
            error_code="story_not_found",
            message=f"Story {story_id} does not exist.",
        )
    return GetStoryResult(status="ok", story=story)


@mcp.tool
async def list_stories() -> ListStoriesResult:
    """List all stories, newest first."""
    stories, _, _ = _get_state()
    return ListStoriesResult(stories=await stories.list_all())


@mcp.tool
async def list_agents() -> ListAgentsResult:
    """List known agents, seeding the demo roster when none exist."""
    _, agents, _ = _get_state()
    existing = await agents.list_all()
    if not existing:
        await seed_demo_agents(agents, _presets)
        existing = await agents.list_all()
    return ListAgentsResult(agents=existing)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="storyloom")
    parser.add_argument("--backend", default="memory", choices=["memory", "redis"])
    parser.add_argument("--redis-url", default="redis://localhost:6379")
    parser.add_argument("--provider", default="http", choices=["http", "demo", "noop"])
    parser.add_argument("--agent-base-url", default=AgentClientConfig.base_url)
    parser.add_argument("--audit-file", default=AuditConfig.file_path)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Run the MCP server over stdio."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(
        configure(
            repository_config=RepositoryConfig(
                backend=args.backend, redis_url=args.redis_url
            ),
            agent_client_config=AgentClientConfig(
                provider=args.provider, base_url=args.agent_base_url
            ),
            audit_config=AuditConfig(file_path=args.audit_file),
        )
    )
    mcp.run()


if __name__ == "__main__":
    main()
