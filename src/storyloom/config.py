"""Configuration for the agent client, pipeline, repositories and audit log.

One frozen dataclass per subsystem. Values are passed in by the caller
(the CLI in ``server.main`` or a test); nothing is read from the environment.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AgentClientConfig:
    """Settings for the agent-hosting service that backs every participant."""

    provider: str = "http"
    base_url: str = "https://app.mindos.com/gate/lab"
    act_path: str = "/api/secondme/act/stream"
    chat_path: str = "/api/secondme/chat/stream"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class NarrativeConfig:
    """Tuneable parameters for the four-phase narrative pipeline."""

    # Upper bound for one agent invocation, stream draining included
    invocation_timeout_seconds: float = 45.0
    # Prompt excerpt lengths
    digest_excerpt_chars: int = 60
    previous_excerpt_chars: int = 80
    # Woven content is cut to this many characters
    refined_max_chars: int = 300
    # Roster bounds
    max_participants: int = 6
    target_piece_count: int = 5


@dataclass(frozen=True)
class RepositoryConfig:
    """Backend selection for the story repository and agent directory."""

    backend: str = "memory"
    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "storyloom"


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "storyloom_audit.jsonl"
    enabled: bool = True
