"""Audit event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditEventType(str, Enum):
    """Categories of auditable story events."""

    STORY_CREATED = "STORY_CREATED"
    PHASE_TRANSITION = "PHASE_TRANSITION"
    INVOCATION_FAILED = "INVOCATION_FAILED"
    NARRATIVE_COMPLETED = "NARRATIVE_COMPLETED"


class AuditEvent(BaseModel):
    """A single immutable audit log entry."""

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the event occurred.",
    )
    event_type: AuditEventType = Field(
        description="Category of the audited action.",
    )
    story_id: str | None = Field(
        default=None,
        description="Story the event belongs to, when there is one.",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific data (phase names, agent ids, counts).",
    )
