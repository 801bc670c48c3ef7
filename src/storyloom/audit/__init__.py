"""Audit subsystem — async JSONL trail of story lifecycle events."""

from storyloom.audit.schemas import AuditEvent
from storyloom.audit.schemas import AuditEventType
from storyloom.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
