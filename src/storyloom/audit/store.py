"""JSONL audit trail for story lifecycle events."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from storyloom.audit.schemas import AuditEvent
from storyloom.audit.schemas import AuditEventType
from storyloom.config import AuditConfig

logger = logging.getLogger(__name__)


class AuditLogger:
    """Appends one JSON line per event to ``config.file_path``.

    Disk access happens in a worker thread; an ``asyncio.Lock`` keeps lines
    from concurrent phases whole.
    """

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._path = Path(config.file_path)
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        if not self.config.enabled:
            return
        async with self._lock:
            await asyncio.to_thread(self._write_line, event.model_dump_json())

    async def record(
        self,
        event_type: AuditEventType,
        story_id: str | None = None,
        **payload,
    ) -> None:
        """Build an ``AuditEvent`` from keyword payload and log it."""
        await self.log(
            AuditEvent(event_type=event_type, story_id=story_id, payload=payload)
        )

    def _write_line(self, line: str) -> None:
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(f"{line}\n")

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        story_id: str | None = None,
    ) -> list[AuditEvent]:
        """Events in write order, optionally narrowed by type and story."""
        if not self._path.exists():
            return []
        async with self._lock:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")

        matched: list[AuditEvent] = []
        for number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                event = AuditEvent.model_validate_json(line)
            except ValidationError:
                logger.warning("Ignoring unreadable audit line %d in %s", number, self._path)
                continue
            if event_type is not None and event.event_type is not event_type:
                continue
            if story_id is not None and event.story_id != story_id:
                continue
            matched.append(event)
        return matched
