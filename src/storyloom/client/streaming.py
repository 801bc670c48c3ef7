"""SSE stream draining and structured-output parsing.

Decoupled from the transport: ``drain_stream`` accepts any async
iterable of text chunks, so tests can feed synthetic sequences.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from collections.abc import AsyncIterable
from typing import Any

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

# Fence markers such as ```json or bare ``` anywhere in the text
_CODE_FENCE_RE = re.compile(r"```(?:json|JSON)?")


class StructuredOutputError(ValueError):
    """Raised when an agent's structured answer is not a JSON object."""


def sse_event(content: str) -> str:
    """Encode *content* as one SSE data line in the chat-delta shape."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"{DATA_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n"


def sse_done() -> str:
    return f"{DATA_PREFIX}{DONE_SENTINEL}\n"


def _event_text(data: str) -> str | None:
    """Incremental text carried by one event payload, if any."""
    try:
        parsed = json.loads(data)
    except ValueError:
        logger.debug("Skipping malformed SSE payload: %.80s", data)
        return None
    if not isinstance(parsed, dict):
        return None
    try:
        content = parsed["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        content = parsed.get("content")
    return content if isinstance(content, str) else None


async def drain_stream(stream: AsyncIterable[str | bytes]) -> str:
    """Collapse an SSE token stream into one string.

    Only lines starting with ``data: `` are considered; ``[DONE]`` ends
    the stream; malformed lines are skipped.
    """
    parts: list[str] = []
    buffer = ""
    done = False
    # Multibyte characters may straddle byte chunks
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def consume(line: str) -> bool:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return False
        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            return True
        text = _event_text(data)
        if text:
            parts.append(text)
        return False

    async for chunk in stream:
        buffer += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        *lines, buffer = buffer.split("\n")
        for line in lines:
            if consume(line):
                done = True
                break
        if done:
            break
    else:
        buffer += decoder.decode(b"", final=True)
        if buffer:
            consume(buffer)

    if done:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
    return "".join(parts)


def parse_structured(text: str) -> dict[str, Any]:
    """Parse a structured agent answer into a dict.

    Strips code-fence markers and any prose around the outermost braces.
    Parse failure is an expected outcome and raises ``StructuredOutputError``.
    """
    cleaned = _CODE_FENCE_RE.sub("", text).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise StructuredOutputError(f"No JSON object in agent output: {text[:80]!r}")
    try:
        data = json.loads(cleaned[start : end + 1])
    except ValueError as exc:
        raise StructuredOutputError(f"Invalid JSON from agent: {exc}") from exc
    if not isinstance(data, dict):
        raise StructuredOutputError("Agent output must be a JSON object")
    return data
