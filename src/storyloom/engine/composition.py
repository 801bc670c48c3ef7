"""Ordering and rendering of the final narrative.

Pure functions of their inputs: the same ordered fragments and theme
always render to byte-identical text.
"""

from __future__ import annotations

from storyloom.models import MemoryFragment

NO_PARTICIPANTS_MESSAGE = (
    "⚠️ Not enough participants contributed memories to weave this story."
)
GENERIC_FAILURE_MESSAGE = "⚠️ Something went wrong while weaving this story."

_DIVIDER = "\n\n---\n\n"
_REAL_LABEL = "🧩"
_SYNTHETIC_LABEL = "🔮"


def sort_by_position(fragments: list[MemoryFragment]) -> list[MemoryFragment]:
    """Stable sort by negotiated position: opening < middle < climax < closing.

    Missing or unrecognized positions rank as middle.
    """
    return sorted(fragments, key=lambda f: f.position_rank)


def completion_percent(real: int, total: int) -> int:
    """Share of real fragments, rounded half up."""
    if total <= 0:
        return 0
    return int(100 * real / total + 0.5)


def compose_narrative(
    theme: str,
    fragments: list[MemoryFragment],
    *,
    elastic: bool = False,
) -> str:
    """Render ordered, woven fragments into one markdown document."""
    if elastic:
        return _compose_elastic(theme, fragments)

    total = len(fragments)
    blocks = [
        f"**{f.agent_name}** _{f.time_hint}_\n\n{f.display_content}" for f in fragments
    ]
    return (
        f"# {theme}\n\n"
        f"_{total} memories, {total} lives, woven into a story only they could tell_"
        f"{_DIVIDER}"
        f"{_DIVIDER.join(blocks)}"
        f"{_DIVIDER}"
        f"_This narrative was woven by {total} AI agents. Every memory comes from a "
        f"real life and was arranged into one story through narrative negotiation._"
    )


def _compose_elastic(theme: str, fragments: list[MemoryFragment]) -> str:
    total = len(fragments)
    real = sum(1 for f in fragments if not f.is_ai_generated)
    synthetic = total - real
    percent = completion_percent(real, total)

    blocks = [
        f"### {_SYNTHETIC_LABEL if f.is_ai_generated else _REAL_LABEL} "
        f"{f.agent_name}　_{f.time_hint}_\n\n{f.display_content}"
        for f in fragments
    ]
    return (
        f"# {theme}\n\n"
        f"_{total} memories, {real} real pieces + {synthetic} AI-completed pieces"
        f" · {percent}% complete_"
        f"{_DIVIDER}"
        f"{_DIVIDER.join(blocks)}"
        f"{_DIVIDER}"
        f"> {_REAL_LABEL} {real} of these memories come from real agents and "
        f"{synthetic} were imagined by AI. As more real agents replace the "
        f"{_SYNTHETIC_LABEL} pieces, the story grows truer and richer."
    )
