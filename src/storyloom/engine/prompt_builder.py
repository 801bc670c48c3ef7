"""Prompt construction for the extraction, negotiation and weaving phases.

Action-control strings constrain the structured ``act`` calls; the
message builders carry the story context. Separate module because the
wording evolves independently of the pipeline.
"""

from __future__ import annotations

import json

from storyloom.models import ExtractionResponse
from storyloom.models import MemoryFragment
from storyloom.models import ProposalResponse
from storyloom.models import Story

_JSON_ONLY = (
    "Output a single raw JSON object only. No explanation, no prose, "
    "no markdown code fences."
)


def _schema(model: type) -> str:
    return json.dumps(model.model_json_schema(), indent=2, ensure_ascii=False)


MEMORY_EXTRACTION_CONTROL = (
    f"{_JSON_ONLY}\n"
    "Your owner has lived through many experiences. Search your memory for "
    "the one real experience most relevant to the theme below.\n\n"
    "Output structure:\n"
    "{\n"
    '  "has_memory": true or false,\n'
    '  "memory_title": "one-line title (at most 10 words)",\n'
    '  "memory_content": "the experience told in first person (80-150 characters)",\n'
    '  "emotion": "happy" or "nostalgic" or "excited" or "reflective" or "surprising",\n'
    '  "time_hint": "roughly when it happened (e.g. last summer, college years)",\n'
    '  "unique_detail": "the single most distinctive detail (at most 20 characters)"\n'
    "}\n\n"
    "Answer from your owner's real memories. If nothing relevant exists, "
    "set has_memory to false.\n\n"
    f"JSON schema:\n{_schema(ExtractionResponse)}"
)

NARRATIVE_PROPOSAL_CONTROL = (
    f"{_JSON_ONLY}\n"
    "Below are the memory fragments everyone contributed, followed by your own.\n\n"
    "From a storytelling point of view, propose where your memory belongs in "
    "the whole story, and why.\n\n"
    "Output structure:\n"
    "{\n"
    '  "proposed_position": "opening" or "middle" or "climax" or "closing",\n'
    '  "reason": "why your memory fits there (at most 30 characters)",\n'
    '  "connection_to_others": "which other memory yours connects to, and how '
    '(at most 50 characters)",\n'
    '  "transition_suggestion": "how to transition into your part (at most 20 characters)"\n'
    "}\n\n"
    f"JSON schema:\n{_schema(ProposalResponse)}"
)


def build_extraction_message(story: Story) -> str:
    return f"Theme: {story.theme}\nDescription: {story.description}"


def build_fragment_digest(
    fragments: list[MemoryFragment],
    *,
    excerpt_chars: int = 60,
) -> str:
    """One line per fragment; shared identically with every participant."""
    return "\n".join(
        f"「{f.agent_name}」's memory: {f.title} - {f.content[:excerpt_chars]}..."
        for f in fragments
    )


def build_proposal_message(story: Story, digest: str, fragment: MemoryFragment) -> str:
    return (
        f"Theme: {story.theme}\n\n"
        f"All memory fragments:\n{digest}\n\n"
        f"Your memory: {fragment.title} - {fragment.content}"
    )


def build_weaving_prompt(
    story: Story,
    fragment: MemoryFragment,
    *,
    index: int,
    total: int,
    previous: MemoryFragment | None,
    following: MemoryFragment | None,
    previous_excerpt_chars: int = 80,
) -> str:
    """Free-form prompt asking an agent to re-render its fragment.

    *previous* and *following* come from the negotiated snapshot, never
    from content already rewritten in this pass.
    """
    if previous is not None:
        before = (
            f"The part before yours is told by 「{previous.agent_name}」: "
            f"{previous.content[:previous_excerpt_chars]}..."
        )
    else:
        before = "You open the story."
    if following is not None:
        after = (
            f"The part after yours is 「{following.agent_name}」's: {following.title}"
        )
    else:
        after = "You close the story."

    return (
        f"You are taking part in a collective storytelling project on the theme "
        f"「{story.theme}」.\n\n"
        f"Your memory fragment sits at position {index + 1}/{total} of the story.\n"
        f"{before}\n"
        f"{after}\n\n"
        f"Your original memory: {fragment.content}\n\n"
        "Rewrite your account from your original memory so it flows naturally "
        "from the part before and into the part after.\n"
        "Requirements: stay in first person, 80-150 characters, keep your real "
        "feelings and your unique detail."
    )
