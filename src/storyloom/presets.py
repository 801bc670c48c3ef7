"""Pre-authored demo roster and elastic-mode fill-in fragments.

``DEFAULT_PRESETS`` is a declarative table keyed by agent id whose order is
the canonical narrative order (local -> foodie -> backpacker -> artist ->
techie). It seeds the demo roster, scripts the demo agent client, and
supplies synthetic fragments when fewer real agents take part than the
target count. Pass a different ``PresetTable`` to swap it out.
"""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel
from pydantic import Field

from storyloom.models import Agent
from storyloom.models import now_ms

_DAY_MS = 86_400_000


class FragmentPreset(BaseModel):
    """Everything one roster member would say, phase by phase."""

    agent_id: str
    agent_name: str
    shades: list[str] = Field(default_factory=list)
    memory_snippets: list[str] = Field(default_factory=list)
    # extraction
    title: str
    content: str
    emotion: str = "reflective"
    time_hint: str = ""
    unique_detail: str = ""
    # negotiation
    proposed_position: str = "middle"
    reason: str = ""
    connection_note: str = ""
    transition_hint: str = ""
    # weaving
    refined_content: str = ""

    def to_agent(self, *, joined_days_ago: int = 1) -> Agent:
        """Demo agent record; the agent id doubles as its access token."""
        now = now_ms()
        return Agent(
            id=self.agent_id,
            name=self.agent_name,
            access_token=self.agent_id,
            refresh_token=self.agent_id,
            token_expires_at=now + _DAY_MS,
            shades=list(self.shades),
            memory_snippets=list(self.memory_snippets),
            credits=10,
            joined_at=now - joined_days_ago * _DAY_MS,
        )


class PresetTable:
    """Ordered, read-only lookup of presets by agent id."""

    def __init__(self, presets: list[FragmentPreset]) -> None:
        self._presets = {p.agent_id: p for p in presets}
        if len(self._presets) != len(presets):
            raise ValueError("Preset agent ids must be unique")

    def __len__(self) -> int:
        return len(self._presets)

    def __iter__(self) -> Iterator[FragmentPreset]:
        return iter(self._presets.values())

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._presets

    def get(self, agent_id: str) -> FragmentPreset | None:
        return self._presets.get(agent_id)

    @property
    def canonical_order(self) -> list[str]:
        return list(self._presets)


DEFAULT_PRESETS = PresetTable(
    [
        FragmentPreset(
            agent_id="demo-local",
            agent_name="Xiaoyu the Local",
            shades=["Chengdu", "local culture", "dialect", "tea culture", "mahjong"],
            memory_snippets=[
                "Grew up in Chengdu and watched the city change for twenty years",
                "Misses Chunxi Road from before the malls arrived",
            ],
            title="Chunxi Road, then and now",
            content=(
                "Born and raised in Chengdu, I watched Chunxi Road turn from a street "
                "of bicycles into the IFS shopping district. As a kid I bought New Year "
                "goods there with my grandmother while a sugar-figure artisan worked "
                "the curb."
            ),
            emotion="nostalgic",
            time_hint="growing up",
            unique_detail="the sugar-figure artisan",
            proposed_position="opening",
            reason="A local memory gives the story its depth in time",
            connection_note="As the local I lay down the time depth for everyone else",
            transition_hint="from memory into the present",
            refined_content=(
                "I grew up in Chengdu, and Chunxi Road is the anchor of my memory. "
                "Grandma took me to the old department store for New Year goods, and "
                "the sugar-figure man pressed a butterfly into my palm. Twenty years "
                "later a giant panda climbs the IFS tower. You all arrived in a new "
                "Chengdu, but its roots hide in the vanished lanes and the flavors "
                "that never left."
            ),
        ),
        FragmentPreset(
            agent_id="demo-foodie",
            agent_name="Xiang the Foodie",
            shades=["food", "travel", "Chengdu", "hotpot", "street food"],
            memory_snippets=[
                "Found a hole-in-the-wall only locals know in a Chengdu alley",
                "Hotpot with ice-cold beer at 3 a.m. is the peak of life",
            ],
            title="Hotpot at 3 a.m.",
            content=(
                "At three in the morning last summer we found an unmarked diner on "
                "Yulin Road behind an iron door, packed with locals. The beef-tallow "
                "broth had me sweating, and with an ice-cold beer I knew it was the "
                "peak of taste."
            ),
            emotion="excited",
            time_hint="last summer",
            unique_detail="the iron door with no sign",
            proposed_position="middle",
            reason="Night-time Chengdu follows the old-city memories",
            connection_note="Follows the local's old Chengdu with the new generation's nightlife",
            transition_hint="carry the memory on through taste",
            refined_content=(
                "Some of the flavors Xiaoyu mentioned never vanished; they just went "
                "into hiding. At three in the morning last summer I found the proof on "
                "Yulin Road: an iron door with no sign, and behind it a diner full of "
                "locals. The beef-tallow heat went straight to the soul, and the "
                "owner's dipping sauce beat every famous spot in town."
            ),
        ),
        FragmentPreset(
            agent_id="demo-backpacker",
            agent_name="Lu the Backpacker",
            shades=["backpacking", "hostels", "budget travel", "city walks", "photography"],
            memory_snippets=[
                "Made friends from five countries at a Chengdu hostel",
                "Saw the most genuine Chengdu life in a People's Park teahouse",
            ],
            title="An afternoon in the teahouse",
            content=(
                "The Heming teahouse in People's Park changed what travel means to me. "
                "I meant to stay half an hour and stayed all afternoon: chess at the "
                "next table, knitting across from me, three-yuan jasmine tea in the "
                "sun."
            ),
            emotion="reflective",
            time_hint="last autumn",
            unique_detail="three-yuan jasmine tea",
            proposed_position="middle",
            reason="Slows the story down after the night",
            connection_note="Moves from taste to the rhythm of daily life",
            transition_hint="from night into day",
            refined_content=(
                "After the hotpot steam cleared, I met the other Chengdu. In the Heming "
                "teahouse time keeps its own speed. I meant to stay half an hour, but "
                "the sunlit bamboo chairs, three-yuan jasmine tea and an old man's "
                "chess endgame pinned me there. That afternoon taught me that travel "
                "is learning to live one day at someone else's pace."
            ),
        ),
        FragmentPreset(
            agent_id="demo-artist",
            agent_name="Mo the Painter",
            shades=["art", "painting", "urban sketching", "design", "aesthetics"],
            memory_snippets=[
                "Sketching in Kuanzhai Alley drew a crowd of advising old men",
                "Chengdu's grey-blue sky has an ink-wash quality",
            ],
            title="Light in Kuanzhai Alley",
            content=(
                "Sketching in Kuanzhai Alley, three old men told me my sky was wrong: "
                "Chengdu's sky is never that blue. They were right. It is grey-blue, "
                "like rice paper washed in tea, and that palette became my most "
                "loved series."
            ),
            emotion="surprising",
            time_hint="two winters ago",
            unique_detail="grey-blue like tea-washed rice paper",
            proposed_position="climax",
            reason="Turns lived experience into creation",
            connection_note="Lifts everyday feeling into artistic expression",
            transition_hint="from experience to creation",
            refined_content=(
                "Lu learned to live at Chengdu's pace; I tried to paint that pace, and "
                "Chengdu corrected me. Three old men in Kuanzhai Alley said my sky was "
                "wrong. I looked up: grey-blue, like rice paper washed in tea. I threw "
                "out my palette and started over, and that tea-colored series became "
                "the heart of my solo show."
            ),
        ),
        FragmentPreset(
            agent_id="demo-techie",
            agent_name="Zhang the Coder",
            shades=["internet", "startups", "tech", "coffee", "digital nomad"],
            memory_snippets=[
                "Shipped a first solo project in a Tianfu Software Park cafe",
                "The city's slow pace made me more productive",
            ],
            title="Code in a Tianfu cafe",
            content=(
                "I spent a month in an independent cafe near Tianfu Software Park and "
                "shipped my first solo project. Rent was a third of Shenzhen's, and "
                "after lunchtime tai chi in the park my afternoons of coding doubled "
                "in output."
            ),
            emotion="reflective",
            time_hint="three years ago",
            unique_detail="tai chi before coding doubled output",
            proposed_position="closing",
            reason="Ends on what the city gives back",
            connection_note="Extends artistic creation into building technology",
            transition_hint="from creating to founding",
            refined_content=(
                "Mo found a new palette in Chengdu's sky; I found a new rhythm for "
                "work. Three years ago I fled Shenzhen for a cafe beside Tianfu "
                "Software Park. After watching tai chi at noon, my code flowed faster "
                "than it ever had. Slow is not inefficient; it is a way of creating "
                "that lasts. Chengdu never rushes you, but it changes you."
            ),
        ),
    ]
)
