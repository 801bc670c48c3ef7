"""Engine domain — the narrative pipeline and its helpers."""

from storyloom.engine.composition import compose_narrative
from storyloom.engine.composition import completion_percent
from storyloom.engine.composition import GENERIC_FAILURE_MESSAGE
from storyloom.engine.composition import NO_PARTICIPANTS_MESSAGE
from storyloom.engine.composition import sort_by_position
from storyloom.engine.matching import clamp_real_count
from storyloom.engine.matching import create_elastic_story
from storyloom.engine.matching import create_story
from storyloom.engine.matching import match_agents_for_theme
from storyloom.engine.matching import seed_demo_agents
from storyloom.engine.orchestrator import NarrativeOrchestrator
from storyloom.engine.orchestrator import SYNTHETIC_NAME_SUFFIX

__all__ = [
    "GENERIC_FAILURE_MESSAGE",
    "NO_PARTICIPANTS_MESSAGE",
    "NarrativeOrchestrator",
    "SYNTHETIC_NAME_SUFFIX",
    "clamp_real_count",
    "completion_percent",
    "compose_narrative",
    "create_elastic_story",
    "create_story",
    "match_agents_for_theme",
    "seed_demo_agents",
    "sort_by_position",
]
