"""Unit tests for the story domain models and agent response schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from storyloom.models import Emotion
from storyloom.models import ExtractionResponse
from storyloom.models import MemoryFragment
from storyloom.models import NarrativePosition
from storyloom.models import ProposalResponse
from storyloom.models import Story
from storyloom.models import StoryStatus
from storyloom.repository import merge_story


def _fragment(**kwargs) -> MemoryFragment:
    defaults = {"agent_id": "a", "agent_name": "A", "content": "raw"}
    defaults.update(kwargs)
    return MemoryFragment(**defaults)


# ---------------------------------------------------------------------------
# StoryStatus
# ---------------------------------------------------------------------------


class TestStoryStatus:
    def test_forward_transitions_allowed(self):
        assert StoryStatus.waiting.can_advance_to(StoryStatus.extracting)
        assert StoryStatus.extracting.can_advance_to(StoryStatus.negotiating)
        assert StoryStatus.negotiating.can_advance_to(StoryStatus.completed)

    def test_backward_and_repeat_rejected(self):
        assert not StoryStatus.weaving.can_advance_to(StoryStatus.negotiating)
        assert not StoryStatus.weaving.can_advance_to(StoryStatus.weaving)
        assert not StoryStatus.completed.can_advance_to(StoryStatus.completed)

    def test_only_completed_is_terminal(self):
        assert [s for s in StoryStatus if s.is_terminal] == [StoryStatus.completed]

    def test_step_follows_declaration_order(self):
        assert [s.step for s in StoryStatus] == list(range(6))


# ---------------------------------------------------------------------------
# Emotion / NarrativePosition
# ---------------------------------------------------------------------------


class TestEmotion:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("happy", Emotion.happy),
            (" Nostalgic ", Emotion.nostalgic),
            ("melancholic", Emotion.reflective),
            (None, Emotion.reflective),
            (Emotion.excited, Emotion.excited),
        ],
    )
    def test_parse_is_lenient(self, raw, expected):
        assert Emotion.parse(raw) is expected

    def test_fragment_accepts_unknown_emotion(self):
        assert _fragment(emotion="bittersweet").emotion is Emotion.reflective


class TestNarrativePosition:
    def test_story_order(self):
        ranks = [NarrativePosition.rank_of(p) for p in ("opening", "middle", "climax", "closing")]
        assert ranks == [0, 1, 2, 3]

    @pytest.mark.parametrize("raw", [None, "", "epilogue", "OPENING"])
    def test_unknown_ranks_as_middle(self, raw):
        assert NarrativePosition.rank_of(raw) == NarrativePosition.middle.rank


# ---------------------------------------------------------------------------
# MemoryFragment / Story
# ---------------------------------------------------------------------------


class TestMemoryFragment:
    def test_defaults(self):
        fragment = _fragment()
        assert fragment.proposed_position is None
        assert fragment.refined_content is None
        assert fragment.is_ai_generated is False
        assert fragment.position_rank == NarrativePosition.middle.rank

    def test_display_content_prefers_refined(self):
        assert _fragment().display_content == "raw"
        assert _fragment(refined_content="woven").display_content == "woven"
        assert _fragment(refined_content="").display_content == "raw"


class TestStory:
    def test_defaults(self):
        story = Story(id="s1", theme="Chengdu")
        assert story.status is StoryStatus.waiting
        assert story.fragments == []
        assert story.final_narrative is None
        assert story.created_at > 0
        assert story.is_elastic is False

    def test_elastic_when_target_set(self):
        story = Story(id="s1", theme="t", target_piece_count=5, real_piece_count=2)
        assert story.is_elastic is True

    def test_json_round_trip(self):
        story = Story(
            id="s1",
            theme="t",
            status=StoryStatus.weaving,
            fragments=[_fragment(proposed_position="climax")],
        )
        restored = Story.model_validate_json(story.model_dump_json())
        assert restored == story


# ---------------------------------------------------------------------------
# merge_story
# ---------------------------------------------------------------------------


class TestMergeStory:
    def test_merges_fields(self):
        story = Story(id="s1", theme="t")
        merged = merge_story(
            story, {"status": StoryStatus.extracting, "fragments": [_fragment()]}
        )
        assert merged.status is StoryStatus.extracting
        assert merged.fragments[0].agent_id == "a"
        assert story.status is StoryStatus.waiting

    def test_result_does_not_alias_input(self):
        fragments = [_fragment()]
        merged = merge_story(Story(id="s1", theme="t"), {"fragments": fragments})
        fragments[0].content = "mutated"
        assert merged.fragments[0].content == "raw"

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown story fields: colour"):
            merge_story(Story(id="s1", theme="t"), {"colour": "red"})

    def test_id_change_rejected(self):
        with pytest.raises(ValueError, match="cannot be changed"):
            merge_story(Story(id="s1", theme="t"), {"id": "s2"})

    def test_invalid_value_rejected(self):
        with pytest.raises(ValidationError):
            merge_story(Story(id="s1", theme="t"), {"status": "sleeping"})


# ---------------------------------------------------------------------------
# Agent response schemas
# ---------------------------------------------------------------------------


class TestExtractionResponse:
    def test_defaults_to_no_memory(self):
        response = ExtractionResponse.model_validate({})
        assert response.has_memory is False
        assert response.emotion == "reflective"

    def test_nulls_treated_as_absent(self):
        response = ExtractionResponse.model_validate(
            {"has_memory": True, "memory_title": None, "emotion": None}
        )
        assert response.memory_title == ""
        assert response.emotion == "reflective"

    def test_extra_keys_ignored(self):
        response = ExtractionResponse.model_validate(
            {"has_memory": True, "memory_content": "c", "mood": "great"}
        )
        assert response.memory_content == "c"


class TestProposalResponse:
    def test_defaults_to_middle(self):
        assert ProposalResponse.model_validate({}).proposed_position == "middle"

    def test_wrong_type_rejected(self):
        with pytest.raises(ValidationError):
            ProposalResponse.model_validate({"proposed_position": ["opening"]})
