"""
Tests for reasoning/answer tag extraction
"""

from models import ReasoningAnswer
from tag_utils import extract_partial, extract_reasoning_answer, iter_extractions


class TestExtractReasoningAnswer:
    def test_fallback_without_tags(self):
        assert extract_reasoning_answer("no tags here") == ReasoningAnswer(reasoning="", answer="no tags here")

    def test_both_tags(self):
        parts = extract_reasoning_answer("<reasoning>because\nX</reasoning>\n<answer>\n- A\n- B\n</answer>")
        assert parts.reasoning == "because\nX"
        assert parts.answer == "- A\n- B"

    def test_answer_fallback_is_trimmed(self):
        assert extract_reasoning_answer("  \n- A\n  ").answer == "- A"

    def test_reasoning_only(self):
        parts = extract_reasoning_answer("<reasoning>why</reasoning>\n- A")
        assert parts.reasoning == "why"
        assert parts.answer == "<reasoning>why</reasoning>\n- A"

    def test_tags_inside_other_text(self):
        parts = extract_reasoning_answer("Sure! <answer>- A</answer> Hope this helps.")
        assert parts.answer == "- A"

    def test_first_match_wins(self):
        parts = extract_reasoning_answer("<answer>first</answer><answer>second</answer>")
        assert parts.answer == "first"

    def test_unclosed_answer_falls_back(self):
        assert extract_reasoning_answer("<answer>\n- A").answer == "<answer>\n- A"

    def test_empty_and_none(self):
        assert extract_reasoning_answer("") == ReasoningAnswer()
        assert extract_reasoning_answer(None) == ReasoningAnswer()


class TestExtractPartial:
    def test_open_reasoning_hides_answer(self):
        parts = extract_partial("<reasoning>thinking about")
        assert parts.reasoning == "thinking about"
        assert parts.answer == ""

    def test_open_answer(self):
        parts = extract_partial("<reasoning>done</reasoning>\n<answer>\n- A\n- B")
        assert parts.reasoning == "done"
        assert parts.answer == "- A\n- B"

    def test_half_received_closing_tag_is_dropped(self):
        parts = extract_partial("<answer>\n- A\n</ans")
        assert parts.answer == "- A"

    def test_complete_snapshot_matches_final_extraction(self):
        text = "<reasoning>r</reasoning><answer>\n- A\n</answer>"
        assert extract_partial(text) == extract_reasoning_answer(text)

    def test_untagged_snapshot(self):
        assert extract_partial("- A\n- B").answer == "- A\n- B"


class TestIterExtractions:
    def test_growing_snapshots(self):
        snapshots = ["<reasoning>a", "<reasoning>ab</reasoning><answer>- X", "<reasoning>ab</reasoning><answer>- X\n- Y</answer>"]
        results = list(iter_extractions(snapshots))
        assert [r.reasoning for r in results] == ["a", "ab", "ab"]
        assert [r.answer for r in results] == ["", "- X", "- X\n- Y"]

    def test_is_lazy(self):
        consumed = []

        def gen():
            for s in ["- A", "- A\n- B"]:
                consumed.append(s)
                yield s

        it = iter_extractions(gen())
        assert consumed == []
        next(it)
        assert consumed == ["- A"]
