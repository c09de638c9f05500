"""Tests for text utilities and the prompt registry (F1)."""

import re

import pytest

from aitutor.prompts.registry import PROMPTS_DIR, clear_cache, get_prompt, list_prompts
from aitutor.utils.text_utils import (
    make_id,
    strip_think,
    strip_think_streaming,
    truncate,
    unique_id,
)


class TestStripThink:
    """Tests for strip_think."""

    def test_removes_think_block(self):
        assert strip_think("<think>hmm</think>Answer") == "Answer"

    def test_removes_multiline_block(self):
        text = "<thinking>\nstep 1\nstep 2\n</thinking>\nThe answer is 4."
        assert strip_think(text) == "The answer is 4."

    def test_plain_text_unchanged(self):
        assert strip_think("Just text") == "Just text"


class TestStripThinkStreaming:
    """Tests for the streaming think filter."""

    def _run(self, chunks):
        output, buffer, in_think = "", "", False
        for chunk in chunks:
            out, buffer, in_think = strip_think_streaming(chunk, buffer, in_think)
            output += out
        return output, buffer, in_think

    def test_tag_split_across_chunks(self):
        output, buffer, in_think = self._run(["Hi <thi", "nk>secret</th", "ink> there"])

        assert output == "Hi  there"
        assert buffer == ""
        assert in_think is False

    def test_unclosed_think_hides_rest(self):
        output, _, in_think = self._run(["A<think>never", " closed"])

        assert output == "A"
        assert in_think is True

    def test_plain_chunks_pass_through(self):
        output, _, _ = self._run(["one ", "two"])
        assert output == "one two"


class TestIds:
    """Tests for id helpers."""

    def test_make_id_format(self):
        assert re.fullmatch(r"set-\d{13}", make_id("set"))
        assert re.fullmatch(r"fc-\d{13}-3", make_id("fc", 3))

    def test_unique_id_avoids_existing(self):
        first = unique_id("card", set())
        second = unique_id("card", {first})

        assert second != first
        assert second.startswith("card-")


class TestTruncate:
    """Tests for truncate."""

    def test_cuts_and_appends_suffix(self):
        text = "Explain the theory of relativity to me please"
        assert truncate(text) == text[:30] + "..."

    def test_short_text_still_gets_suffix(self):
        assert truncate("Hello") == "Hello..."


class TestPromptRegistry:
    """Tests for prompt loading and substitution."""

    def test_list_prompts(self):
        prompts = list_prompts()

        assert "tutor/system" in prompts
        assert "flashcards/generate" in prompts
        assert "flashcards/card_answer" in prompts
        assert "quiz/generate" in prompts

    def test_substitutes_variables(self):
        prompt = get_prompt("flashcards/generate", topic="Photosynthesis", count=5)

        assert 'Create 5 study flashcards about "Photosynthesis".' in prompt
        assert "{topic}" not in prompt

    def test_substituted_values_are_not_rescanned(self):
        prompt = get_prompt("flashcards/generate", topic="{count}", count=3)

        assert 'Create 3 study flashcards about "{count}".' in prompt

    def test_unknown_placeholder_left_alone(self):
        prompt = get_prompt("flashcards/generate", topic="Cells")

        assert "Create {count} study flashcards" in prompt

    def test_quiz_prompt(self):
        prompt = get_prompt("quiz/generate", topic="WWII", difficulty="Beginner", count=3)
        assert "Beginner level multiple-choice quiz with 3 questions" in prompt

    def test_json_braces_survive(self):
        assert '"cards"' in get_prompt("flashcards/system")

    def test_unknown_prompt(self):
        with pytest.raises(FileNotFoundError):
            get_prompt("nope/missing")

    def test_cache_and_clear(self):
        first = get_prompt("tutor/system", learning_style="Visual")
        clear_cache()
        assert get_prompt("tutor/system", learning_style="Visual") == first
        assert PROMPTS_DIR.is_dir()
