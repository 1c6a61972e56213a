"""Tests for fallback_prompts and context_history modules."""

import random

from context_history import ContextHistory
from fallback_prompts import FALLBACK_GRAMMAR, random_prompt, related_prompt


class TestFallbackPrompts:
    """Tests for the fallback prompt grammar."""

    def test_random_prompt_is_a_scene(self):
        assert random_prompt() in FALLBACK_GRAMMAR["scene"]

    def test_random_prompt_reproducible(self):
        random.seed(7)
        first = random_prompt()
        random.seed(7)
        assert random_prompt() == first

    def test_related_prompt_uses_last_entry(self):
        result = related_prompt(["a red barn", "a misty lake"])

        assert result.endswith("a misty lake")
        theme = result[: -len("a misty lake")].strip()
        assert theme in FALLBACK_GRAMMAR["theme"]

    def test_related_prompt_ignores_blank_entries(self):
        assert related_prompt(["a misty lake", "  "]).endswith("a misty lake")

    def test_related_prompt_without_history(self):
        assert related_prompt([]) in FALLBACK_GRAMMAR["scene"]
        assert related_prompt(None) in FALLBACK_GRAMMAR["scene"]

    def test_related_prompt_strips_grammar_syntax(self):
        result = related_prompt(["#origin# [x:y] castle"])

        assert "#" not in result
        assert result.endswith("origin x:y castle")


class TestContextHistory:
    """Tests for ContextHistory."""

    def test_history_is_capped(self):
        history = ContextHistory(max_history=3)
        for i in range(5):
            history.add(f"prompt {i}")
            history.add_prompt(f"prompt {i}")

        assert [e.original for e in history.entries] == ["prompt 2", "prompt 3", "prompt 4"]
        assert history.prompts == ["prompt 2", "prompt 3", "prompt 4"]

    def test_enhanced_defaults_to_original(self):
        entry = ContextHistory().add("a lake")
        assert entry.enhanced == "a lake"

    def test_can_start_contextual(self):
        history = ContextHistory()
        assert not history.can_start_contextual(1)

        history.add_prompt("a lake")
        assert history.can_start_contextual(1)

    def test_recent_prompts(self):
        history = ContextHistory()
        for p in ["a", "b", "c", "d"]:
            history.add_prompt(p)

        assert history.recent_prompts() == ["b", "c", "d"]

    def test_inspired_prompt(self):
        history = ContextHistory()
        history.add_prompt("a lake")
        history.add_prompt("a barn")

        result = history.inspired_prompt(random.Random(1))

        assert result.startswith("Inspired by: ")
        assert result.endswith(", create something related but unique")
        assert "a lake" in result
        assert "a barn" in result

    def test_inspired_prompt_empty(self):
        assert ContextHistory().inspired_prompt() is None

    def test_clear(self):
        history = ContextHistory()
        history.add("x")
        history.add_prompt("x")
        history.clear()

        assert history.entries == []
        assert history.prompts == []
