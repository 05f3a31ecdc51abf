"""Tests for system prompt resolution, overrides and clamping."""

import pytest

from llmchat.Chat.system_prompt_store import (MAX_PROMPT_LENGTH, SYSTEM_PROMPT_GLOBAL_KEY,
                                              SYSTEM_PROMPT_OVERRIDES_KEY, SystemPromptStore, clamp_prompt)
from llmchat.config import DEFAULT_SYSTEM_PROMPT


class TestGlobalPrompt:

    def test_fallback_when_nothing_stored(self, prompt_store):
        assert prompt_store.get_default() == DEFAULT_SYSTEM_PROMPT

    def test_custom_fallback(self, memory_store):
        store = SystemPromptStore(memory_store, fallback_prompt="Be brief.")
        assert store.resolve() == "Be brief."

    def test_set_default_trims(self, prompt_store):
        prompt_store.set_default("  Answer in French.  ")
        assert prompt_store.get_default() == "Answer in French."

    @pytest.mark.parametrize("blank", ["", "   ", "\n"])
    def test_blank_clears(self, prompt_store, memory_store, blank):
        prompt_store.set_default("Something")
        prompt_store.set_default(blank)

        assert SYSTEM_PROMPT_GLOBAL_KEY not in memory_store
        assert prompt_store.get_default() == DEFAULT_SYSTEM_PROMPT

    def test_clamped_to_exactly_max_length(self, prompt_store):
        prompt_store.set_default("x" * (MAX_PROMPT_LENGTH + 500))
        assert len(prompt_store.get_default()) == MAX_PROMPT_LENGTH

    def test_oversized_value_written_elsewhere_is_clamped_on_read(self, prompt_store, memory_store):
        memory_store.set(SYSTEM_PROMPT_GLOBAL_KEY, "y" * (MAX_PROMPT_LENGTH + 1))
        assert len(prompt_store.get_default()) == MAX_PROMPT_LENGTH


class TestOverrides:

    def test_override_wins(self, prompt_store):
        prompt_store.set_default("Global")
        prompt_store.set_override("c1", "Local")

        assert prompt_store.resolve("c1") == "Local"
        assert prompt_store.resolve("c2") == "Global"

    def test_missing_id_yields_default(self, prompt_store):
        prompt_store.set_override("c1", "Local")
        assert prompt_store.resolve(None) == DEFAULT_SYSTEM_PROMPT

    def test_blank_override_clears(self, prompt_store):
        prompt_store.set_override("c1", "Local")
        prompt_store.set_override("c1", "   ")

        assert prompt_store.get_override("c1") is None
        assert prompt_store.resolve("c1") == DEFAULT_SYSTEM_PROMPT

    def test_override_clamped(self, prompt_store):
        prompt_store.set_override("c1", "z" * (MAX_PROMPT_LENGTH * 2))
        assert len(prompt_store.resolve("c1")) == MAX_PROMPT_LENGTH

    def test_clear_override(self, prompt_store, memory_store):
        prompt_store.set_override("c1", "Local")
        prompt_store.clear_override("c1")

        assert prompt_store.get_override("c1") is None
        assert SYSTEM_PROMPT_OVERRIDES_KEY not in memory_store

    def test_prune_removes_unknown_ids(self, prompt_store):
        prompt_store.set_override("keep", "A")
        prompt_store.set_override("drop", "B")

        prompt_store.prune_overrides(["keep", "other"])

        assert prompt_store.get_override("keep") == "A"
        assert prompt_store.get_override("drop") is None

    def test_corrupt_override_map_is_treated_as_empty(self, prompt_store, memory_store):
        memory_store.set(SYSTEM_PROMPT_OVERRIDES_KEY, "[not a map")
        assert prompt_store.resolve("c1") == DEFAULT_SYSTEM_PROMPT

        prompt_store.set_override("c1", "Fresh")
        assert prompt_store.get_override("c1") == "Fresh"


def test_clamp_prompt_leaves_short_text_alone():
    assert clamp_prompt("short") == "short"
    assert clamp_prompt("abcdef", limit=3) == "abc"
