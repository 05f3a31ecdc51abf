# system_prompt_store.py
# Description: Global and per-conversation system prompt storage and resolution
#
# Imports
import json
from typing import Dict, Iterable, Optional
#
# Third-party imports
from loguru import logger
#
# Local imports
from llmchat.config import DEFAULT_SYSTEM_PROMPT
from llmchat.DB.kv_store import KeyValueStore
#
logger = logger.bind(module="system_prompt_store")
#
#######################################################################################################################
#
# Constants:

SYSTEM_PROMPT_GLOBAL_KEY = "llmchat.systemPrompt.global"
SYSTEM_PROMPT_OVERRIDES_KEY = "llmchat.systemPrompt.overrides"
MAX_PROMPT_LENGTH = 4000

#
#######################################################################################################################
#
# Functions:

def clamp_prompt(prompt: str, limit: int = MAX_PROMPT_LENGTH) -> str:
    """Soft limit system prompts to `limit` characters."""
    return prompt if len(prompt) <= limit else prompt[:limit]

#
#######################################################################################################################
#
# Classes:

class SystemPromptStore:
    """
    Resolves the system prompt sent at the start of a new conversation.

    A per-conversation override wins when present and non-blank; otherwise the
    stored global prompt; otherwise the fallback constant. Blank input always
    clears rather than storing, and stored prompts are clamped to 4000 characters.
    """

    def __init__(self, storage: KeyValueStore, fallback_prompt: str = DEFAULT_SYSTEM_PROMPT):
        self.storage = storage
        self.fallback_prompt = fallback_prompt

    # --- Global prompt ---

    def get_default(self) -> str:
        raw = (self.storage.get(SYSTEM_PROMPT_GLOBAL_KEY) or "").strip()
        if not raw:
            return self.fallback_prompt
        return clamp_prompt(raw)

    def set_default(self, prompt: str) -> None:
        trimmed = (prompt or "").strip()
        if not trimmed:
            self.storage.delete(SYSTEM_PROMPT_GLOBAL_KEY)
            logger.debug("Global system prompt cleared, using fallback")
            return
        self.storage.set(SYSTEM_PROMPT_GLOBAL_KEY, clamp_prompt(trimmed))

    # --- Per-conversation overrides ---

    def get_override(self, conversation_id: str) -> Optional[str]:
        return self._load_overrides().get(conversation_id)

    def set_override(self, conversation_id: str, prompt: str) -> None:
        trimmed = (prompt or "").strip()
        if not trimmed:
            self.clear_override(conversation_id)
            return
        overrides = self._load_overrides()
        overrides[conversation_id] = clamp_prompt(trimmed)
        self._save_overrides(overrides)

    def clear_override(self, conversation_id: str) -> None:
        overrides = self._load_overrides()
        if overrides.pop(conversation_id, None) is not None:
            self._save_overrides(overrides)

    def resolve(self, conversation_id: Optional[str] = None) -> str:
        if conversation_id is not None:
            override = (self.get_override(conversation_id) or "").strip()
            if override:
                return clamp_prompt(override)
        return self.get_default()

    def prune_overrides(self, valid_ids: Iterable[str]) -> None:
        valid = set(valid_ids)
        overrides = self._load_overrides()
        kept = {cid: prompt for cid, prompt in overrides.items() if cid in valid}
        if len(kept) != len(overrides):
            logger.debug(f"Pruned {len(overrides) - len(kept)} stale system prompt override(s)")
            self._save_overrides(kept)

    # --- Helpers ---

    def _load_overrides(self) -> Dict[str, str]:
        raw = self.storage.get(SYSTEM_PROMPT_OVERRIDES_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored system prompt overrides are corrupt, ignoring them")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save_overrides(self, overrides: Dict[str, str]) -> None:
        if overrides:
            self.storage.set(SYSTEM_PROMPT_OVERRIDES_KEY, json.dumps(overrides))
        else:
            self.storage.delete(SYSTEM_PROMPT_OVERRIDES_KEY)

#
# End of system_prompt_store.py
#######################################################################################################################
