# conversation_store.py
# Description: Durable copies of conversation metadata and per-conversation transcripts
#
# Imports
import sqlite3
from typing import Iterable, List, Optional
#
# Third-party imports
import pydantic
from loguru import logger
from pydantic import TypeAdapter
#
# Local imports
from llmchat.Chat.chat_models import Conversation, Message
from llmchat.DB.kv_store import KeyValueStore
#
logger = logger.bind(module="conversation_store")
#
#######################################################################################################################
#
# Constants:

CONVERSATIONS_KEY = "llmchat.conversations"
MESSAGES_KEY_PREFIX = "llmchat.messages."

_CONVERSATION_LIST = TypeAdapter(List[Conversation])
_MESSAGE_LIST = TypeAdapter(List[Message])

#
#######################################################################################################################
#
# Classes:

class ConversationStore:
    """
    System of record for conversations and transcripts.

    First run and corrupt data both read back as an empty list; write failures
    are logged and dropped so a broken disk never interrupts a chat.
    """

    def __init__(self, storage: KeyValueStore):
        self.storage = storage

    @staticmethod
    def messages_key(conversation_id: str) -> str:
        return f"{MESSAGES_KEY_PREFIX}{conversation_id}"

    def load_conversations(self) -> List[Conversation]:
        raw = self._read(CONVERSATIONS_KEY)
        if raw is None:
            return []
        try:
            return _CONVERSATION_LIST.validate_json(raw)
        except pydantic.ValidationError:
            logger.warning("Stored conversation list is malformed, starting with an empty list")
            return []

    def save_conversations(self, conversations: List[Conversation]) -> None:
        self._write(CONVERSATIONS_KEY, _CONVERSATION_LIST.dump_json(conversations).decode("utf-8"))

    def load_messages(self, conversation_id: str) -> List[Message]:
        raw = self._read(self.messages_key(conversation_id))
        if raw is None:
            return []
        try:
            return _MESSAGE_LIST.validate_json(raw)
        except pydantic.ValidationError:
            logger.warning(f"Stored transcript for conversation {conversation_id} is malformed, ignoring it")
            return []

    def save_messages(self, conversation_id: str, messages: List[Message]) -> None:
        self._write(self.messages_key(conversation_id), _MESSAGE_LIST.dump_json(messages).decode("utf-8"))

    def delete_messages(self, conversation_id: str) -> None:
        try:
            self.storage.delete(self.messages_key(conversation_id))
        except sqlite3.Error as e:
            logger.error(f"Failed to delete transcript for conversation {conversation_id}: {e}")

    def prune_transcripts(self, valid_ids: Iterable[str]) -> List[str]:
        """
        Delete stored transcripts whose conversation is no longer listed.

        Returns:
            The conversation ids whose transcripts were removed
        """
        keep = set(valid_ids)
        try:
            stored = [key[len(MESSAGES_KEY_PREFIX):] for key in self.storage.keys(MESSAGES_KEY_PREFIX)]
        except sqlite3.Error as e:
            logger.error(f"Failed to list stored transcripts: {e}")
            return []
        orphans = [conversation_id for conversation_id in stored if conversation_id not in keep]
        for conversation_id in orphans:
            self.delete_messages(conversation_id)
        if orphans:
            logger.info(f"Pruned {len(orphans)} orphaned transcript(s)")
        return orphans

    # --- Helpers ---

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.storage.get(key)
        except sqlite3.Error as e:
            logger.error(f"Failed to read '{key}': {e}")
            return None

    def _write(self, key: str, value: str) -> None:
        try:
            self.storage.set(key, value)
        except sqlite3.Error as e:
            logger.error(f"Failed to persist '{key}': {e}")

#
# End of conversation_store.py
#######################################################################################################################
