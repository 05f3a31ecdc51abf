"""
Chat session state.
"""

from typing import List, Optional

from loguru import logger

from llmchat.Chat.chat_errors import ChatError
from llmchat.Chat.chat_models import (EMPTY_PARAMETERS, Conversation, Message, ModelDescriptor,
                                      ModelParameters)
from llmchat.state.observable import Observable, observable


class ChatSessionState(Observable):
    """
    Everything the presentation layer renders, as observable fields.

    Only the session engine and its orchestrator assign these; views subscribe.
    """

    messages: List[Message] = observable(list)
    conversations: List[Conversation] = observable(list)
    current_conversation: Optional[Conversation] = observable(None)
    is_sending: bool = observable(False)
    error: Optional[ChatError] = observable(None)
    selected_model: Optional[ModelDescriptor] = observable(None)
    models: List[ModelDescriptor] = observable(list)
    is_loading_models: bool = observable(False)
    model_parameters: ModelParameters = observable(EMPTY_PARAMETERS)

    @property
    def active_conversations(self) -> List[Conversation]:
        return [c for c in self.conversations if c.is_active]

    def watch_error(self, old: Optional[ChatError], new: Optional[ChatError]) -> None:
        if new is not None:
            logger.warning(f"Session error ({new.kind}): {new}")
