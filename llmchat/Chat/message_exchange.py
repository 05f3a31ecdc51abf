# message_exchange.py
# Description: Builds wire history, talks to the provider gateway (streaming first),
#              and keeps the transcript, conversation preview and storage in step
#
# Imports
import asyncio
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple
#
# Third-party imports
from loguru import logger
#
# Local imports
from llmchat.Chat.chat_errors import classify_error
from llmchat.Chat.chat_models import Conversation, Message, MessageRole, ModelDescriptor, ModelParameters
from llmchat.Chat.conversation_store import ConversationStore
from llmchat.Chat.system_prompt_store import SystemPromptStore
from llmchat.LLM_Calls.provider_gateway import ProviderGateway, StreamingProviderGateway, streaming_capability
from llmchat.state.session_state import ChatSessionState
#
logger = logger.bind(module="message_exchange")
#
#######################################################################################################################
#
# Functions:

def can_regenerate(transcript: Sequence[Message]) -> bool:
    """True when the transcript ends with a user message followed by an assistant reply."""
    if len(transcript) < 2:
        return False
    return transcript[-1].role == MessageRole.ASSISTANT and transcript[-2].role == MessageRole.USER

#
#######################################################################################################################
#
# Classes:

class MessageExchange:
    """
    Runs one send or regenerate at a time per conversation.

    Per call: Idle -> Sending -> (Streaming | NonStreaming) -> Completed | Failed.
    The user message is appended and persisted before the first await, the
    Sending flag is always cleared on exit, and failures land in
    `state.error` instead of propagating.
    """

    def __init__(self,
                 state: ChatSessionState,
                 store: ConversationStore,
                 prompts: SystemPromptStore,
                 gateway_provider: Callable[[], ProviderGateway],
                 clock: Callable[[], datetime] = datetime.now):
        self.state = state
        self.store = store
        self.prompts = prompts
        self._gateway_provider = gateway_provider
        self._clock = clock
        self._in_flight: Set[str] = set()

    # --- Public API ---

    def is_in_flight(self, conversation_id: str) -> bool:
        return conversation_id in self._in_flight

    def build_wire_history(self, prior: Sequence[Message], conversation_id: str) -> List[Message]:
        """The prior transcript, or only a system prompt when the conversation is new."""
        if prior:
            return list(prior)
        return [Message(content=self.prompts.resolve(conversation_id), role=MessageRole.SYSTEM)]

    def persist_conversations(self, conversations: Iterable[Conversation]) -> None:
        """Save the conversation list and drop prompt overrides of conversations that are gone."""
        conversations = list(conversations)
        self.store.save_conversations(conversations)
        self.prompts.prune_overrides(c.id for c in conversations)

    async def send(self, text: str, conversation: Optional[Conversation], model: Optional[ModelDescriptor],
                   parameters: ModelParameters) -> bool:
        """
        Send `text` in `conversation`.

        Returns:
            True if an assistant reply was appended, False on no-op or failure
        """
        if model is None or conversation is None:
            logger.debug("send ignored: no model or conversation selected")
            return False
        if not text or not text.strip():
            return False
        if not self._begin(conversation.id):
            return False

        try:
            prior = self._transcript_for(conversation)
            wire_history = self.build_wire_history(prior, conversation.id)

            transcript = prior + [Message(content=text, role=MessageRole.USER)]
            self._publish(conversation.id, transcript)
            self.store.save_messages(conversation.id, transcript)

            return await self._exchange(text, wire_history, transcript, conversation, model, parameters)
        finally:
            self._finish(conversation.id)

    async def regenerate_last(self, conversation: Optional[Conversation], model: Optional[ModelDescriptor],
                              parameters: ModelParameters) -> bool:
        """Replace the last assistant reply with a fresh one for the same user message."""
        if model is None or conversation is None:
            return False
        transcript = self._transcript_for(conversation)
        if not can_regenerate(transcript):
            logger.debug("regenerate ignored: transcript does not end with a user/assistant pair")
            return False
        if not self._begin(conversation.id):
            return False

        try:
            user_index = len(transcript) - 2
            user_message = transcript[user_index]
            base = transcript[:-1]
            self._publish(conversation.id, base)
            self.store.save_messages(conversation.id, base)

            wire_history = self.build_wire_history(transcript[:user_index], conversation.id)
            return await self._exchange(user_message.content, wire_history, base, conversation, model, parameters)
        finally:
            self._finish(conversation.id)

    # --- Exchange machinery ---

    async def _exchange(self, text: str, wire_history: List[Message], transcript: List[Message],
                        conversation: Conversation, model: ModelDescriptor, parameters: ModelParameters) -> bool:
        try:
            gateway = self._gateway_provider()
            reply: Optional[str] = None

            streaming = streaming_capability(gateway, model)
            if streaming is not None:
                reply, completed = await self._stream_reply(streaming, text, wire_history, transcript,
                                                            conversation.id, model, parameters)
            if reply is None:
                logger.debug(f"Blocking request for conversation {conversation.id}")
                reply = await gateway.send_message(text, wire_history, model, parameters)
                completed = transcript + [Message(content=reply, role=MessageRole.ASSISTANT)]
                self._publish(conversation.id, completed)
        except asyncio.CancelledError:
            self._publish(conversation.id, transcript)
            raise
        except Exception as exc:
            error = classify_error(exc)
            logger.error(f"Exchange failed for conversation {conversation.id}: [{error.kind}] {error}")
            self._publish(conversation.id, transcript)
            self.state.error = error
            return False

        return self._complete(conversation, model, reply, completed)

    async def _stream_reply(self, gateway: StreamingProviderGateway, text: str, wire_history: List[Message],
                            base: List[Message], conversation_id: str, model: ModelDescriptor,
                            parameters: ModelParameters) -> Tuple[Optional[str], List[Message]]:
        """
        Stream into a placeholder assistant message replaced in place per fragment.

        Returns (None, base) when the caller must fall back to a blocking request:
        the stream ended, or failed, before delivering any text.
        """
        placeholder = Message(content="", role=MessageRole.ASSISTANT)
        self._publish(conversation_id, base + [placeholder])

        accumulated = ""
        received = 0
        try:
            async with gateway.stream_message(text, wire_history, model, parameters) as stream:
                async for fragment in stream:
                    if not fragment:
                        continue
                    received += 1
                    accumulated += fragment
                    self._publish(conversation_id, base + [placeholder.model_copy(update={"content": accumulated})])
        except Exception as exc:
            self._publish(conversation_id, base)
            if received:
                raise
            logger.warning(f"Streaming failed before any fragment ({classify_error(exc).kind}), "
                           f"falling back to a blocking request")
            return None, base

        if not received:
            logger.info("Stream finished without fragments, falling back to a blocking request")
            self._publish(conversation_id, base)
            return None, base

        logger.debug(f"Stream complete: {received} fragments, {len(accumulated)} chars")
        return accumulated, base + [placeholder.model_copy(update={"content": accumulated})]

    def _complete(self, conversation: Conversation, model: ModelDescriptor, reply: str,
                  transcript: List[Message]) -> bool:
        conversations = list(self.state.conversations)
        for index, existing in enumerate(conversations):
            if existing.id != conversation.id:
                continue
            updated = existing.model_copy(update={
                "last_message": reply,
                "timestamp": self._clock(),
                "last_used_model_id": model.id,
            })
            conversations[index] = updated
            self.state.conversations = conversations
            current = self.state.current_conversation
            if current is not None and current.id == updated.id:
                self.state.current_conversation = updated
            self.persist_conversations(conversations)
            self.store.save_messages(conversation.id, transcript)
            break
        else:
            # Deleted while the reply was in flight: its transcript must stay gone.
            logger.info(f"Dropping reply for deleted conversation {conversation.id}")
            return False

        self.state.error = None
        logger.info(f"Reply stored for conversation {conversation.id} ({len(reply)} chars, model={model.id})")
        return True

    # --- Helpers ---

    def _transcript_for(self, conversation: Conversation) -> List[Message]:
        current = self.state.current_conversation
        if current is not None and current.id == conversation.id:
            return list(self.state.messages)
        return self.store.load_messages(conversation.id)

    def _publish(self, conversation_id: str, transcript: List[Message]) -> None:
        current = self.state.current_conversation
        if current is not None and current.id == conversation_id:
            self.state.messages = list(transcript)

    def _begin(self, conversation_id: str) -> bool:
        if conversation_id in self._in_flight:
            logger.warning(f"A reply is already in flight for conversation {conversation_id}, ignoring request")
            return False
        self._in_flight.add(conversation_id)
        self.state.is_sending = True
        return True

    def _finish(self, conversation_id: str) -> None:
        self._in_flight.discard(conversation_id)
        self.state.is_sending = bool(self._in_flight)

#
# End of message_exchange.py
#######################################################################################################################
