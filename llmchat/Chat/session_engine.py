# session_engine.py
# Description: Facade consumed by the presentation layer. Owns the observable session state,
#              the conversation list lifecycle, model selection and credential handling.
#
# Imports
from datetime import datetime
from typing import Callable, List, Optional
#
# Third-party imports
from loguru import logger
#
# Local imports
from llmchat.config import DEFAULT_CONVERSATION_TITLE, DEFAULT_MODEL_CACHE_TTL_SECONDS, DEFAULT_PROVIDER
from llmchat.Chat.chat_errors import ChatError, classify_error
from llmchat.Chat.chat_models import (EMPTY_PARAMETERS, APIConfiguration, Conversation, ModelDescriptor,
                                      ModelParameters)
from llmchat.Chat.chat_preferences import ChatPreferences
from llmchat.Chat.conversation_store import ConversationStore
from llmchat.Chat.message_exchange import MessageExchange, can_regenerate
from llmchat.Chat.model_cache import ModelListCache
from llmchat.Chat.system_prompt_store import SystemPromptStore
from llmchat.LLM_Calls.provider_gateway import ProviderGateway
from llmchat.state.session_state import ChatSessionState
from llmchat.Utils.credential_store import CredentialStore
from llmchat.Utils.log_sanitizer import mask_credential
#
logger = logger.bind(module="session_engine")
#
#######################################################################################################################
#
# Classes:

GatewayFactory = Callable[[APIConfiguration], ProviderGateway]


class ChatSessionEngine:
    """
    Conversation session engine.

    Bootstraps state from storage, keeps exactly one active conversation,
    resolves which model to use, and delegates sends to the MessageExchange.
    All mutable state lives in `self.state` so views can subscribe to it.
    """

    def __init__(self,
                 gateway_factory: GatewayFactory,
                 conversation_store: ConversationStore,
                 prompt_store: SystemPromptStore,
                 model_cache: ModelListCache,
                 preferences: ChatPreferences,
                 credential_store: CredentialStore,
                 base_configuration: Optional[APIConfiguration] = None,
                 default_title: str = DEFAULT_CONVERSATION_TITLE,
                 model_cache_ttl: float = DEFAULT_MODEL_CACHE_TTL_SECONDS,
                 clock: Callable[[], datetime] = datetime.now):
        self.state = ChatSessionState()
        self.gateway_factory = gateway_factory
        self.conversation_store = conversation_store
        self.prompt_store = prompt_store
        self.model_cache = model_cache
        self.preferences = preferences
        self.credential_store = credential_store
        self.configuration = base_configuration or APIConfiguration(provider=DEFAULT_PROVIDER)
        self.default_title = default_title
        self.model_cache_ttl = model_cache_ttl
        self._clock = clock
        self._gateway: Optional[ProviderGateway] = None
        self._retired_gateways: List[ProviderGateway] = []
        self.exchange = MessageExchange(self.state, conversation_store, prompt_store,
                                        gateway_provider=self._current_gateway, clock=clock)

    @property
    def provider(self) -> str:
        return self.configuration.provider

    # --- Bootstrap ---

    async def bootstrap(self) -> None:
        """Load stored state, open a fresh scratch conversation and pick a model."""
        api_key = self._read_credential() or ""
        self.configuration = self.configuration.model_copy(update={"api_key": api_key})
        self._rebuild_gateway()

        stored = [c.model_copy(update={"is_active": False}) for c in self.conversation_store.load_conversations()]
        scratch = self._new_scratch_conversation()
        self.state.conversations = [scratch] + stored
        self.state.current_conversation = scratch
        self.state.messages = []
        self.exchange.persist_conversations(self.state.conversations)
        self.conversation_store.prune_transcripts(c.id for c in self.state.conversations)
        logger.info(f"Bootstrapped with {len(stored)} stored conversation(s)")

        self.state.model_parameters = self.preferences.load_model_parameters()

        models = await self.refresh_models()
        if models:
            self._select_model(models, scratch.last_used_model_id)

    # --- Conversations ---

    async def start_new_conversation(self) -> Conversation:
        """Insert a new active scratch conversation at the top and clear the transcript."""
        conversation = self._new_scratch_conversation()
        self.state.conversations = [conversation] + [c.model_copy(update={"is_active": False})
                                                     for c in self.state.conversations]
        self.state.current_conversation = conversation
        self.clear_conversation()
        self.exchange.persist_conversations(self.state.conversations)
        await self._restore_model(conversation.last_used_model_id)
        return conversation

    async def select_conversation(self, conversation: Conversation) -> None:
        """Make `conversation` the only active one, load its transcript and restore its model."""
        if not any(c.id == conversation.id for c in self.state.conversations):
            logger.warning(f"Ignoring selection of unlisted conversation {conversation.id}")
            return
        conversations = [c.model_copy(update={"is_active": c.id == conversation.id})
                         for c in self.state.conversations]
        selected = next(c for c in conversations if c.id == conversation.id)
        self.state.conversations = conversations
        self.state.current_conversation = selected
        self.state.messages = self.conversation_store.load_messages(selected.id)
        self.exchange.persist_conversations(conversations)
        await self._restore_model(selected.last_used_model_id)

    async def delete_conversation(self, conversation: Conversation) -> bool:
        """
        Delete a conversation and its transcript.

        Returns:
            False if the conversation is not in the list
        """
        remaining = [c for c in self.state.conversations if c.id != conversation.id]
        if len(remaining) == len(self.state.conversations):
            return False

        self.conversation_store.delete_messages(conversation.id)
        self.state.conversations = remaining
        logger.info(f"Deleted conversation {conversation.id}")

        current = self.state.current_conversation
        if current is not None and current.id == conversation.id:
            if not remaining:
                scratch = self._new_scratch_conversation()
                self.state.conversations = [scratch]
                self.state.current_conversation = scratch
                self.state.messages = []
                await self._restore_model(scratch.last_used_model_id)
            else:
                await self.select_conversation(remaining[0])

        self.exchange.persist_conversations(self.state.conversations)
        return True

    def clear_conversation(self) -> None:
        """Clear the visible transcript and any error."""
        self.state.messages = []
        self.state.error = None

    # --- Messaging ---

    async def send(self, text: str) -> bool:
        return await self.exchange.send(text, self.state.current_conversation, self.state.selected_model,
                                        self.state.model_parameters)

    async def regenerate_last(self) -> bool:
        return await self.exchange.regenerate_last(self.state.current_conversation, self.state.selected_model,
                                                   self.state.model_parameters)

    @property
    def can_regenerate(self) -> bool:
        return can_regenerate(self.state.messages)

    # --- Models ---

    async def refresh_models(self, force: bool = False) -> List[ModelDescriptor]:
        """
        Load the provider's model list, from the cache unless `force` is set.

        Errors are reported through `state.error`; the previous list is kept.
        """
        api_key = self.configuration.api_key
        if not force:
            cached = self.model_cache.load(self.provider, api_key, self.model_cache_ttl)
            if cached is not None:
                self.state.models = cached
                return cached

        self.state.is_loading_models = True
        try:
            models = await self._current_gateway().list_models()
        except Exception as exc:
            self.state.error = classify_error(exc)
            return list(self.state.models)
        finally:
            self.state.is_loading_models = False

        self.model_cache.save(models, self.provider, api_key)
        self.state.models = models
        return models

    def select_model(self, model: ModelDescriptor) -> None:
        self.state.selected_model = model

    def set_default_model(self, model: ModelDescriptor) -> None:
        """Select `model` and remember it as the default for new conversations."""
        self.state.selected_model = model
        self.preferences.save_default_model(model)

    def saved_default_model_id(self) -> Optional[str]:
        return self.preferences.default_model_id()

    # --- Model parameters ---

    def current_model_parameters(self) -> ModelParameters:
        return self.state.model_parameters

    def update_model_parameters(self, parameters: ModelParameters) -> None:
        self.state.model_parameters = parameters
        self.preferences.save_model_parameters(parameters)

    def reset_model_parameters(self) -> None:
        self.update_model_parameters(EMPTY_PARAMETERS)

    # --- System prompts ---

    def current_global_system_prompt(self) -> str:
        return self.prompt_store.get_default()

    def update_global_system_prompt(self, prompt: str) -> None:
        self.prompt_store.set_default(prompt)

    def conversation_prompt_override(self, conversation_id: str) -> Optional[str]:
        return self.prompt_store.get_override(conversation_id)

    def update_conversation_prompt(self, conversation_id: str, prompt: str) -> None:
        self.prompt_store.set_override(conversation_id, prompt)

    def reset_conversation_prompt(self, conversation_id: str) -> None:
        self.prompt_store.clear_override(conversation_id)

    # --- Credentials ---

    def current_api_key(self) -> str:
        return self._read_credential() or ""

    def update_api_key(self, api_key: str) -> bool:
        """
        Store a new API key and rebuild the gateway with it.

        The cached model list of the previous key is evicted. Returns False when
        the secure store rejected the key (the error is in `state.error`).
        """
        api_key = api_key.strip()
        try:
            self.credential_store.set(self.provider, api_key)
        except Exception as exc:
            self.state.error = classify_error(exc)
            return False

        self.model_cache.clear(self.provider, self.configuration.api_key)
        self.configuration = self.configuration.model_copy(update={"api_key": api_key})
        self._rebuild_gateway()
        logger.info(f"API key updated for {self.provider} ({mask_credential(api_key)})")
        return True

    def remove_api_key(self) -> bool:
        try:
            self.credential_store.delete(self.provider)
        except Exception as exc:
            self.state.error = classify_error(exc)
            return False

        self.model_cache.clear(self.provider, self.configuration.api_key)
        self.configuration = self.configuration.model_copy(update={"api_key": ""})
        self._rebuild_gateway()
        return True

    async def validate_api_key(self, api_key: str) -> bool:
        try:
            return await self._current_gateway().validate_credential(api_key)
        except Exception as exc:
            self.state.error = classify_error(exc)
            return False

    async def aclose(self) -> None:
        """Release the gateway's network resources."""
        await self._close_gateways()
        self._gateway = None

    # --- Helpers ---

    def _new_scratch_conversation(self) -> Conversation:
        return Conversation(
            title=self.default_title,
            timestamp=self._clock(),
            is_active=True,
            last_used_model_id=self.preferences.default_model_id(),
        )

    def _read_credential(self) -> Optional[str]:
        try:
            return self.credential_store.get(self.provider)
        except ChatError as exc:
            self.state.error = exc
            return None

    def _current_gateway(self) -> ProviderGateway:
        if self._gateway is None:
            self._gateway = self.gateway_factory(self.configuration)
        return self._gateway

    def _rebuild_gateway(self) -> None:
        previous = self._gateway
        self._gateway = self.gateway_factory(self.configuration)
        if previous is not None and previous is not self._gateway:
            # Closed on aclose(); an exchange may still hold a reference
            self._retired_gateways.append(previous)

    async def _close_gateways(self) -> None:
        for gateway in [*self._retired_gateways, self._gateway]:
            closer = getattr(gateway, "aclose", None)
            if closer is not None:
                await closer()
        self._retired_gateways = []

    def _select_model(self, models: List[ModelDescriptor], preferred_id: Optional[str]) -> None:
        """Preferred model if listed, else the saved default if listed, else the first."""
        chosen = None
        if preferred_id:
            chosen = next((m for m in models if m.id == preferred_id), None)
        if chosen is None:
            default_id = self.preferences.default_model_id()
            if default_id:
                chosen = next((m for m in models if m.id == default_id), None)
        if chosen is None and models:
            chosen = models[0]
        self.state.selected_model = chosen

    async def _restore_model(self, preferred_id: Optional[str]) -> None:
        models = list(self.state.models) or await self.refresh_models()
        if models:
            self._select_model(models, preferred_id)

#
# End of session_engine.py
#######################################################################################################################
