"""Entry point: `python -m llmchat` or the `llmchat` script."""

from typing import Optional

from loguru import logger

from llmchat.config import (DEFAULT_CONVERSATION_TITLE, DEFAULT_MODEL_CACHE_TTL_SECONDS, DEFAULT_PROVIDER,
                            DEFAULT_SYSTEM_PROMPT, get_cli_setting, get_database_path, get_log_file_path,
                            get_provider_settings, load_cli_config_and_ensure_existence)
from llmchat.Chat.chat_preferences import ChatPreferences
from llmchat.Chat.conversation_store import ConversationStore
from llmchat.Chat.model_cache import ModelListCache
from llmchat.Chat.session_engine import ChatSessionEngine, GatewayFactory
from llmchat.Chat.system_prompt_store import SystemPromptStore
from llmchat.DB.kv_store import KeyValueStore, SQLiteKeyValueStore
from llmchat.LLM_Calls.openai_api import load_api_configuration, make_gateway
from llmchat.Utils.credential_store import DEFAULT_KEYRING_SERVICE, CredentialStore, KeyringCredentialStore
from llmchat.Utils.logging_config import configure_logging


def create_engine(storage: KeyValueStore,
                  credential_store: CredentialStore,
                  gateway_factory: Optional[GatewayFactory] = None,
                  provider: str = DEFAULT_PROVIDER) -> ChatSessionEngine:
    """Wire a session engine from configuration and the given stores."""
    fallback_prompt = get_cli_setting("chat_defaults", "system_prompt", DEFAULT_SYSTEM_PROMPT)
    return ChatSessionEngine(
        gateway_factory=gateway_factory or make_gateway,
        conversation_store=ConversationStore(storage),
        prompt_store=SystemPromptStore(storage, fallback_prompt=fallback_prompt),
        model_cache=ModelListCache(storage),
        preferences=ChatPreferences(storage),
        credential_store=credential_store,
        base_configuration=load_api_configuration(provider=provider),
        default_title=get_cli_setting("chat_defaults", "default_title", DEFAULT_CONVERSATION_TITLE),
        model_cache_ttl=float(get_cli_setting("chat_defaults", "model_cache_ttl_seconds",
                                              DEFAULT_MODEL_CACHE_TTL_SECONDS)),
    )


def main() -> None:
    load_cli_config_and_ensure_existence()
    configure_logging(
        level=get_cli_setting("general", "log_level", "INFO"),
        log_file=get_log_file_path(),
        to_console=bool(get_cli_setting("general", "log_to_console", False)),
    )

    storage = SQLiteKeyValueStore(get_database_path())
    service = get_provider_settings(DEFAULT_PROVIDER).get("keyring_service", DEFAULT_KEYRING_SERVICE)
    engine = create_engine(storage, KeyringCredentialStore(service))

    # Imported late so headless callers of create_engine do not pay for Textual
    from llmchat.app import LLMChatApp

    logger.info("Starting llmchat")
    try:
        LLMChatApp(engine).run()
    finally:
        storage.close()
        logger.info("llmchat exited")


if __name__ == "__main__":
    main()
