# chat_preferences.py
# Management of the current model parameters and the default model
#
# Imports
from __future__ import annotations
from typing import Optional

# Third-party imports
import pydantic
from loguru import logger

# Local imports
from llmchat.Chat.chat_models import EMPTY_PARAMETERS, ModelDescriptor, ModelParameters
from llmchat.DB.kv_store import KeyValueStore

logger = logger.bind(module="chat_preferences")


MODEL_PARAMETERS_KEY = "llmchat.modelParameters"
DEFAULT_MODEL_KEY = "llmchat.defaultModel"


class ChatPreferences:
    """One set of model parameters and one default model id per application instance."""

    def __init__(self, storage: KeyValueStore):
        self.storage = storage

    def load_model_parameters(self) -> ModelParameters:
        raw = self.storage.get(MODEL_PARAMETERS_KEY)
        if not raw:
            return EMPTY_PARAMETERS
        try:
            return ModelParameters.model_validate_json(raw)
        except pydantic.ValidationError:
            logger.warning("Stored model parameters are invalid, using provider defaults")
            return EMPTY_PARAMETERS

    def save_model_parameters(self, parameters: ModelParameters) -> None:
        self.storage.set(MODEL_PARAMETERS_KEY, parameters.model_dump_json())
        logger.debug(f"Saved model parameters: {parameters.to_wire()}")

    def default_model_id(self) -> Optional[str]:
        return self.storage.get(DEFAULT_MODEL_KEY) or None

    def save_default_model(self, model: ModelDescriptor) -> None:
        self.storage.set(DEFAULT_MODEL_KEY, model.id)
        logger.info(f"Default model set to {model.id}")
