"""Data models for conversations, messages and provider models using Pydantic."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _new_id() -> str:
    return str(uuid.uuid4())


class MessageRole(str, Enum):
    """Role of a chat message emitted by the system, user, or assistant."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single transcript entry. Immutable; edits produce a copy."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    content: str
    role: MessageRole
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def is_from_user(self) -> bool:
        return self.role == MessageRole.USER

    def to_wire(self) -> Dict[str, str]:
        """{role, content} pair as sent to the provider."""
        return {"role": self.role.value, "content": self.content}


class Conversation(BaseModel):
    """Conversation metadata shown in the conversation list."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    title: str
    last_message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
    is_active: bool = False
    last_used_model_id: Optional[str] = None


class ModelDescriptor(BaseModel):
    """Describes a model exposed by the provider."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    provider: str
    max_tokens: int = 4096
    supports_functions: bool = False


class ModelParameters(BaseModel):
    """
    Sampling parameters. A field left as None is not sent, so the provider
    applies its own default.
    """
    model_config = ConfigDict(frozen=True)

    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    def to_wire(self) -> Dict[str, float]:
        """Only the parameters that are set."""
        payload: Dict[str, float] = {}
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.top_p is not None:
            payload["top_p"] = self.top_p
        return payload


EMPTY_PARAMETERS = ModelParameters()


class CachedModelList(BaseModel):
    """Stored model list with the time it was fetched, for TTL checks."""
    models: List[ModelDescriptor]
    timestamp: datetime


class APIConfiguration(BaseModel):
    """Target base URL, credential and provider identifier for a gateway."""
    base_url: str = "https://api.openai.com/v1/"
    api_key: str = ""
    provider: str = "openai"
    timeout: float = 60.0
    streaming: bool = True
