# chat_errors.py
# Description: Error taxonomy for provider, persistence and credential failures
#
# Imports
import json
from typing import Optional
#
# Third-party imports
import httpx
import pydantic
from keyring.errors import KeyringError
#
# Local imports
from llmchat.Utils.log_sanitizer import sanitize_string
#
#######################################################################################################################
#
# Classes:

class ChatError(Exception):
    """Base class for every error surfaced to the presentation layer."""
    kind = "unknown"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class ChatTransportError(ChatError):
    """Connectivity problem or timeout before a response arrived."""
    kind = "transport"


class ChatHTTPStatusError(ChatError):
    """The provider answered with a non-2xx status."""
    kind = "http_status"

    def __init__(self, status_code: int, body: str, cause: Optional[BaseException] = None):
        self.status_code = status_code
        self.body = sanitize_string(body)
        super().__init__(f"HTTP {status_code}: {self.body}", cause)


class ChatDecodingError(ChatError):
    """The response body could not be parsed."""
    kind = "decoding"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Decoding error: {message}", cause)


class ChatCredentialStoreError(ChatError):
    """The secure credential store rejected an operation."""
    kind = "credential_store"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Credential store error: {message}", cause)


class ChatUnknownError(ChatError):
    """Anything not covered by the other kinds."""
    kind = "unknown"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Unknown error: {message}", cause)

#
#######################################################################################################################
#
# Functions:

def classify_error(exc: BaseException) -> ChatError:
    """Map any exception raised while talking to a collaborator onto the ChatError taxonomy."""
    if isinstance(exc, ChatError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        return ChatHTTPStatusError(exc.response.status_code, exc.response.text, cause=exc)
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return ChatTransportError(sanitize_string(str(exc)) or exc.__class__.__name__, cause=exc)
    if isinstance(exc, (json.JSONDecodeError, UnicodeDecodeError, pydantic.ValidationError, httpx.DecodingError)):
        return ChatDecodingError(sanitize_string(str(exc)), cause=exc)
    if isinstance(exc, KeyringError):
        return ChatCredentialStoreError(sanitize_string(str(exc)) or exc.__class__.__name__, cause=exc)
    return ChatUnknownError(sanitize_string(str(exc)) or exc.__class__.__name__, cause=exc)

#
# End of chat_errors.py
#######################################################################################################################
