# provider_gateway.py
# Description: Contract for the completion provider, the optional streaming capability
#              and the cancellable handle a streaming reply is delivered through
#
# Imports
from typing import (Any, AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Sequence,
                    runtime_checkable)
#
# Third-party imports
from loguru import logger
#
# Local imports
from llmchat.Chat.chat_models import Message, ModelDescriptor, ModelParameters
#
#######################################################################################################################
#
# Classes:

class StreamingReply:
    """
    Async iterator of incremental (non-cumulative) text fragments plus the
    handle that releases the underlying transport.

    Use it as an async context manager; leaving the block, or calling
    `aclose()`/`cancel()` early, closes the source iterator.
    """

    def __init__(self, fragments: AsyncIterator[str],
                 on_close: Optional[Callable[[], Awaitable[None]]] = None):
        self._fragments = fragments
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "StreamingReply":
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        return await self._fragments.__anext__()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        closer = getattr(self._fragments, "aclose", None)
        if closer is not None:
            await closer()
        if self._on_close is not None:
            await self._on_close()
        logger.debug("Streaming reply closed")

    cancel = aclose

    async def __aenter__(self) -> "StreamingReply":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


@runtime_checkable
class ProviderGateway(Protocol):
    """Non-streaming operations every provider implements."""

    async def send_message(self, text: str, history: Sequence[Message], model: ModelDescriptor,
                           parameters: ModelParameters) -> str: ...

    async def list_models(self) -> List[ModelDescriptor]: ...

    async def validate_credential(self, credential: str) -> bool: ...


@runtime_checkable
class StreamingProviderGateway(ProviderGateway, Protocol):
    """Optional capability: token streaming."""

    def supports_streaming(self, model: ModelDescriptor) -> bool: ...

    def stream_message(self, text: str, history: Sequence[Message], model: ModelDescriptor,
                       parameters: ModelParameters) -> StreamingReply: ...

#
#######################################################################################################################
#
# Functions:

def streaming_capability(gateway: Any, model: ModelDescriptor) -> Optional[StreamingProviderGateway]:
    """The gateway viewed as a streaming gateway if it can stream `model`, else None."""
    if isinstance(gateway, StreamingProviderGateway) and gateway.supports_streaming(model):
        return gateway
    return None


def build_wire_messages(text: str, history: Sequence[Message]) -> List[dict]:
    """Ordered {role, content} pairs: the history, then the new user message."""
    return [message.to_wire() for message in history] + [{"role": "user", "content": text}]

#
# End of provider_gateway.py
#######################################################################################################################
