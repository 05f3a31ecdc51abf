# llmchat/LLM_Calls/openai_api.py
"""
OpenAI-compatible chat completions gateway.

Implements both the blocking and the streaming (server-sent events) flavour of
`chat/completions`, the `models` listing and a lightweight credential check.
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx
from loguru import logger

from llmchat.Chat.chat_errors import ChatDecodingError, ChatHTTPStatusError, ChatUnknownError, classify_error
from llmchat.Chat.chat_models import APIConfiguration, Message, ModelDescriptor, ModelParameters
from llmchat.config import DEFAULT_PROVIDER, get_provider_settings
from llmchat.LLM_Calls.provider_gateway import ProviderGateway, StreamingReply, build_wire_messages
from llmchat.Utils.log_sanitizer import sanitize_dict, sanitize_string

logger = logger.bind(module="openai_api")


# Display names for well-known models; anything else shows its id
KNOWN_MODEL_NAMES = {
    "gpt-4o-mini": "GPT-4o mini",
    "gpt-4o": "GPT-4o",
    "gpt-4.1": "GPT-4.1",
    "gpt-4.1-mini": "GPT-4.1 mini",
    "gpt-4-turbo": "GPT-4 Turbo",
    "gpt-3.5-turbo": "GPT-3.5 Turbo",
}

CHAT_MODEL_PREFIXES = ("gpt-", "chatgpt-", "o1", "o3", "o4")

STREAM_DONE = object()


def parse_stream_line(line: str) -> Any:
    """
    Parse one server-sent-events line.

    Returns the text fragment it carries, None for lines without content
    (comments, keep-alives, role-only deltas) or STREAM_DONE for the terminator.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if data == "[DONE]":
        return STREAM_DONE
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError as e:
        raise ChatDecodingError(f"invalid stream chunk: {sanitize_string(data[:80])}", cause=e) from e

    if not isinstance(chunk, dict):
        raise ChatDecodingError("stream chunk is not a JSON object")
    if "error" in chunk:
        error = chunk["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise ChatUnknownError(sanitize_string(message or "provider reported a streaming error"))

    choices = chunk.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    return delta.get("content") or None


class OpenAIGateway:
    """Provider gateway for the OpenAI chat completions API (and compatible servers)."""

    def __init__(self, configuration: APIConfiguration,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.configuration = configuration
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> str:
        return self.configuration.provider

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.configuration.base_url,
                timeout=self.configuration.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _auth_headers(self, credential: Optional[str] = None) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credential if credential is not None else self.configuration.api_key}"}

    @staticmethod
    def build_payload(text: str, history: Sequence[Message], model: ModelDescriptor,
                      parameters: ModelParameters, stream: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model.id,
            "messages": build_wire_messages(text, history),
        }
        payload.update(parameters.to_wire())
        if stream:
            payload["stream"] = True
        return payload

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_error:
            logger.warning(f"Provider returned HTTP {response.status_code}: {sanitize_string(response.text[:200])}")
            raise ChatHTTPStatusError(response.status_code, response.text)

    @staticmethod
    def _decode_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ChatDecodingError("response body is not JSON", cause=e) from e
        if not isinstance(data, dict):
            raise ChatDecodingError("response body is not a JSON object")
        return data

    # --- Completions ---

    async def send_message(self, text: str, history: Sequence[Message], model: ModelDescriptor,
                           parameters: ModelParameters) -> str:
        payload = self.build_payload(text, history, model, parameters)
        logger.info(f"POST chat/completions model={model.id} messages={len(payload['messages'])}")
        logger.debug(f"Request options: {sanitize_dict({k: v for k, v in payload.items() if k != 'messages'})}")
        try:
            response = await self.client.post("chat/completions", json=payload, headers=self._auth_headers())
        except httpx.HTTPError as e:
            raise classify_error(e) from e

        self._raise_for_status(response)
        data = self._decode_json(response)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ChatDecodingError("unexpected completion payload", cause=e) from e
        return content or ""

    def supports_streaming(self, model: ModelDescriptor) -> bool:
        return self.configuration.streaming

    def stream_message(self, text: str, history: Sequence[Message], model: ModelDescriptor,
                       parameters: ModelParameters) -> StreamingReply:
        payload = self.build_payload(text, history, model, parameters, stream=True)
        logger.info(f"POST chat/completions (stream) model={model.id} messages={len(payload['messages'])}")
        return StreamingReply(self._stream_fragments(payload))

    async def _stream_fragments(self, payload: Dict[str, Any]) -> AsyncIterator[str]:
        try:
            async with self.client.stream("POST", "chat/completions", json=payload,
                                          headers=self._auth_headers()) as response:
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ChatHTTPStatusError(response.status_code, body)
                async for line in response.aiter_lines():
                    fragment = parse_stream_line(line)
                    if fragment is STREAM_DONE:
                        break
                    if fragment:
                        yield fragment
        except httpx.HTTPError as e:
            raise classify_error(e) from e

    # --- Models & credentials ---

    async def list_models(self) -> List[ModelDescriptor]:
        try:
            response = await self.client.get("models", headers=self._auth_headers())
        except httpx.HTTPError as e:
            raise classify_error(e) from e

        self._raise_for_status(response)
        data = self._decode_json(response)
        entries = data.get("data")
        if not isinstance(entries, list):
            raise ChatDecodingError("models payload has no 'data' list")

        ids = sorted({entry["id"] for entry in entries if isinstance(entry, dict) and isinstance(entry.get("id"), str)})
        chat_ids = [model_id for model_id in ids if model_id.startswith(CHAT_MODEL_PREFIXES)]
        # OpenAI-compatible servers use other naming schemes; show everything then
        selected = chat_ids or ids
        models = [
            ModelDescriptor(id=model_id, name=KNOWN_MODEL_NAMES.get(model_id, model_id), provider=self.provider)
            for model_id in selected
        ]
        logger.info(f"Fetched {len(models)} models from {self.provider}")
        return models

    async def validate_credential(self, credential: str) -> bool:
        """True when the provider accepts `credential` for a models listing."""
        if not credential or not credential.strip():
            return False
        try:
            response = await self.client.get("models", headers=self._auth_headers(credential.strip()))
        except httpx.HTTPError as e:
            raise classify_error(e) from e
        if response.status_code in (401, 403):
            logger.info(f"Credential rejected by {self.provider} (HTTP {response.status_code})")
            return False
        self._raise_for_status(response)
        return True


def load_api_configuration(api_key: str = "", provider: str = DEFAULT_PROVIDER) -> APIConfiguration:
    """Build an APIConfiguration from the [api_settings.<provider>] table."""
    settings = get_provider_settings(provider)
    return APIConfiguration(
        base_url=settings.get("base_url", APIConfiguration.model_fields["base_url"].default),
        api_key=api_key,
        provider=provider,
        timeout=float(settings.get("timeout", 60.0)),
        streaming=bool(settings.get("streaming", True)),
    )


def make_gateway(configuration: APIConfiguration) -> ProviderGateway:
    """Gateway factory. Only the OpenAI-compatible API is implemented."""
    if configuration.provider.lower() != DEFAULT_PROVIDER:
        logger.warning(f"Unknown provider '{configuration.provider}', using the OpenAI-compatible gateway")
    return OpenAIGateway(configuration)
