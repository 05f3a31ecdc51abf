"""Tests for the chat data models, preferences and error classification."""

import json

import httpx
import pytest
from keyring.errors import KeyringError
from pydantic import ValidationError

from llmchat.Chat.chat_errors import (ChatCredentialStoreError, ChatDecodingError, ChatError, ChatHTTPStatusError,
                                      ChatTransportError, ChatUnknownError, classify_error)
from llmchat.Chat.chat_models import (EMPTY_PARAMETERS, Conversation, Message, MessageRole,
                                      ModelDescriptor, ModelParameters)
from llmchat.Chat.chat_preferences import MODEL_PARAMETERS_KEY, ChatPreferences


class TestModels:

    def test_messages_are_immutable(self):
        message = Message(content="Hi", role=MessageRole.USER)
        with pytest.raises(ValidationError):
            message.content = "changed"

    def test_copy_keeps_identity(self):
        message = Message(content="", role=MessageRole.ASSISTANT)
        updated = message.model_copy(update={"content": "Hello"})
        assert updated.id == message.id
        assert updated.content == "Hello"

    def test_ids_are_unique(self):
        assert Conversation(title="a").id != Conversation(title="a").id

    def test_wire_form(self):
        assert Message(content="Hi", role=MessageRole.USER).to_wire() == {"role": "user", "content": "Hi"}
        assert Message(content="Hi", role=MessageRole.USER).is_from_user

    def test_model_descriptor_defaults(self):
        model = ModelDescriptor(id="gpt-4o", name="GPT-4o", provider="openai")
        assert model.max_tokens == 4096
        assert model.supports_functions is False

    def test_parameter_presets(self):
        assert EMPTY_PARAMETERS.to_wire() == {}
        assert ModelParameters(temperature=0.7, top_p=0.9).to_wire() == {"temperature": 0.7, "top_p": 0.9}
        assert ModelParameters(top_p=0.5).to_wire() == {"top_p": 0.5}

    @pytest.mark.parametrize("kwargs", [{"temperature": 2.5}, {"temperature": -0.1}, {"top_p": 1.5}])
    def test_parameter_ranges(self, kwargs):
        with pytest.raises(ValidationError):
            ModelParameters(**kwargs)


class TestPreferences:

    def test_defaults(self, memory_store):
        preferences = ChatPreferences(memory_store)
        assert preferences.load_model_parameters() == EMPTY_PARAMETERS
        assert preferences.default_model_id() is None

    def test_round_trip(self, memory_store, sample_models):
        preferences = ChatPreferences(memory_store)
        preferences.save_model_parameters(ModelParameters(temperature=1.2))
        preferences.save_default_model(sample_models[1])

        reloaded = ChatPreferences(memory_store)
        assert reloaded.load_model_parameters() == ModelParameters(temperature=1.2)
        assert reloaded.default_model_id() == "gpt-4o-mini"

    def test_invalid_parameters_read_as_empty(self, memory_store):
        memory_store.set(MODEL_PARAMETERS_KEY, '{"temperature": 9}')
        assert ChatPreferences(memory_store).load_model_parameters() == EMPTY_PARAMETERS


class TestClassifyError:

    def _status_error(self, status, body):
        request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
        response = httpx.Response(status, text=body, request=request)
        return httpx.HTTPStatusError("boom", request=request, response=response)

    def test_chat_errors_pass_through(self):
        error = ChatTransportError("offline")
        assert classify_error(error) is error

    def test_http_status(self):
        error = classify_error(self._status_error(503, "overloaded"))
        assert isinstance(error, ChatHTTPStatusError)
        assert error.status_code == 503
        assert str(error) == "HTTP 503: overloaded"

    def test_http_body_is_sanitized(self):
        error = ChatHTTPStatusError(401, "Incorrect API key provided: sk-abcdefghijklmnopqrstuvwxyz")
        assert "sk-abcdefghijklmnopqrstuvwxyz" not in str(error)

    def test_transport(self):
        request = httpx.Request("GET", "https://api.example.com/v1/models")
        assert classify_error(httpx.ConnectError("refused", request=request)).kind == "transport"
        assert classify_error(httpx.ReadTimeout("slow", request=request)).kind == "transport"

    def test_decoding(self):
        try:
            json.loads("{")
        except json.JSONDecodeError as e:
            error = classify_error(e)
        assert isinstance(error, ChatDecodingError)
        assert str(error).startswith("Decoding error:")

    def test_undecodable_bytes(self):
        try:
            b"\xff\xfe\xfa".decode("utf-8")
        except UnicodeDecodeError as e:
            error = classify_error(e)
        assert error.kind == "decoding"

    def test_credential_store(self):
        assert isinstance(classify_error(KeyringError("locked")), ChatCredentialStoreError)

    def test_unknown(self):
        error = classify_error(RuntimeError("???"))
        assert isinstance(error, ChatUnknownError)
        assert isinstance(error, ChatError)
        assert error.kind == "unknown"
