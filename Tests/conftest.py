"""
Root conftest.py for shared test fixtures and configuration.
This file provides common fixtures used across the test suite.
"""

import shutil
import sys
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to Python path for consistent imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from llmchat import config
from llmchat.Chat.chat_models import ModelDescriptor
from llmchat.Chat.chat_preferences import ChatPreferences
from llmchat.Chat.conversation_store import ConversationStore
from llmchat.Chat.model_cache import ModelListCache
from llmchat.Chat.session_engine import ChatSessionEngine
from llmchat.Chat.system_prompt_store import SystemPromptStore
from llmchat.DB.kv_store import InMemoryKeyValueStore
from llmchat.Utils.credential_store import InMemoryCredentialStore
from Tests.fixtures.gateway_fakes import FakeStreamingGateway


# ========== Path and File System Fixtures ==========

@pytest.fixture
def isolated_temp_dir():
    """Create an isolated temporary directory that's always cleaned up."""
    temp_dir = tempfile.mkdtemp(prefix="llmchat_test_")
    temp_path = Path(temp_dir)
    yield temp_path
    # Ensure cleanup even if test fails
    if temp_path.exists():
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def temp_db_path(isolated_temp_dir):
    """Provide a path for a temporary database file."""
    return isolated_temp_dir / "test_database.db"


@pytest.fixture(autouse=True)
def isolated_config(isolated_temp_dir, monkeypatch):
    """Point the config loader at a throwaway file and drop any cached config."""
    config_path = isolated_temp_dir / "config" / "config.toml"
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(config_path))
    monkeypatch.delenv("LLMCHAT_LOG_LEVEL", raising=False)
    config.reset_config_cache()
    yield config_path
    config.reset_config_cache()


# ========== Clock Fixtures ==========

class FakeClock:
    """Deterministic clock; call it like datetime.now."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


# ========== Storage Fixtures ==========

@pytest.fixture
def memory_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore({"openai": "sk-test-key-1234567890"})


@pytest.fixture
def conversation_store(memory_store):
    return ConversationStore(memory_store)


@pytest.fixture
def prompt_store(memory_store):
    return SystemPromptStore(memory_store)


# ========== Model Fixtures ==========

@pytest.fixture
def sample_models():
    return [
        ModelDescriptor(id="gpt-4o", name="GPT-4o", provider="openai"),
        ModelDescriptor(id="gpt-4o-mini", name="GPT-4o mini", provider="openai"),
        ModelDescriptor(id="gpt-3.5-turbo", name="GPT-3.5 Turbo", provider="openai"),
    ]


# ========== Engine Fixtures ==========

@pytest.fixture
def gateway(sample_models):
    return FakeStreamingGateway(models=sample_models)


@pytest.fixture
def make_engine(memory_store, credential_store, clock):
    """Factory for engines sharing the test's stores; the gateway is injectable."""
    def _make(gateway, store=None, credentials=None):
        storage = store if store is not None else memory_store
        return ChatSessionEngine(
            gateway_factory=lambda configuration: gateway,
            conversation_store=ConversationStore(storage),
            prompt_store=SystemPromptStore(storage),
            model_cache=ModelListCache(storage, clock=clock),
            preferences=ChatPreferences(storage),
            credential_store=credentials if credentials is not None else credential_store,
            clock=clock,
        )
    return _make


@pytest.fixture
def engine(make_engine, gateway):
    return make_engine(gateway)
