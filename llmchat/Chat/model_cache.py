"""
TTL-bounded cache for provider model lists.

Entries are keyed by the lower-cased provider name plus a SHA-256 digest of
the credential, so model lists stay scoped per account without the plaintext
key ever reaching the key-value store.
"""

import hashlib
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

import pydantic
from loguru import logger

from llmchat.Chat.chat_models import CachedModelList, ModelDescriptor
from llmchat.DB.kv_store import KeyValueStore

logger = logger.bind(module="model_cache")


CACHE_KEY_PREFIX = "models.cache"


class ModelListCache:
    """Best-effort model list cache; reads and writes never raise to the caller."""

    def __init__(self, storage: KeyValueStore, clock: Callable[[], datetime] = datetime.now):
        self.storage = storage
        self._clock = clock

    @staticmethod
    def make_key(provider: str, credential: str) -> str:
        digest = hashlib.sha256(credential.encode("utf-8")).hexdigest()
        return f"{CACHE_KEY_PREFIX}.{provider.lower()}.{digest}"

    def load(self, provider: str, credential: str, ttl_seconds: float) -> Optional[List[ModelDescriptor]]:
        """Cached models when present and younger than `ttl_seconds`, else None."""
        key = self.make_key(provider, credential)
        try:
            raw = self.storage.get(key)
        except sqlite3.Error as e:
            logger.warning(f"Model cache read failed for {provider}: {e}")
            return None
        if raw is None:
            return None

        try:
            cached = CachedModelList.model_validate_json(raw)
        except pydantic.ValidationError:
            logger.warning(f"Corrupt model cache entry for {provider}, evicting")
            self._evict(key)
            return None

        age = (self._clock() - cached.timestamp).total_seconds()
        if age >= ttl_seconds:
            logger.debug(f"Model cache for {provider} expired (age={age:.1f}s, ttl={ttl_seconds}s)")
            self._evict(key)
            return None

        logger.debug(f"Model cache hit for {provider}: {len(cached.models)} models")
        return list(cached.models)

    def save(self, models: List[ModelDescriptor], provider: str, credential: str) -> None:
        key = self.make_key(provider, credential)
        payload = CachedModelList(models=list(models), timestamp=self._clock())
        try:
            self.storage.set(key, payload.model_dump_json())
        except sqlite3.Error as e:
            logger.warning(f"Ignoring model cache write failure for {provider}: {e}")

    def clear(self, provider: str, credential: str) -> None:
        """Explicit eviction, e.g. when the credential is rotated."""
        self._evict(self.make_key(provider, credential))

    def _evict(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except sqlite3.Error as e:
            logger.warning(f"Model cache eviction failed: {e}")
