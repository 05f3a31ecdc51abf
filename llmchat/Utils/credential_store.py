# credential_store.py
# Description: Secure storage for provider API keys, keyed by provider name
#
# Imports
from typing import Dict, Optional, Protocol, runtime_checkable
#
# Third-party imports
import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from loguru import logger
#
# Local imports
from llmchat.Chat.chat_errors import ChatCredentialStoreError
#
logger = logger.bind(module="credential_store")
#
#######################################################################################################################
#
# Classes:

DEFAULT_KEYRING_SERVICE = "llmchat.APIKey"


@runtime_checkable
class CredentialStore(Protocol):
    """get/set/delete of secrets; a missing entry is None, not an error."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class KeyringCredentialStore:
    """Credential store backed by the operating system keyring."""

    def __init__(self, service_name: str = DEFAULT_KEYRING_SERVICE):
        self.service_name = service_name

    def get(self, key: str) -> Optional[str]:
        try:
            value = keyring.get_password(self.service_name, key)
        except KeyringError as e:
            logger.error(f"Keyring read failed for '{key}': {e}")
            raise ChatCredentialStoreError(str(e), cause=e) from e
        return value or None

    def set(self, key: str, value: str) -> None:
        try:
            keyring.set_password(self.service_name, key, value)
        except KeyringError as e:
            logger.error(f"Keyring write failed for '{key}': {e}")
            raise ChatCredentialStoreError(str(e), cause=e) from e
        logger.info(f"Stored credential for '{key}'")

    def delete(self, key: str) -> None:
        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            logger.debug(f"No credential stored for '{key}', nothing to delete")
        except KeyringError as e:
            logger.error(f"Keyring delete failed for '{key}': {e}")
            raise ChatCredentialStoreError(str(e), cause=e) from e
        else:
            logger.info(f"Deleted credential for '{key}'")


class InMemoryCredentialStore:
    """Process-local credential store for tests and headless runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._secrets: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._secrets.get(key) or None

    def set(self, key: str, value: str) -> None:
        self._secrets[key] = value

    def delete(self, key: str) -> None:
        self._secrets.pop(key, None)

#
# End of credential_store.py
#######################################################################################################################
