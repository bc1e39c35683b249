"""Password storage in the system keychain via keyring.

The label names the keyring service, so several databases can keep their
passwords side by side. Backend failures never raise: stores and removals
return False and lookups return None, which makes the caller fall back to an
interactive password prompt.
"""

from __future__ import annotations

import logging
from typing import Protocol

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

from db_unlock.models import DEFAULT_LABEL

logger = logging.getLogger(__name__)

KEY_NAME = "database-encryption"


class SecretStore(Protocol):
    def store_key(self, password: str, label: str = DEFAULT_LABEL) -> bool: ...

    def retrieve_key(self, label: str = DEFAULT_LABEL) -> str | None: ...

    def remove_key(self, label: str = DEFAULT_LABEL) -> bool: ...

    def is_available(self) -> bool: ...


class KeyringSecretStore:
    def store_key(self, password: str, label: str = DEFAULT_LABEL) -> bool:
        try:
            keyring.set_password(label, KEY_NAME, password)
            return True
        except KeyringError as exc:
            logger.warning("Failed to store key in keychain: %s", exc)
            return False

    def retrieve_key(self, label: str = DEFAULT_LABEL) -> str | None:
        try:
            password = keyring.get_password(label, KEY_NAME)
        except KeyringError as exc:
            logger.warning("Failed to retrieve key from keychain: %s", exc)
            return None
        return password or None

    def remove_key(self, label: str = DEFAULT_LABEL) -> bool:
        try:
            keyring.delete_password(label, KEY_NAME)
            return True
        except PasswordDeleteError:
            logger.info("No stored key to remove for %r", label)
            return False
        except KeyringError as exc:
            logger.warning("Failed to remove key from keychain: %s", exc)
            return False

    def is_available(self) -> bool:
        return not isinstance(keyring.get_keyring(), fail.Keyring)
