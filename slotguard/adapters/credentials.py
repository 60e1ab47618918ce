"""
API key storage for the persistence gateway using the OS keyring.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import CredentialError

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "slotguard"


class CredentialStore:
    """
    Resolves the API key for a gateway URL.

    Lookup order:
    1. Environment variable (``env_var``), for CI and containers
    2. OS keyring entry keyed by the gateway URL
    """

    def __init__(self, api_url: str, env_var: str = "SLOTGUARD_API_KEY"):
        self.api_url = api_url
        self.env_var = env_var

    def _from_keyring(self) -> Optional[str]:
        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self.api_url)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Reading credentials from keyring failed: %s", exc)
            return None

    def get_api_key(self) -> str:
        """
        Return the API key.

        Raises:
            CredentialError: If no key is configured anywhere
        """
        from_env = os.environ.get(self.env_var)
        if from_env:
            return from_env

        stored = self._from_keyring()
        if stored:
            return stored

        raise CredentialError(
            f"No API key found for {self.api_url}. "
            f"Set {self.env_var} or run 'slotguard set-key'."
        )

    def set_api_key(self, api_key: str) -> None:
        """
        Store the API key in the keyring.

        Raises:
            CredentialError: If the keyring backend refuses the write
        """
        if not api_key.strip():
            raise CredentialError("API key cannot be empty")
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self.api_url, api_key.strip())
        except KeyringError as exc:
            raise CredentialError(f"Could not store API key in keyring: {exc}") from exc

    def clear(self) -> bool:
        """Remove the stored key. Returns False if nothing was stored."""
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.api_url)
        except PasswordDeleteError:
            return False
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove credentials from keyring: %s", exc)
            return False
        return True
