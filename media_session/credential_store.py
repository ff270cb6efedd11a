"""Secret persistence backed by the platform keyring."""

import base64
import binascii
import logging
import threading
from typing import Optional

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

_LOGGER = logging.getLogger(__name__)


class SecureCredentialStore:
    """
    Stores opaque byte blobs in the platform secret store.

    Values are base64 encoded into the keyring password slot. The caller owns
    the serialization format of the blob. No method raises: failures are
    logged and reported as False/None so the caller can carry on
    unauthenticated.
    """

    def __init__(
        self,
        service_name: str,
        backend: Optional[KeyringBackend] = None,
    ) -> None:
        self.service_name = service_name
        self._backend = backend
        self._lock = threading.Lock()

    @property
    def backend(self) -> KeyringBackend:
        if self._backend is None:
            self._backend = keyring.get_keyring()
            _LOGGER.debug("Using keyring backend: %s", self._backend)
        return self._backend

    def save(self, key: str, value: bytes) -> bool:
        encoded = base64.b64encode(value).decode("ascii")
        with self._lock:
            try:
                self.backend.set_password(self.service_name, key, encoded)
            except KeyringError:
                _LOGGER.warning("Failed to save secret %s", key, exc_info=True)
                return False
            except Exception:
                # Backends such as SecretService let D-Bus errors through
                _LOGGER.warning("Keyring backend error saving secret %s", key, exc_info=True)
                return False

        return True

    def load(self, key: str) -> Optional[bytes]:
        with self._lock:
            try:
                encoded = self.backend.get_password(self.service_name, key)
            except KeyringError:
                _LOGGER.warning("Failed to load secret %s", key, exc_info=True)
                return None
            except Exception:
                _LOGGER.warning("Keyring backend error loading secret %s", key, exc_info=True)
                return None

        if encoded is None:
            return None

        try:
            return base64.b64decode(encoded.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError):
            _LOGGER.warning("Secret %s is not valid base64, ignoring", key)
            return None

    def clear(self, key: str) -> bool:
        with self._lock:
            try:
                self.backend.delete_password(self.service_name, key)
            except PasswordDeleteError:
                # Nothing stored under this key
                return True
            except KeyringError:
                _LOGGER.warning("Failed to clear secret %s", key, exc_info=True)
                return False
            except Exception:
                _LOGGER.warning("Keyring backend error clearing secret %s", key, exc_info=True)
                return False

        return True
