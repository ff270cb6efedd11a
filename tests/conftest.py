"""Shared fixtures."""

from typing import Dict, List, Tuple

import pytest
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from media_session.api_client import MediaAPIClient
from media_session.credential_store import SecureCredentialStore
from media_session.errors import AuthError
from media_session.event_bus import EventBus
from media_session.models import (
    MediaItem,
    ServerInfo,
    SessionDescriptor,
    UserCredentials,
    UserInfo,
)
from media_session.session import SessionController


class MemoryKeyring(KeyringBackend):
    """In-memory keyring backend."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: Dict[Tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError("not found")


class FailingKeyring(MemoryKeyring):
    """Reads work, writes and deletes fail."""

    def set_password(self, service, username, password):
        raise KeyringError("locked")

    def delete_password(self, service, username):
        raise KeyringError("locked")


class BrokenKeyring(MemoryKeyring):
    """Backend whose transport fails outside the keyring error hierarchy."""

    def get_password(self, service, username):
        raise OSError("dbus connection lost")

    def set_password(self, service, username, password):
        raise OSError("dbus connection lost")

    def delete_password(self, service, username):
        raise OSError("dbus connection lost")


class FakeApiClient(MediaAPIClient):
    """Returns queued results in order. Queued exceptions are raised."""

    def __init__(self) -> None:
        self.auth_results: List[object] = []
        self.list_results: List[object] = []
        self.login_results: List[object] = []
        self.auth_calls: List[SessionDescriptor] = []
        self.list_calls: List[SessionDescriptor] = []
        self.login_calls: List[Tuple[ServerInfo, str, str]] = []

    @staticmethod
    def _next(results: List[object]):
        result = results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    async def authenticate(self, descriptor):
        self.auth_calls.append(descriptor)
        if not self.auth_results:
            return UserInfo(user_id=descriptor.user.user_id)
        return self._next(self.auth_results)

    async def list_items(self, descriptor):
        self.list_calls.append(descriptor)
        return self._next(self.list_results)

    async def authenticate_by_name(self, server, username, password):
        self.login_calls.append((server, username, password))
        if not self.login_results:
            raise AuthError("rejected", 401)
        return self._next(self.login_results)


def make_descriptor(
    host: str = "10.0.0.5",
    port: int = 8096,
    use_tls: bool = False,
    user_id: str = "user-1",
    token: str = "token-1",
) -> SessionDescriptor:
    return SessionDescriptor(
        server=ServerInfo(host=host, port=port, use_tls=use_tls),
        user=UserCredentials(user_id=user_id, access_token=token),
    )


def make_item(item_id: str, container: str = "mp4") -> MediaItem:
    return MediaItem.from_api(
        {
            "Id": item_id,
            "Name": f"Item {item_id}",
            "Type": "Movie",
            "MediaSources": [
                {"Id": f"{item_id}-src", "Type": "Default", "Container": container}
            ],
        }
    )


@pytest.fixture
def keyring_backend() -> MemoryKeyring:
    return MemoryKeyring()


@pytest.fixture
def store(keyring_backend) -> SecureCredentialStore:
    return SecureCredentialStore("media-session-test", backend=keyring_backend)


@pytest.fixture
def api() -> FakeApiClient:
    return FakeApiClient()


@pytest.fixture
def events() -> List[dict]:
    return []


@pytest.fixture
def controller(api, store, events) -> SessionController:
    bus = EventBus()
    controller = SessionController(api, store, event_bus=bus)
    controller.subscribe(events.append)
    return controller
