"""
Media Session

Client-side session core for a Jellyfin front-end:
- Credential persistence in the platform keyring
- Authenticated session state machine with an observable state
- Local network server discovery
- In-memory media item cache
"""

from .api_client import JellyfinAPIClient, MediaAPIClient
from .credential_store import SecureCredentialStore
from .discovery import DiscoveryHandle, ServerLocator
from .event_bus import EventBus
from .session import SessionController

__all__ = [
    "DiscoveryHandle",
    "EventBus",
    "JellyfinAPIClient",
    "MediaAPIClient",
    "SecureCredentialStore",
    "ServerLocator",
    "SessionController",
]
