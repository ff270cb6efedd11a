"""Shared models."""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import CredentialCorruptError

# -----------------------------------------------------------------------------
# Session descriptor
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerInfo:
    host: str
    port: int
    use_tls: bool = False

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_tls else "http"
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{scheme}://{host}:{self.port}"


@dataclass(frozen=True)
class UserCredentials:
    user_id: str
    access_token: str


@dataclass(frozen=True)
class SessionDescriptor:
    """Server + user credentials for one authenticated session."""

    server: ServerInfo
    user: UserCredentials

    @property
    def base_url(self) -> str:
        return self.server.base_url

    def describe(self) -> str:
        """Human readable context used in auth alerts and logs."""
        prefix = "(HTTPS) " if self.server.use_tls else ""
        return f"{prefix}{self.user.user_id}@{self.server.host}:{self.server.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "useTLS": self.server.use_tls,
            },
            "user": {
                "userId": self.user.user_id,
                "accessToken": self.user.access_token,
            },
        }

    def to_bytes(self) -> bytes:
        # Sorted keys and fixed separators keep the blob byte-stable.
        return json.dumps(
            self.to_dict(), sort_keys=True, separators=(",", ":")
        ).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionDescriptor":
        try:
            server = data["server"]
            user = data["user"]
            host = server["host"]
            port = server["port"]
            use_tls = server.get("useTLS", False)
            user_id = user["userId"]
            access_token = user["accessToken"]
        except (KeyError, TypeError, AttributeError) as e:
            raise CredentialCorruptError(f"Missing descriptor field: {e}") from e

        if not isinstance(host, str) or not host:
            raise CredentialCorruptError("Descriptor host must be a non-empty string")
        if isinstance(port, bool) or not isinstance(port, int):
            raise CredentialCorruptError("Descriptor port must be an integer")
        if not isinstance(use_tls, bool):
            raise CredentialCorruptError("Descriptor useTLS must be a boolean")
        if not isinstance(user_id, str) or not isinstance(access_token, str):
            raise CredentialCorruptError("Descriptor user fields must be strings")

        return cls(
            server=ServerInfo(host=host, port=port, use_tls=use_tls),
            user=UserCredentials(user_id=user_id, access_token=access_token),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "SessionDescriptor":
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CredentialCorruptError(f"Invalid descriptor blob: {e}") from e

        if not isinstance(raw, dict):
            raise CredentialCorruptError("Descriptor blob is not an object")

        return cls.from_dict(raw)


@dataclass(frozen=True)
class UserInfo:
    """Result of a successful authenticate call."""

    user_id: str
    name: Optional[str] = None


# -----------------------------------------------------------------------------
# Discovery
# -----------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class ServerAnnouncement:
    """A server that answered a discovery probe. Identity is the server id."""

    id: str
    host: str
    port: int
    server_name: str
    use_tls: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServerAnnouncement):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def to_server_info(self) -> ServerInfo:
        return ServerInfo(host=self.host, port=self.port, use_tls=self.use_tls)


# -----------------------------------------------------------------------------
# Media items
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class MediaSource:
    id: str
    type: str
    container: str

    @property
    def can_play(self) -> bool:
        return self.container == "mp4"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "MediaSource":
        return cls(
            id=str(data["Id"]),
            type=str(data.get("Type", "")),
            container=str(data.get("Container", "")),
        )


@dataclass(frozen=True, eq=False)
class MediaItem:
    """A movie, series or episode. Identity is the item id."""

    id: str
    name: str = ""
    type: str = ""
    media_sources: List[MediaSource] = field(default_factory=list)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MediaItem):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def playable_sources(self) -> List[MediaSource]:
        return [source for source in self.media_sources if source.can_play]

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "MediaItem":
        return cls(
            id=str(data["Id"]),
            name=str(data.get("Name") or ""),
            type=str(data.get("Type") or ""),
            media_sources=[
                MediaSource.from_api(source)
                for source in (data.get("MediaSources") or [])
            ],
        )


@dataclass(frozen=True)
class PlayItem:
    """A media item together with the source chosen for playback."""

    item: MediaItem
    source: MediaSource

    @property
    def id(self) -> str:
        return self.item.id


# -----------------------------------------------------------------------------
# Alerts and session state
# -----------------------------------------------------------------------------


class AlertKind(str, Enum):
    AUTH = "auth"
    API = "api"
    PLAYBACK = "playback"

    @property
    def title_key(self) -> str:
        return f"alerts.{self.value}.title"


@dataclass(frozen=True)
class SessionAlert:
    kind: AlertKind
    title: str
    detail: str
    created_at: float = field(default_factory=time.time)

    @classmethod
    def create(cls, kind: AlertKind, title_key: str) -> "SessionAlert":
        return cls(
            kind=kind,
            title=kind.title_key,
            detail=f"alerts.{kind.value}.{title_key}",
        )


class SessionStatus(str, Enum):
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    LOGGED_IN = "logged_in"


@dataclass(frozen=True)
class SessionState:
    """Snapshot published to subscribers after every committed mutation."""

    status: SessionStatus = SessionStatus.LOGGED_OUT
    session: Optional[SessionDescriptor] = None
    item_focus: Optional[MediaItem] = None
    prev_focus: Optional[MediaItem] = None
    item_playing: Optional[PlayItem] = None
    alert: Optional[SessionAlert] = None
    items: tuple = ()

    @property
    def logged_in(self) -> bool:
        return self.status == SessionStatus.LOGGED_IN and self.session is not None
