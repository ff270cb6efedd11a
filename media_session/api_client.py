"""Media server API collaborator."""

import asyncio
import functools
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from .errors import ApiError, AuthError
from .models import MediaItem, ServerInfo, SessionDescriptor, UserCredentials, UserInfo
from .util import get_device_id, get_device_name

_LOGGER = logging.getLogger(__name__)

CLIENT_NAME = "Media Session"


class MediaAPIClient(ABC):
    """The two media server operations the session core depends on."""

    @abstractmethod
    async def authenticate(self, descriptor: SessionDescriptor) -> UserInfo:
        """Check the descriptor against the server.

        Raises:
            ApiError: the call failed (AuthError when credentials are rejected)
        """

    @abstractmethod
    async def list_items(self, descriptor: SessionDescriptor) -> List[MediaItem]:
        """Fetch the user's media items.

        Raises:
            ApiError: the call failed
        """

    async def authenticate_by_name(
        self, server: ServerInfo, username: str, password: str
    ) -> SessionDescriptor:
        """Log in with a username/password. Optional for implementations."""
        raise AuthError(f"{type(self).__name__} does not support password login")


class JellyfinAPIClient(MediaAPIClient):
    """Jellyfin HTTP implementation. Blocking requests run in the default executor."""

    def __init__(
        self,
        version: str = "0.1.0",
        timeout: float = 15.0,
        device_name: Optional[str] = None,
        device_id: Optional[str] = None,
        item_types: str = "Movie,Series",
    ) -> None:
        self.version = version
        self.timeout = timeout
        self.device_name = get_device_name(device_name)
        self.device_id = device_id or get_device_id()
        self.item_types = item_types

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def authenticate(self, descriptor: SessionDescriptor) -> UserInfo:
        path = f"/Users/{quote(descriptor.user.user_id)}"
        data = await self._call(
            "GET", descriptor.base_url, path, token=descriptor.user.access_token
        )
        if not isinstance(data, dict) or "Id" not in data:
            raise ApiError("Current user response did not contain an id")
        return UserInfo(user_id=str(data["Id"]), name=data.get("Name"))

    async def list_items(self, descriptor: SessionDescriptor) -> List[MediaItem]:
        params = {
            "Recursive": "true",
            "IncludeItemTypes": self.item_types,
            "Fields": "MediaSources",
            "SortBy": "SortName",
            "SortOrder": "Ascending",
        }
        path = f"/Users/{quote(descriptor.user.user_id)}/Items"
        data = await self._call(
            "GET",
            descriptor.base_url,
            path,
            token=descriptor.user.access_token,
            params=params,
        )
        if not isinstance(data, dict):
            raise ApiError("Items response is not an object")

        items: List[MediaItem] = []
        for raw_item in data.get("Items") or []:
            try:
                items.append(MediaItem.from_api(raw_item))
            except (KeyError, TypeError):
                _LOGGER.debug("Skipping malformed item: %s", raw_item, exc_info=True)

        return items

    async def authenticate_by_name(
        self, server: ServerInfo, username: str, password: str
    ) -> SessionDescriptor:
        """Log in with a username/password and return the resulting descriptor."""
        data = await self._call(
            "POST",
            server.base_url,
            "/Users/AuthenticateByName",
            body={"Username": username, "Pw": password},
        )
        if not isinstance(data, dict):
            raise AuthError("Authentication response is not an object")

        token = data.get("AccessToken")
        user = data.get("User") or {}
        user_id = user.get("Id")
        if not token or not user_id:
            raise AuthError("Authentication did not return token/user id")

        return SessionDescriptor(
            server=server,
            user=UserCredentials(user_id=str(user_id), access_token=str(token)),
        )

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    def auth_header(self, token: Optional[str] = None) -> str:
        parts = [
            f'Client="{CLIENT_NAME}"',
            f'Device="{self.device_name}"',
            f'DeviceId="{self.device_id}"',
            f'Version="{self.version}"',
        ]
        if token:
            parts.append(f'Token="{token}"')
        return "MediaBrowser " + ", ".join(parts)

    async def _call(
        self,
        method: str,
        base_url: str,
        path: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Wrapper to run the blocking request in a thread executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            functools.partial(
                self._request_json, method, base_url, path, token, params, body
            ),
        )

    def _request_json(
        self,
        method: str,
        base_url: str,
        path: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Blocking request logic, intended to run in an executor."""
        url = f"{base_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"

        payload = json.dumps(body).encode("utf-8") if body is not None else None
        request = Request(
            url,
            data=payload,
            method=method,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Authorization": self.auth_header(token),
            },
        )

        _LOGGER.debug("%s %s", method, url)
        try:
            with urlopen(request, timeout=self.timeout) as response:
                raw = response.read()
        except HTTPError as e:
            if e.code in (401, 403):
                raise AuthError(f"{method} {path} rejected: HTTP {e.code}", e.code) from e
            raise ApiError(f"{method} {path} failed: HTTP {e.code}", e.code) from e
        except (URLError, OSError) as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if not raw:
            return None

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ApiError(f"{method} {path} returned invalid JSON") from e
