"""Authenticated session state machine."""

import asyncio
import dataclasses
import logging
from typing import Any, Callable, Iterable, Optional, Set

from .api_client import MediaAPIClient
from .credential_store import SecureCredentialStore
from .errors import CredentialCorruptError
from .event_bus import SESSION_STATE_CHANGED, EventBus
from .models import (
    AlertKind,
    MediaItem,
    PlayItem,
    ServerInfo,
    SessionAlert,
    SessionDescriptor,
    SessionState,
    SessionStatus,
)

_LOGGER = logging.getLogger(__name__)

CREDENTIALS_KEY = "credentials"


def merge_items(existing: Iterable[MediaItem], incoming: Iterable[MediaItem]) -> tuple:
    """Set-union keyed on id. Existing entries stay put, new ones are appended in arrival order."""
    merged = list(existing)
    seen = {item.id for item in merged}
    for item in incoming:
        if item.id in seen:
            continue
        seen.add(item.id)
        merged.append(item)
    return tuple(merged)


class SessionController:
    """
    Owns the session state and every mutation of it.

    All methods must run on the event loop the controller belongs to; use
    dispatch() from other threads. Each committed mutation is published on
    the event bus (topic `session_state_changed`) before the method returns,
    with the new SessionState snapshot under the "state" key.
    """

    def __init__(
        self,
        api: MediaAPIClient,
        store: SecureCredentialStore,
        event_bus: Optional[EventBus] = None,
        credentials_key: str = CREDENTIALS_KEY,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.api = api
        self.store = store
        self.event_bus = event_bus or EventBus()
        self.credentials_key = credentials_key

        self._loop = loop
        self._state = SessionState()
        self._tasks: Set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def session(self) -> Optional[SessionDescriptor]:
        return self._state.session

    @property
    def items(self) -> list:
        return list(self._state.items)

    @property
    def item_focus(self) -> Optional[MediaItem]:
        return self._state.item_focus

    @property
    def prev_focus(self) -> Optional[MediaItem]:
        return self._state.prev_focus

    @property
    def item_playing(self) -> Optional[PlayItem]:
        return self._state.item_playing

    @property
    def alert(self) -> Optional[SessionAlert]:
        return self._state.alert

    def subscribe(self, listener: Callable[[dict], None]) -> Callable[[], None]:
        """Subscribe to state changes. Returns an unsubscribe callable."""
        return self.event_bus.subscribe(SESSION_STATE_CHANGED, listener)

    def _apply(self, **changes: Any) -> None:
        self._state = dataclasses.replace(self._state, **changes)

    def _publish(self, changed: Iterable[str]) -> None:
        self.event_bus.publish(
            SESSION_STATE_CHANGED,
            {"state": self._state, "changed": sorted(changed)},
        )

    def _commit(self, **changes: Any) -> None:
        self._apply(**changes)
        self._publish(changes)

    def dispatch(self, command: Callable[..., Any], *args: Any) -> None:
        """Run a command on the owning loop from any thread. Coroutines are scheduled as tasks."""
        if self._loop is None:
            raise RuntimeError("SessionController is not bound to an event loop")

        def _run() -> None:
            result = command(*args)
            if asyncio.iscoroutine(result):
                task = self._loop.create_task(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

        self._loop.call_soon_threadsafe(_run)

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    async def load_credentials(
        self, completion: Optional[Callable[[bool], None]] = None
    ) -> bool:
        """Load stored credentials and try to authenticate with them."""
        success = await self._load_credentials()
        if completion is not None:
            completion(success)
        return success

    async def _load_credentials(self) -> bool:
        # Keyring reads may block on an unlock prompt
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self.store.load, self.credentials_key)
        if data is None:
            _LOGGER.debug("[CREDENTIALS] no stored credentials")
            return False

        try:
            descriptor = SessionDescriptor.from_bytes(data)
        except CredentialCorruptError:
            _LOGGER.warning("[CREDENTIALS] unable to load credentials", exc_info=True)
            return False

        previous_status = self._state.status
        self._commit(status=SessionStatus.AUTHENTICATING)

        try:
            await self.api.authenticate(descriptor)
        except Exception as e:
            _LOGGER.info("[CREDENTIALS] failed to authenticate with stored credentials")
            self._commit(status=previous_status)
            self.set_alert(AlertKind.AUTH, "failed", descriptor.describe(), e)
            return False

        _LOGGER.info("[CREDENTIALS] successfully authenticated with stored credentials")
        self.set_session(descriptor)
        return True

    def store_credentials(self) -> bool:
        """Persist the current descriptor. Best effort, never raises."""
        session = self._state.session
        if session is None:
            _LOGGER.debug("[CREDENTIALS] no session to store")
            return False

        if self.store.save(self.credentials_key, session.to_bytes()):
            _LOGGER.info("[CREDENTIALS] successfully stored credentials")
            return True

        _LOGGER.warning("[CREDENTIALS] failed to store credentials")
        return False

    def clear_credentials(self) -> None:
        if not self.store.clear(self.credentials_key):
            _LOGGER.warning("[CREDENTIALS] failed to clear credentials")

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    def set_session(self, descriptor: SessionDescriptor) -> None:
        """Enter LOGGED_IN with the descriptor and persist it before notifying."""
        changes = {"status": SessionStatus.LOGGED_IN, "session": descriptor}

        previous = self._state.session
        if previous is not None and (
            previous.server != descriptor.server
            or previous.user.user_id != descriptor.user.user_id
        ):
            # Different account: cached items belong to the old one
            changes["items"] = ()

        self._apply(**changes)
        try:
            self.store_credentials()
        finally:
            self._publish(changes)

    async def login(self, server: ServerInfo, username: str, password: str) -> bool:
        """Log in with a username and password, then start the session."""
        previous_status = self._state.status
        self._commit(status=SessionStatus.AUTHENTICATING)

        try:
            descriptor = await self.api.authenticate_by_name(server, username, password)
        except Exception as e:
            self._commit(status=previous_status)
            self.set_alert(
                AlertKind.AUTH,
                "failed",
                f"{username}@{server.host}:{server.port}",
                e,
            )
            return False

        self.set_session(descriptor)
        return True

    def logout(self) -> None:
        """Clear stored credentials, then drop the in-memory session."""
        try:
            self.clear_credentials()
        finally:
            self._commit(
                status=SessionStatus.LOGGED_OUT,
                session=None,
                items=(),
                item_focus=None,
                prev_focus=None,
                item_playing=None,
            )

    # -------------------------------------------------------------------------
    # Focus and playback
    # -------------------------------------------------------------------------

    def set_focus(self, item: Optional[MediaItem]) -> None:
        self._commit(item_focus=item)

    def restore_focus(self) -> None:
        """Move the previous focus back into focus. Consumed once."""
        if self._state.prev_focus is None:
            return
        self._commit(item_focus=self._state.prev_focus, prev_focus=None)

    def set_play_item(self, item: PlayItem) -> None:
        self._commit(
            prev_focus=self._state.item_focus,
            item_playing=item,
            item_focus=None,
        )

    def play(self, item: MediaItem) -> bool:
        """Play the first playable source of an item."""
        sources = item.playable_sources
        if not sources:
            self.set_alert(
                AlertKind.PLAYBACK,
                "unsupported",
                f"no playable source for {item.id}",
                None,
            )
            return False

        self.set_play_item(PlayItem(item=item, source=sources[0]))
        return True

    def stop_playback(self) -> None:
        if self._state.item_playing is None:
            return
        self._commit(item_playing=None)

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------

    def set_alert(
        self,
        kind: AlertKind,
        title_key: str,
        debug_context: str,
        error: Optional[BaseException] = None,
    ) -> None:
        _LOGGER.warning(
            "[%s], %s, %s",
            kind.value.upper(),
            debug_context,
            error if error is not None else "NO ERROR",
        )
        self._commit(alert=SessionAlert.create(kind, title_key))

    def dismiss_alert(self) -> None:
        if self._state.alert is None:
            return
        self._commit(alert=None)

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    async def reload_items(self) -> None:
        """Fetch items from the server and merge them into the cache."""
        session = self._state.session
        if session is None:
            return

        try:
            items = await self.api.list_items(session)
        except Exception as e:
            self.set_alert(AlertKind.API, "fetch_failed", "API.items failed", e)
            return

        if self._state.session != session:
            _LOGGER.debug("Session changed while fetching items, discarding result")
            return

        merged = merge_items(self._state.items, items)
        added = len(merged) - len(self._state.items)
        _LOGGER.debug("Fetched %s item(s), %s new", len(items), added)
        if added:
            self._commit(items=merged)
