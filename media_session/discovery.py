"""Local network server discovery."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .config import DiscoveryConfig
from .models import ServerAnnouncement

_LOGGER = logging.getLogger(__name__)

OnFound = Callable[[ServerAnnouncement], None]


def _parse_port(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        port = int(value)
    except (TypeError, ValueError):
        return None
    if not 0 < port < 65536:
        return None
    return port


def parse_announcement(data: bytes) -> Optional[ServerAnnouncement]:
    """
    Parse one discovery reply. Returns None for anything malformed.

    Accepted shapes:
      {"Address": "http://10.0.0.5:8096", "Id": "...", "Name": "..."}
      {"id": "...", "host": "10.0.0.5", "port": 8096, "name": "..."}
    """
    try:
        raw = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None

    if not isinstance(raw, dict):
        return None

    use_tls = False
    if "Address" in raw:
        server_id = raw.get("Id")
        name = raw.get("Name")
        address = raw.get("Address")
        if not isinstance(address, str):
            return None
        try:
            parsed = urlparse(address)
            host = parsed.hostname
            port = parsed.port
        except ValueError:
            return None
        if parsed.scheme not in ("http", "https"):
            return None
        use_tls = parsed.scheme == "https"
        if port is None:
            port = 443 if use_tls else 80
    else:
        server_id = raw.get("id")
        name = raw.get("name")
        host = raw.get("host")
        port = _parse_port(raw.get("port"))

    if not isinstance(server_id, str) or not server_id:
        return None
    if not isinstance(host, str) or not host or port is None:
        return None
    if name is not None and not isinstance(name, str):
        return None

    return ServerAnnouncement(
        id=server_id,
        host=host,
        port=port,
        server_name=name or host,
        use_tls=use_tls,
    )


class DiscoveryHandle:
    """One discovery session. Cancel it to stop callbacks and release the socket."""

    def __init__(self, loop: asyncio.AbstractEventLoop, on_found: OnFound) -> None:
        self._loop = loop
        self._on_found = on_found
        self._found: Dict[str, ServerAnnouncement] = {}
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._open_task: Optional[asyncio.Task] = None
        self._done: asyncio.Future = loop.create_future()
        self._cancelled = False

    @property
    def done(self) -> asyncio.Future:
        """Resolves with the announcements seen once the session ends."""
        return self._done

    @property
    def finished(self) -> bool:
        return self._done.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def results(self) -> List[ServerAnnouncement]:
        return list(self._found.values())

    def cancel(self) -> None:
        """Stop the session early. Safe to call more than once."""
        if self.finished:
            return
        _LOGGER.debug("Discovery cancelled")
        self._cancelled = True
        self._finish()

    def _on_timeout(self) -> None:
        self._timer = None
        if not self.finished:
            _LOGGER.debug("Discovery window elapsed with %s server(s)", len(self._found))
            self._finish()

    def _finish(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        open_task = self._open_task
        if (
            open_task is not None
            and not open_task.done()
            and open_task is not asyncio.current_task(self._loop)
        ):
            open_task.cancel()
        self._open_task = None

        if self._transport is not None:
            self._transport.close()
            self._transport = None

        if not self._done.done():
            self._done.set_result(self.results)

    def _attach(self, transport: asyncio.DatagramTransport) -> bool:
        if self.finished:
            transport.close()
            return False
        self._transport = transport
        return True

    def _deliver(self, announcement: ServerAnnouncement) -> None:
        if self.finished:
            return
        if announcement.id in self._found:
            return

        self._found[announcement.id] = announcement
        _LOGGER.debug(
            "Found server %s (%s:%s)",
            announcement.server_name,
            announcement.host,
            announcement.port,
        )
        try:
            self._on_found(announcement)
        except Exception:
            _LOGGER.exception("Error in discovery callback")


class _DiscoveryProtocol(asyncio.DatagramProtocol):

    def __init__(self, handle: DiscoveryHandle, probe: bytes, target: Tuple[str, int]) -> None:
        self._handle = handle
        self._probe = probe
        self._target = target

    def connection_made(self, transport) -> None:
        if not self._handle._attach(transport):
            return
        _LOGGER.debug("Sending discovery probe to %s:%s", *self._target)
        transport.sendto(self._probe, self._target)

    def datagram_received(self, data: bytes, addr) -> None:
        announcement = parse_announcement(data)
        if announcement is None:
            _LOGGER.debug("Dropping malformed announcement from %s: %r", addr, data[:200])
            return
        self._handle._deliver(announcement)

    def error_received(self, exc) -> None:
        _LOGGER.debug("Discovery socket error: %s", exc)

    def connection_lost(self, exc) -> None:
        if exc is not None:
            _LOGGER.debug("Discovery socket closed: %s", exc)


class ServerLocator:
    """Finds media servers by broadcasting a probe and collecting replies."""

    def __init__(self, config: Optional[DiscoveryConfig] = None) -> None:
        self.config = config or DiscoveryConfig()

    def locate_server(
        self,
        on_found: OnFound,
        timeout_seconds: Optional[float] = None,
    ) -> DiscoveryHandle:
        """
        Start one discovery session on the running loop.

        `on_found` fires at most once per server id within this session.
        Deduplicating across sessions is left to the caller.
        """
        loop = asyncio.get_running_loop()
        if timeout_seconds is None:
            timeout_seconds = self.config.timeout_seconds

        handle = DiscoveryHandle(loop, on_found)
        handle._timer = loop.call_later(timeout_seconds, handle._on_timeout)
        handle._open_task = loop.create_task(self._open(loop, handle))
        return handle

    async def discover_servers(
        self, timeout_seconds: Optional[float] = None
    ) -> List[ServerAnnouncement]:
        """Run a whole discovery session and return what answered."""
        handle = self.locate_server(lambda _server: None, timeout_seconds)
        try:
            return await handle.done
        finally:
            handle.cancel()

    async def _open(self, loop: asyncio.AbstractEventLoop, handle: DiscoveryHandle) -> None:
        probe = self.config.probe_message.encode("utf-8")
        target = (self.config.broadcast_address, self.config.port)
        try:
            await loop.create_datagram_endpoint(
                lambda: _DiscoveryProtocol(handle, probe, target),
                local_addr=("0.0.0.0", 0),
                allow_broadcast=True,
            )
        except OSError:
            _LOGGER.warning("Unable to open discovery socket", exc_info=True)
            handle._finish()
