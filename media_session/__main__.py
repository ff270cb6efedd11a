#!/usr/bin/env python3
import argparse
import asyncio
import logging
from pathlib import Path

from .api_client import JellyfinAPIClient
from .config import load_config_from_json
from .credential_store import SecureCredentialStore
from .discovery import ServerLocator
from .event_bus import EventBus
from .models import ServerAnnouncement
from .session import SessionController

_LOGGER = logging.getLogger(__name__)
_MODULE_DIR = Path(__file__).parent

# -----------------------------------------------------------------------------


def _print_server(server: ServerAnnouncement) -> None:
    print(f"{server.server_name}: {server.to_server_info().base_url} (id={server.id})")


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        required=False,
        default=_MODULE_DIR / "config.json",
        help="Path to configuration.json file (default: media_session/config.json)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (overrides config file)",
    )
    parser.add_argument(
        "--discover",
        action="store_true",
        help="Search the local network for servers and exit",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Discovery window in seconds (overrides config file)",
    )
    parser.add_argument(
        "--restore",
        action="store_true",
        help="Log in with stored credentials and list the library",
    )
    parser.add_argument(
        "--logout",
        action="store_true",
        help="Forget stored credentials and exit",
    )
    args = parser.parse_args()

    # --- Load Configuration ---
    config = load_config_from_json(args.config)

    if args.debug:
        config.app.debug = True

    logging.basicConfig(level=logging.DEBUG if config.app.debug else logging.INFO)
    _LOGGER.info("Loading configuration from: %s", args.config)
    _LOGGER.debug("Configuration loaded: %s", config)

    loop = asyncio.get_running_loop()
    event_bus = EventBus()

    # --- Discovery ---
    if args.discover:
        locator = ServerLocator(config.discovery)
        servers = await locator.discover_servers(args.timeout)
        if not servers:
            print("No servers found")
        for server in servers:
            _print_server(server)
        return

    # --- Create Session ---
    store = SecureCredentialStore(config.credentials.service_name)
    api = JellyfinAPIClient(
        version=config.app.version,
        timeout=config.api.timeout_seconds,
        device_name=config.api.device_name or None,
        item_types=config.api.item_types,
    )
    session = SessionController(
        api,
        store,
        event_bus=event_bus,
        credentials_key=config.credentials.key,
        loop=loop,
    )
    session.subscribe(
        lambda data: _LOGGER.debug("Session state changed: %s", data.get("changed"))
    )

    if args.logout:
        session.logout()
        print("Logged out")
        return

    if args.restore:
        if not await session.load_credentials():
            alert = session.alert
            if alert is not None:
                print(f"Login failed: {alert.detail}")
            else:
                print("No usable stored credentials")
            return

        await session.reload_items()
        if session.alert is not None:
            print(f"Could not fetch items: {session.alert.detail}")
            return

        for item in session.items:
            print(f"{item.type}\t{item.id}\t{item.name}")
        return

    parser.print_help()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
