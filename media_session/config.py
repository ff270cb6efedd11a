"""Configuration models for the application."""

import json
from dataclasses import dataclass, field
from pathlib import Path

import logging
_LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Configuration Dataclasses
# -----------------------------------------------------------------------------

@dataclass
class AppConfig:
    """General application settings."""
    name: str
    version: str = "0.1.0"
    debug: bool = False


@dataclass
class DiscoveryConfig:
    """Settings for local network server discovery."""
    broadcast_address: str = "255.255.255.255"
    port: int = 7359
    probe_message: str = "Who is JellyfinServer?"
    timeout_seconds: float = 5.0


@dataclass
class CredentialsConfig:
    """Settings for the platform secret store."""
    service_name: str = "media-session"
    key: str = "credentials"


@dataclass
class ApiConfig:
    """Settings for the media server HTTP client."""
    timeout_seconds: float = 15.0
    device_name: str = ""  # Note: falls back to the host name when empty
    item_types: str = "Movie,Series"


@dataclass
class Config:
    """Main configuration object."""
    app: AppConfig
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    api: ApiConfig = field(default_factory=ApiConfig)

# -----------------------------------------------------------------------------
# Helper Function
# -----------------------------------------------------------------------------

def load_config_from_json(config_path: Path) -> Config:
    """Loads configuration from a JSON file and populates dataclasses."""

    # --- Step 1: Load raw JSON data ---
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except FileNotFoundError:
        _LOGGER.critical("Configuration file not found at: %s", config_path)
        raise
    except json.JSONDecodeError as e:
        _LOGGER.critical("Error parsing configuration file: %s", e)
        raise

    # --- Step 2: Create config objects from raw data ---
    if "app" not in raw_data:
        raise ValueError(
            "Configuration file must contain an 'app' section with a 'name'."
        )

    app_config = AppConfig(**raw_data.get("app", {}))
    discovery_config = DiscoveryConfig(**raw_data.get("discovery", {}))
    credentials_config = CredentialsConfig(**raw_data.get("credentials", {}))
    api_config = ApiConfig(**raw_data.get("api", {}))

    # --- Step 3: Validate discovery window ---
    if discovery_config.timeout_seconds <= 0:
        raise ValueError("discovery.timeout_seconds must be positive")

    # --- Step 4: Return the main Config object ---
    return Config(
        app=app_config,
        discovery=discovery_config,
        credentials=credentials_config,
        api=api_config,
    )
