"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


DEFAULT_BASE_URL = "http://127.0.0.1:7272"

# Name of the persistent store; also the database file stem.
STORE_NAME = "reachard"


def _get_default_store_path() -> str:
    """Get the default credential store path using XDG-compliant directory.

    Returns ~/.local/share/reachard/reachard.db which is the standard
    location for user-specific data files on Linux/macOS.
    """
    home = Path.home()
    return str(home / ".local" / "share" / STORE_NAME / f"{STORE_NAME}.db")


DEFAULT_STORE_PATH = _get_default_store_path()


@dataclass(frozen=True)
class ApiConfig:
    """Configuration for the Reachard HTTP API."""

    base_url: str = DEFAULT_BASE_URL
    timeout: int = 10  # seconds per request

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("API base_url cannot be empty")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigError(f"API base_url must start with http:// or https://, got '{self.base_url}'")
        if self.timeout < 1:
            raise ConfigError(f"API timeout must be at least 1 second, got {self.timeout}")

    @property
    def session_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/v0/session/"

    @property
    def targets_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/v0/targets/"


@dataclass(frozen=True)
class StoreConfig:
    """Configuration for the credential store."""

    path: str = DEFAULT_STORE_PATH

    def __post_init__(self) -> None:
        if not self.path:
            raise ConfigError("Store path cannot be empty")


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    api: ApiConfig = field(default_factory=ApiConfig)
    store: StoreConfig = field(default_factory=StoreConfig)


def _parse_api_config(data: dict | None) -> ApiConfig:
    """Parse API configuration section."""
    if data is None:
        return ApiConfig()
    if not isinstance(data, dict):
        raise ConfigError("'api' section must be a dictionary")

    try:
        timeout = int(data.get("timeout", 10))
    except (TypeError, ValueError):
        raise ConfigError(f"API timeout must be an integer, got {data.get('timeout')!r}")

    return ApiConfig(
        base_url=str(data.get("base_url", DEFAULT_BASE_URL)),
        timeout=timeout,
    )


def _parse_store_config(data: dict | None) -> StoreConfig:
    """Parse store configuration section."""
    if data is None:
        return StoreConfig()
    if not isinstance(data, dict):
        raise ConfigError("'store' section must be a dictionary")

    path = str(data.get("path", DEFAULT_STORE_PATH))
    return StoreConfig(path=os.path.expanduser(path))


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - REACHARD_API_URL: Override api.base_url
    - REACHARD_API_TIMEOUT: Override api.timeout
    - REACHARD_STORE_PATH: Override store.path
    """
    if config_data.get("api") is None:
        config_data["api"] = {}
    if config_data.get("store") is None:
        config_data["store"] = {}

    # Malformed sections are left alone and rejected by the section parsers
    api = config_data["api"]
    store = config_data["store"]

    api_url = os.environ.get("REACHARD_API_URL")
    if api_url is not None and isinstance(api, dict):
        api["base_url"] = api_url

    api_timeout = os.environ.get("REACHARD_API_TIMEOUT")
    if api_timeout is not None and isinstance(api, dict):
        api["timeout"] = api_timeout

    store_path = os.environ.get("REACHARD_STORE_PATH")
    if store_path is not None and isinstance(store, dict):
        store["path"] = store_path

    return config_data


def load_config(config_path: str | None = None) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file, or None to use
            defaults plus environment overrides.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    data: dict = {}

    if config_path is not None:
        path = Path(config_path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}")

        if loaded is None:
            raise ConfigError("Configuration file is empty")

        if not isinstance(loaded, dict):
            raise ConfigError("Configuration must be a YAML dictionary")

        data = loaded

    data = _apply_env_overrides(data)

    return Config(
        api=_parse_api_config(data.get("api")),
        store=_parse_store_config(data.get("store")),
    )
