"""Configuration management for pose-publisher tools.

Settings come from three layers, later ones winning:

1. the packaged default.toml
2. a user TOML file passed with --config
3. explicit command-line flags
"""

from __future__ import annotations

import argparse
import importlib.resources
import ipaddress
import sys
import tomllib
from dataclasses import dataclass, fields
from dataclasses import replace as dataclass_replace
from pathlib import Path
from typing import Any, NamedTuple

from .multicast import MulticastEndpoint


class ConfigurationError(Exception):
    """The effective configuration has one or more invalid values.

    Attributes:
        errors: Every problem found, one message each.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("invalid configuration: " + "; ".join(errors))


class DefaultConfigError(Exception):
    """The packaged default.toml is missing, unreadable or incomplete."""

    def __init__(self, message: str) -> None:
        super().__init__(f"bundled default.toml unusable: {message}")


class ConfigOverride(NamedTuple):
    """A value from a user config file that differs from the default."""

    key: str
    default_value: Any
    new_value: Any


@dataclass
class ProtocolConfig:
    """Settings shared by the listen, watch and demo commands.

    Every field must be present; default.toml supplies all of them.
    """

    # Multicast endpoints
    pose_address: str
    point_cloud_address: str
    command_address: str
    multicast_interfaces: list[str]

    # Loop and publish periods, seconds
    tick_interval: float
    status_log_interval: float
    publish_interval: float

    # REST bridge
    enable_bridge: bool
    bridge_host: str
    bridge_port: int

    # Logging
    log_dir: str | None
    log_level_console: str
    log_json_console: bool
    log_rotation: str | None
    log_retention: str | None

    @property
    def pose_endpoint(self) -> MulticastEndpoint:
        return MulticastEndpoint.parse(self.pose_address)

    @property
    def point_cloud_endpoint(self) -> MulticastEndpoint:
        return MulticastEndpoint.parse(self.point_cloud_address)

    @property
    def command_endpoint(self) -> MulticastEndpoint:
        return MulticastEndpoint.parse(self.command_address)


_VALID_KEYS: set[str] = {f.name for f in fields(ProtocolConfig)}

_OPTIONAL_STRING_KEYS = ("log_dir", "log_rotation", "log_retention")

_ADDRESS_KEYS = ("pose_address", "point_cloud_address", "command_address")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_default_toml_data() -> dict[str, Any]:
    """Parse the default.toml shipped inside the package.

    Raises:
        DefaultConfigError: When the resource is missing or not valid TOML.
    """
    try:
        files = importlib.resources.files("pose_publisher")
        content = files.joinpath("default.toml").read_bytes()
        return tomllib.loads(content.decode("utf-8"))
    except FileNotFoundError as e:
        raise DefaultConfigError(f"not found: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise DefaultConfigError(f"bad TOML: {e}") from e


def load_config_from_toml(path: Path) -> dict[str, Any]:
    """Read a user configuration file.

    Errors from opening or parsing the file (FileNotFoundError,
    tomllib.TOMLDecodeError) propagate unchanged.
    """
    with open(path, "rb") as f:
        return tomllib.load(f)


def process_toml_config(toml_data: dict[str, Any]) -> dict[str, Any]:
    """Keep known keys and turn empty optional strings into None."""
    result: dict[str, Any] = {}

    for key, value in toml_data.items():
        if key not in _VALID_KEYS:
            continue
        if key in _OPTIONAL_STRING_KEYS and value == "":
            value = None
        result[key] = value

    return result


def get_unknown_keys(toml_data: dict[str, Any]) -> list[str]:
    """Return keys that are not configuration fields (likely typos)."""
    return [key for key in toml_data if key not in _VALID_KEYS]


def validate_config(config: ProtocolConfig) -> list[str]:
    """Validate configuration values.

    Returns:
        One message per problem; empty when the configuration is usable.
    """
    errors: list[str] = []

    for field_name in _ADDRESS_KEYS:
        value = getattr(config, field_name)
        try:
            endpoint = MulticastEndpoint.parse(str(value))
        except ValueError as e:
            errors.append(f"{field_name} is not a valid 'address:port': {e}")
            continue
        if not endpoint.is_multicast:
            errors.append(
                f"{field_name} must be an IPv4 multicast address "
                f"(224.0.0.0-239.255.255.255), got {value}"
            )

    if not isinstance(config.multicast_interfaces, list):
        errors.append("multicast_interfaces must be a list of IPv4 addresses")
    else:
        for interface in config.multicast_interfaces:
            try:
                ipaddress.IPv4Address(interface)
            except ValueError:
                errors.append(
                    f"multicast_interfaces entry is not an IPv4 address: {interface!r}"
                )

    for field_name in ("tick_interval", "status_log_interval", "publish_interval"):
        value = getattr(config, field_name)
        if value <= 0:
            errors.append(f"{field_name} must be greater than zero, got {value}")

    if not 1 <= config.bridge_port <= 65535:
        errors.append(
            f"bridge_port must be between 1 and 65535, got {config.bridge_port}"
        )

    if config.log_level_console.upper() not in LOG_LEVELS:
        errors.append(
            f"log_level_console {config.log_level_console!r} is not one of "
            + ", ".join(LOG_LEVELS)
        )

    return errors


def load_default_config() -> ProtocolConfig:
    """Load the default configuration from the bundled default.toml.

    Raises:
        DefaultConfigError: If default.toml cannot be loaded or is incomplete.
    """
    config_data = process_toml_config(load_default_toml_data())

    missing = _VALID_KEYS - set(config_data)
    if missing:
        raise DefaultConfigError(
            f"Missing required fields in default.toml: {', '.join(sorted(missing))}"
        )

    return ProtocolConfig(**config_data)


def merge_cli_args(config: ProtocolConfig, args: argparse.Namespace) -> ProtocolConfig:
    """Apply explicitly provided CLI arguments on top of ``config``."""
    updates: dict[str, Any] = {}

    for key in (
        "pose_address",
        "point_cloud_address",
        "command_address",
        "bridge_port",
        "log_level_console",
        "log_rotation",
        "log_retention",
    ):
        value = getattr(args, key, None)
        if value is not None:
            updates[key] = value

    if getattr(args, "interfaces", None):
        updates["multicast_interfaces"] = list(args.interfaces)
    if getattr(args, "bridge", False):
        updates["enable_bridge"] = True
    if getattr(args, "log_dir", None) is not None:
        updates["log_dir"] = str(args.log_dir)
    if getattr(args, "log_json_console", False):
        updates["log_json_console"] = True

    if not updates:
        return config

    return dataclass_replace(config, **updates)


def create_config_from_args(
    args: argparse.Namespace,
) -> tuple[ProtocolConfig, list[ConfigOverride]]:
    """Build the effective configuration from defaults, ``--config`` and CLI args.

    Returns:
        The configuration and the user-file values that differ from defaults.

    Raises:
        DefaultConfigError: If default.toml cannot be loaded.
        FileNotFoundError: If the user config file does not exist.
        tomllib.TOMLDecodeError: If the user config file has invalid TOML syntax.
        ConfigurationError: If the final configuration is invalid.
    """
    config = load_default_config()
    overrides: list[ConfigOverride] = []

    if getattr(args, "config", None) is not None:
        user_config_path = Path(args.config)
        toml_data = load_config_from_toml(user_config_path)

        # Logging is not configured yet at this point
        unknown = get_unknown_keys(toml_data)
        if unknown:
            print(
                f"WARNING: ignoring unknown keys in {user_config_path}: "
                + ", ".join(unknown),
                file=sys.stderr,
            )

        config_data = process_toml_config(toml_data)
        for key, new_value in config_data.items():
            default_value = getattr(config, key)
            if default_value != new_value:
                overrides.append(ConfigOverride(key, default_value, new_value))
        if config_data:
            config = dataclass_replace(config, **config_data)

    config = merge_cli_args(config, args)

    errors = validate_config(config)
    if errors:
        raise ConfigurationError(errors)

    return config, overrides
