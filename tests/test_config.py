"""Tests for configuration module."""

import argparse
from dataclasses import replace
from pathlib import Path

import pytest

from pose_publisher.config import (
    ConfigurationError,
    ProtocolConfig,
    create_config_from_args,
    get_unknown_keys,
    load_config_from_toml,
    load_default_config,
    merge_cli_args,
    process_toml_config,
    validate_config,
)
from pose_publisher.multicast import MulticastEndpoint


def _args(**kwargs) -> argparse.Namespace:
    defaults = {
        "config": None,
        "pose_address": None,
        "point_cloud_address": None,
        "command_address": None,
        "interfaces": None,
        "bridge": False,
        "bridge_port": None,
        "log_dir": None,
        "log_level_console": None,
        "log_json_console": False,
        "log_rotation": None,
        "log_retention": None,
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


class TestDefaultConfig:
    """Tests for the bundled default.toml."""

    def test_default_values(self):
        """Test that the well-known group addresses are the defaults."""
        config = load_default_config()
        assert config.pose_address == "239.0.0.22:7072"
        assert config.point_cloud_address == "239.0.0.22:7075"
        assert config.command_address == "239.0.0.22:7076"
        assert config.multicast_interfaces == []
        assert config.enable_bridge is False
        assert config.log_dir is None
        assert config.log_rotation is None

    def test_default_config_is_valid(self):
        assert validate_config(load_default_config()) == []

    def test_endpoint_properties(self):
        config = load_default_config()
        assert config.pose_endpoint == MulticastEndpoint("239.0.0.22", 7072)
        assert config.point_cloud_endpoint.port == 7075
        assert config.command_endpoint.port == 7076


class TestLoadConfigFromToml:
    """Tests for load_config_from_toml function."""

    def test_load_valid_toml(self, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            'pose_address = "239.1.2.3:9000"\nmulticast_interfaces = ["192.168.1.5"]\n'
        )

        data = load_config_from_toml(config_file)
        assert data["pose_address"] == "239.1.2.3:9000"
        assert data["multicast_interfaces"] == ["192.168.1.5"]

    def test_load_nonexistent_file(self, tmp_path: Path):
        """Test that FileNotFoundError is raised for missing file."""
        with pytest.raises(FileNotFoundError):
            load_config_from_toml(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml(self, tmp_path: Path):
        """Test that TOMLDecodeError is raised for invalid TOML."""
        import tomllib

        config_file = tmp_path / "invalid.toml"
        config_file.write_text("invalid = [unclosed")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_config_from_toml(config_file)


class TestProcessTomlConfig:
    def test_unknown_keys_are_dropped_and_reported(self):
        data = {"pose_address": "239.0.0.1:1000", "pose_adress": "typo"}

        assert process_toml_config(data) == {"pose_address": "239.0.0.1:1000"}
        assert get_unknown_keys(data) == ["pose_adress"]

    def test_empty_optional_strings_become_none(self):
        data = {"log_dir": "", "log_rotation": "", "log_level_console": "DEBUG"}

        assert process_toml_config(data) == {
            "log_dir": None,
            "log_rotation": None,
            "log_level_console": "DEBUG",
        }


class TestValidateConfig:
    @pytest.fixture
    def config(self) -> ProtocolConfig:
        return load_default_config()

    def test_unicast_address_is_rejected(self, config: ProtocolConfig):
        errors = validate_config(replace(config, pose_address="10.0.0.5:7072"))
        assert len(errors) == 1
        assert "pose_address" in errors[0]

    def test_malformed_address_is_rejected(self, config: ProtocolConfig):
        errors = validate_config(replace(config, command_address="239.0.0.22"))
        assert len(errors) == 1
        assert "command_address" in errors[0]

    def test_bad_interface_is_rejected(self, config: ProtocolConfig):
        errors = validate_config(replace(config, multicast_interfaces=["eth0"]))
        assert len(errors) == 1
        assert "eth0" in errors[0]

    def test_timing_and_port_ranges(self, config: ProtocolConfig):
        errors = validate_config(
            replace(config, tick_interval=0, publish_interval=-1.0, bridge_port=70000)
        )
        assert len(errors) == 3

    def test_bad_log_level(self, config: ProtocolConfig):
        errors = validate_config(replace(config, log_level_console="LOUD"))
        assert len(errors) == 1
        assert "log_level_console" in errors[0]


class TestMergeCliArgs:
    def test_no_args_returns_same_config(self):
        config = load_default_config()
        assert merge_cli_args(config, _args()) is config

    def test_cli_values_override(self):
        config = merge_cli_args(
            load_default_config(),
            _args(
                pose_address="239.9.9.9:9999",
                interfaces=["192.168.1.5"],
                bridge=True,
                bridge_port=9000,
                log_dir=Path("/tmp/logs"),
                log_json_console=True,
            ),
        )
        assert config.pose_address == "239.9.9.9:9999"
        assert config.multicast_interfaces == ["192.168.1.5"]
        assert config.enable_bridge is True
        assert config.bridge_port == 9000
        assert config.log_dir == str(Path("/tmp/logs"))
        assert config.log_json_console is True


class TestCreateConfigFromArgs:
    def test_user_file_then_cli(self, tmp_path: Path, capsys):
        config_file = tmp_path / "user.toml"
        config_file.write_text(
            'pose_address = "239.1.1.1:8000"\n'
            'command_address = "239.1.1.1:8001"\n'
            "unknown_key = 1\n"
        )

        config, overrides = create_config_from_args(
            _args(config=config_file, command_address="239.2.2.2:8002")
        )

        assert config.pose_address == "239.1.1.1:8000"
        assert config.command_address == "239.2.2.2:8002"
        assert {o.key for o in overrides} == {"pose_address", "command_address"}
        assert "unknown_key" in capsys.readouterr().err

    def test_invalid_result_raises(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_args(_args(pose_address="192.168.0.1:7072"))

        assert len(exc_info.value.errors) == 1
