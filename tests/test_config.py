"""Unit tests for configuration parsing and validation."""

from unittest import mock

import pytest

from lanspeed.config import SpeedTestConfig, parse_address
from lanspeed.main import build_parser, config_from_args


@pytest.mark.unit
class TestParseAddress:
    """Tests for parse_address."""

    @pytest.mark.parametrize("value,expected", [
        (":8080", ("0.0.0.0", 8080)),
        ("127.0.0.1:3001", ("127.0.0.1", 3001)),
        ("9000", ("0.0.0.0", 9000)),
        ("[::1]:8080", ("::1", 8080)),
    ])
    def test_forms(self, value, expected) -> None:
        assert parse_address(value) == expected

    def test_invalid_port(self) -> None:
        with pytest.raises(ValueError):
            parse_address(":http")


@pytest.mark.unit
class TestSpeedTestConfig:
    """Tests for SpeedTestConfig."""

    def test_defaults(self) -> None:
        config = SpeedTestConfig()
        assert config.port == 8080
        assert config.bulk_port == 3001
        assert config.chunk_size == 8 * 1024 * 1024
        assert config.default_duration == 10
        assert config.sample_interval == 1.0
        assert config.measurement_mode == "pull"
        assert config.validate() is True

    def test_from_env(self) -> None:
        env = {
            "LANSPEED_PORT": "9090",
            "LANSPEED_CHUNK_SIZE": "1048576",
            "LANSPEED_MODE": "PUSH",
            "LANSPEED_REUSE_PAYLOAD": "true",
            "LANSPEED_SAMPLE_INTERVAL": "0.5",
        }
        with mock.patch.dict("os.environ", env):
            config = SpeedTestConfig.from_env()
        assert config.port == 9090
        assert config.chunk_size == 1048576
        assert config.measurement_mode == "push"
        assert config.reuse_payload is True
        assert config.sample_interval == 0.5

    def test_config_is_immutable(self) -> None:
        config = SpeedTestConfig()
        with pytest.raises(AttributeError):
            config.port = 1

    @pytest.mark.parametrize("changes", [
        {"chunk_size": 0},
        {"measurement_mode": "udp"},
        {"port": 70000},
        {"default_duration": 0},
        {"default_duration": 20, "max_duration": 10},
        {"sample_interval": -1.0},
        {"transfer_timeout": 0},
        {"max_connections": 0},
    ])
    def test_validate_rejects(self, changes) -> None:
        with pytest.raises(ValueError):
            SpeedTestConfig(**changes).validate()

    @pytest.mark.parametrize("requested,expected", [(0, 10), (3, 3), (10_000, 300)])
    def test_resolve_duration(self, requested, expected) -> None:
        assert SpeedTestConfig().resolve_duration(requested) == expected

    def test_with_overrides_ignores_none(self) -> None:
        config = SpeedTestConfig().with_overrides(port=None, chunk_size=1024)
        assert config.port == 8080
        assert config.chunk_size == 1024


@pytest.mark.unit
class TestCommandLine:
    """Tests for CLI overrides."""

    def test_flags_override_base(self) -> None:
        args = build_parser().parse_args(
            ["--addr", ":9000", "--test-addr", "127.0.0.1:4001", "--chunk-size", "4096", "--mode", "push"]
        )
        config = config_from_args(args, SpeedTestConfig())
        assert (config.host, config.port) == ("0.0.0.0", 9000)
        assert (config.bulk_host, config.bulk_port) == ("127.0.0.1", 4001)
        assert config.chunk_size == 4096
        assert config.measurement_mode == "push"

    def test_no_flags_keeps_base(self) -> None:
        base = SpeedTestConfig(port=1234)
        assert config_from_args(build_parser().parse_args([]), base) == base
