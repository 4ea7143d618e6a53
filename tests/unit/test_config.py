"""Unit tests for UplinkConfig parsing and CLI overrides."""

from pathlib import Path

import pytest

from telemetry_uplink.cli import build_parser
from telemetry_uplink.config import (
    DEFAULT_CONFIG_PATH,
    DEFAULTS,
    UplinkConfig,
    parse_endpoint,
    parse_paths,
)
from telemetry_uplink.core.exceptions import ConfigurationError
from telemetry_uplink.fix.types import FixQuality
from telemetry_uplink.paths.types import PathConfig


class TestParseHelpers:

    def test_parse_paths_keeps_order(self):
        assert parse_paths("lte=wwan0, wifi=wlan0") == [
            PathConfig("lte", "wwan0"),
            PathConfig("wifi", "wlan0"),
        ]

    def test_parse_paths_empty(self):
        assert parse_paths("") == []
        assert parse_paths(" , ") == []

    @pytest.mark.parametrize("value", ["lte", "=wwan0", "lte="])
    def test_parse_paths_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_paths(value)

    def test_parse_endpoint(self):
        assert parse_endpoint("ingest.example.net:5000") == ("ingest.example.net", 5000)
        assert parse_endpoint("[2001:db8::1]:7000") == ("2001:db8::1", 7000)

    @pytest.mark.parametrize("value", ["ingest", "ingest:", ":5000", "ingest:http", "ingest:70000"])
    def test_parse_endpoint_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_endpoint(value)


class TestUplinkConfigFromDict:

    def test_defaults_with_endpoint(self):
        config = UplinkConfig.from_dict({"endpoint_host": "ingest"})
        assert config.endpoint_port == 5000
        assert config.send_timeout == 2.0
        assert config.drain_timeout == 5.0
        assert config.buffer_capacity == 1000
        assert config.min_quality is FixQuality.FIX_2D
        assert config.paths == []
        assert config.probe_target == ("ingest", 5000)

    def test_values_converted(self):
        config = UplinkConfig.from_dict({
            "endpoint_host": "ingest",
            "paths": "lte=wwan0",
            "min_quality": "3d",
            "event_log": "/var/log/uplink/events.csv",
            "probe_host": "probe.example.net",
            "probe_port": 80,
        })
        assert config.paths == [PathConfig("lte", "wwan0")]
        assert config.min_quality is FixQuality.FIX_3D
        assert config.event_log == Path("/var/log/uplink/events.csv")
        assert config.probe_target == ("probe.example.net", 80)

    def test_missing_endpoint_rejected(self):
        with pytest.raises(ConfigurationError):
            UplinkConfig.from_dict({})

    @pytest.mark.parametrize("values", [
        {"source": "carrier-pigeon"},
        {"buffer_capacity": 0},
        {"min_quality": "4d"},
        {"down_after": 0},
    ])
    def test_invalid_values_rejected(self, values):
        with pytest.raises(ConfigurationError):
            UplinkConfig.from_dict({"endpoint_host": "ingest", **values})

    def test_to_dict_is_serializable(self):
        data = UplinkConfig.from_dict({"endpoint_host": "ingest", "paths": "lte=wwan0"}).to_dict()
        assert data["paths"] == ["lte=wwan0"]
        assert data["min_quality"] == "FIX_2D"


class TestCliOverrides:

    def test_cli_overrides_file_values(self):
        args = build_parser().parse_args([
            "--endpoint", "cli-host:6000",
            "--path", "sat=eth1",
            "--path", "wifi=wlan0",
            "--source", "serial",
            "--log-level", "debug",
            "--status-port", "9000",
            "--no-status-api",
        ])
        config = UplinkConfig.from_dict(
            {"endpoint_host": "file-host", "paths": "lte=wwan0", "source": "gpsd"},
            args,
        )
        assert (config.endpoint_host, config.endpoint_port) == ("cli-host", 6000)
        assert [p.id for p in config.paths] == ["sat", "wifi"]
        assert config.source == "serial"
        assert config.log_level == "debug"
        assert config.status_port == 9000
        assert config.status_api is False

    def test_unset_cli_arguments_keep_file_values(self):
        args = build_parser().parse_args([])
        config = UplinkConfig.from_dict({"endpoint_host": "file-host", "paths": "lte=wwan0"}, args)
        assert config.endpoint_host == "file-host"
        assert config.paths == [PathConfig("lte", "wwan0")]
        assert config.status_api is True


class TestConfigFiles:

    def test_shipped_config_has_every_key(self):
        keys = set()
        for line in DEFAULT_CONFIG_PATH.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                keys.add(line.split("=", 1)[0].strip())
        assert keys == set(DEFAULTS)

    def test_shipped_config_loads(self):
        config = UplinkConfig.load()
        assert [p.id for p in config.paths] == ["lte", "wifi"]
        assert config.probe_host == ""

    @pytest.mark.asyncio
    async def test_load_async_from_file(self, tmp_path):
        path = tmp_path / "config.txt"
        path.write_text(
            "endpoint_host = 10.0.0.5\n"
            "paths = cell=wwan0\n"
            "buffer_capacity = 50\n"
            "mptcp = off\n"
        )
        config = await UplinkConfig.load_async(path)
        assert config.endpoint_host == "10.0.0.5"
        assert config.buffer_capacity == 50
        assert config.mptcp is False
