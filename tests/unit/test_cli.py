"""Tests for the command line entry point and application wiring."""

from unittest.mock import patch

import pytest

from telemetry_uplink.app import UplinkApp, build_source
from telemetry_uplink.cli import EXIT_CONFIG_ERROR, build_parser, main
from telemetry_uplink.config import UplinkConfig
from telemetry_uplink.core.exceptions import NoPathsConfigured
from telemetry_uplink.fix.gpsd_source import GpsdFixSource
from telemetry_uplink.fix.serial_source import SerialFixSource


class TestBuildParser:

    def test_defaults_leave_config_in_charge(self):
        args = build_parser().parse_args([])
        assert args.config is None
        assert args.log_level is None
        assert args.paths is None
        assert args.no_status_api is False

    def test_repeated_paths(self):
        args = build_parser().parse_args(["--path", "a=eth0", "--path", "b=eth1"])
        assert args.paths == ["a=eth0", "b=eth1"]

    def test_rejects_bad_status_port(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--status-port", "-1"])


class TestMainExitCodes:

    @pytest.mark.asyncio
    async def test_no_paths_exits_non_zero(self, tmp_path, caplog):
        config = tmp_path / "config.txt"
        config.write_text("endpoint_host = ingest\npaths =\n")

        with patch("telemetry_uplink.cli.configure_logging"):
            code = await main(["--config", str(config), "--no-status-api"])

        assert code == EXIT_CONFIG_ERROR
        messages = [r.getMessage() for r in caplog.records if "No network paths configured" in r.getMessage()]
        assert len(messages) == 1

    @pytest.mark.asyncio
    async def test_invalid_config_exits_non_zero(self, tmp_path):
        config = tmp_path / "config.txt"
        config.write_text("paths = lte=wwan0\n")

        with patch("telemetry_uplink.cli.configure_logging"):
            assert await main(["--config", str(config)]) == EXIT_CONFIG_ERROR


class TestUplinkApp:

    def test_no_paths_raises(self):
        config = UplinkConfig(endpoint_host="ingest", paths=[])
        with pytest.raises(NoPathsConfigured):
            UplinkApp(config)

    def test_build_source_kinds(self):
        assert isinstance(build_source(UplinkConfig(endpoint_host="x", source="gpsd")), GpsdFixSource)
        serial = build_source(UplinkConfig(endpoint_host="x", source="serial", serial_port="/dev/ttyUSB1"))
        assert isinstance(serial, SerialFixSource)
        assert serial.port == "/dev/ttyUSB1"
