"""Unit tests for the key = value config file loader."""

import pytest

from telemetry_uplink.core.config_loader import ConfigLoader


class TestConfigLoaderParsing:
    """Untyped value parsing."""

    def test_parse_value_bool(self):
        for val in ["true", "Yes", "ON"]:
            assert ConfigLoader._parse_value(val) is True
        for val in ["false", "No", "off"]:
            assert ConfigLoader._parse_value(val) is False

    def test_parse_value_numbers(self):
        assert ConfigLoader._parse_value("42") == 42
        assert ConfigLoader._parse_value("-0.5") == pytest.approx(-0.5)

    def test_parse_value_string(self):
        assert ConfigLoader._parse_value("/dev/ttyUSB0") == "/dev/ttyUSB0"


class TestConfigLoaderTypedParsing:
    """Values coerced to the type of their default."""

    def test_bool(self):
        assert ConfigLoader._parse_value_with_type("on", False) is True
        assert ConfigLoader._parse_value_with_type("0", True) is False

    def test_int_accepts_prefixes(self):
        assert ConfigLoader._parse_value_with_type("0x10", 0) == 16

    def test_bad_number_keeps_default(self):
        assert ConfigLoader._parse_value_with_type("fast", 5) == 5
        assert ConfigLoader._parse_value_with_type("soon", 2.0) == 2.0


class TestConfigLoaderLines:

    def test_comments_quotes_and_blank_lines(self):
        lines = [
            "# header",
            "",
            "endpoint_host = \"ingest.example.net\"",
            "endpoint_port = 6000   # trailing comment",
            "no equals sign here",
        ]
        parsed = ConfigLoader.parse_lines(lines, {"endpoint_host": "", "endpoint_port": 0})
        assert parsed == {"endpoint_host": "ingest.example.net", "endpoint_port": 6000}

    def test_strict_drops_unknown_keys(self):
        parsed = ConfigLoader.parse_lines(["mystery = 1", "known = 2"], {"known": 0}, strict=True)
        assert parsed == {"known": 2}

    def test_non_strict_keeps_unknown_keys(self):
        parsed = ConfigLoader.parse_lines(["mystery = 1"], {"known": 0})
        assert parsed == {"mystery": 1}


class TestConfigLoaderFiles:

    def test_missing_file_returns_defaults(self, tmp_path):
        assert ConfigLoader.load(tmp_path / "absent.txt", {"a": 1}) == {"a": 1}

    def test_load_merges_over_defaults(self, tmp_path):
        path = tmp_path / "config.txt"
        path.write_text("a = 5\n")
        assert ConfigLoader.load(path, {"a": 1, "b": "x"}) == {"a": 5, "b": "x"}

    @pytest.mark.asyncio
    async def test_load_async(self, tmp_path):
        path = tmp_path / "config.txt"
        path.write_text("mptcp = no\nprobe_interval = 2.5\n")
        config = await ConfigLoader.load_async(path, {"mptcp": True, "probe_interval": 5.0})
        assert config == {"mptcp": False, "probe_interval": 2.5}
