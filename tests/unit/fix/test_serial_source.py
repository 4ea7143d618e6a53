"""Tests for the serial NMEA source with the serial port mocked out."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import serial

from telemetry_uplink.fix.serial_source import SerialFixSource
from telemetry_uplink.fix.types import SourceStopped
from tests.infrastructure.helpers import generate_nmea_sentence
from tests.infrastructure.helpers.generators import BASE_TIME


def fake_serial_streams(lines):
    reader = asyncio.StreamReader()
    for line in lines:
        reader.feed_data(line.encode("ascii"))
    reader.feed_eof()
    writer = MagicMock()
    writer.wait_closed = AsyncMock()
    return reader, writer


class TestSerialFixSource:

    @pytest.mark.asyncio
    async def test_reads_fixes_from_nmea(self):
        reader, writer = fake_serial_streams([
            generate_nmea_sentence("GSA", fix_mode=3),
            generate_nmea_sentence("RMC", lat=10.0, lon=20.0),
            generate_nmea_sentence("GGA", lat=10.0, lon=20.0),
        ])
        with patch("serial_asyncio.open_serial_connection", AsyncMock(return_value=(reader, writer))) as opener:
            source = SerialFixSource("/dev/ttyMOCK0", baudrate=4800)
            fix = await source.next()
            end = await source.next()

        opener.assert_awaited_once_with(url="/dev/ttyMOCK0", baudrate=4800)
        assert fix.latitude == pytest.approx(10.0)
        assert fix.captured_at == BASE_TIME
        assert isinstance(end, SourceStopped)
        assert source.last_error == "Stream ended (EOF)"

    @pytest.mark.asyncio
    async def test_open_failure_stops_source(self):
        failing = AsyncMock(side_effect=serial.SerialException("could not open port"))
        with patch("serial_asyncio.open_serial_connection", failing):
            source = SerialFixSource("/dev/ttyMOCK0")
            result = await source.next()

        assert isinstance(result, SourceStopped)
        assert "could not open port" in source.last_error

    @pytest.mark.asyncio
    async def test_close_closes_writer(self):
        reader, writer = fake_serial_streams([generate_nmea_sentence("RMC")])
        with patch("serial_asyncio.open_serial_connection", AsyncMock(return_value=(reader, writer))):
            source = SerialFixSource("/dev/ttyMOCK0")
            await source.next()
            await source.close()

        writer.close.assert_called_once()
