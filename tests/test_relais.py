"""Tests for conrad_relay.relais."""

from unittest.mock import patch

import pytest

from conftest import FakeBus, make_reply, make_setup_reply, no_sleep
from conrad_relay.controller import ExchangeError
from conrad_relay.protocol import (
    CMD_GET_PORT,
    CMD_SET_PORT,
    CMD_SINGLE_OFF,
    CMD_SINGLE_ON,
    CMD_TOGGLE,
    encode_frame,
)
from conrad_relay.relais import ConradRelais


def _relais(responses, boards=1, firmware=11, first=1):
    """ConradRelais on a FakeBus that answers setup, then *responses*."""
    bus = FakeBus([make_setup_reply(boards, firmware, first)] + list(responses))
    relais = ConradRelais("/dev/ttyUSB0", delay_ms=0, bus=bus, sleep=no_sleep)
    return relais, bus


class TestConstruction:
    """Tests for ConradRelais setup at construction."""

    def test_setup_frame_sent_to_address_1(self):
        """Construction sends exactly one setup frame to board 1."""
        _, bus = _relais([])
        assert bus.sent == [bytes([0x01, 0x01, 0x00, 0x00])]

    def test_metadata(self):
        """Constants and setup results are exposed as properties."""
        relais, _ = _relais([], boards=2, firmware=12)
        assert relais.instrument_manufacturer == "Conrad Electronic SE"
        assert relais.instrument_type == "197720"
        assert relais.instrument_firmware_version == "12"
        assert relais.number_of_boards == 2
        assert relais.is_initialized is True
        assert relais.device_port == "/dev/ttyUSB0"

    def test_port_name_trimmed(self):
        """Surrounding whitespace in the port name is dropped."""
        bus = FakeBus([make_setup_reply(1, 11)])
        relais = ConradRelais("  COM3 ", delay_ms=0, bus=bus, sleep=no_sleep)
        assert relais.device_port == "COM3"

    def test_failed_setup_does_not_raise(self):
        """A silent chain yields an uninitialized session."""
        bus = FakeBus([])
        relais = ConradRelais("/dev/ttyUSB0", delay_ms=0, bus=bus, sleep=no_sleep)
        assert relais.is_initialized is False
        assert relais.number_of_boards == 0
        assert relais.instrument_firmware_version == "0"
        assert relais.last_error is ExchangeError.TOO_SHORT

    def test_waits_after_setup(self):
        """Setup is followed by one extra quiescence interval."""
        sleeps = []
        bus = FakeBus([make_setup_reply(1, 11)])
        ConradRelais("/dev/ttyUSB0", delay_ms=100, bus=bus, sleep=sleeps.append)
        assert sleeps == [0.1, 0.1]

    @patch("conrad_relay.relais.SerialBus")
    def test_opens_serial_bus(self, mock_bus_cls):
        """Without a bus, a SerialBus is opened on the port."""
        mock_bus_cls.return_value = FakeBus([make_setup_reply(1, 11)])
        relais = ConradRelais("/dev/ttyUSB1", delay_ms=0, timeout_ms=500,
                              sleep=no_sleep)
        mock_bus_cls.assert_called_once_with("/dev/ttyUSB1", timeout_ms=500)
        assert relais.is_initialized is True

    @patch("conrad_relay.relais.SerialBus")
    def test_open_failure_propagates(self, mock_bus_cls):
        """Failing to open the port is fatal."""
        mock_bus_cls.side_effect = OSError("no such device")
        with pytest.raises(OSError):
            ConradRelais("/dev/nothing", sleep=no_sleep)


class TestRelayCommands:
    """Tests for the relay operations."""

    def test_set_relays_default_address(self):
        """set_relays targets the first board by default."""
        relais, bus = _relais([make_reply(CMD_SET_PORT, 1, 0xA5)])
        assert relais.set_relays(0xA5) is True
        assert bus.sent[-1] == encode_frame(CMD_SET_PORT, 1, 0xA5)

    def test_set_relays_explicit_address(self):
        """An explicit address overrides the first board."""
        relais, bus = _relais([make_reply(CMD_SET_PORT, 2, 0x01)], boards=2)
        assert relais.set_relays(0x01, address=2) is True
        assert bus.sent[-1] == encode_frame(CMD_SET_PORT, 2, 0x01)

    def test_default_address_follows_first_board(self):
        """The default address is whatever the first board reported."""
        relais, bus = _relais([make_reply(CMD_TOGGLE, 5, 0x02)], first=5)
        assert relais.first_address == 5
        relais.single_toggle(0x02)
        assert bus.sent[-1] == encode_frame(CMD_TOGGLE, 5, 0x02)

    def test_get_relays(self):
        """get_relays sends data 0 and exposes the status byte."""
        relais, bus = _relais([make_reply(CMD_GET_PORT, 1, 0x81)])
        assert relais.get_relays() is True
        assert bus.sent[-1] == encode_frame(CMD_GET_PORT, 1, 0)
        assert relais.relay_status == 0x81

    def test_single_commands(self):
        """single_on/off/toggle use commands 6, 7 and 8."""
        relais, bus = _relais([
            make_reply(CMD_SINGLE_ON, 1, 0x03),
            make_reply(CMD_SINGLE_OFF, 1, 0x01),
            make_reply(CMD_TOGGLE, 1, 0x10),
        ])
        assert relais.single_on(0x03) is True
        assert relais.single_off(0x01) is True
        assert relais.single_toggle(0x10) is True
        assert [f[0] for f in bus.sent[1:]] == [6, 7, 8]

    def test_on_then_off_differ_only_in_command(self):
        """on(n) and off(n) send the same mask with commands 6 and 7."""
        relais, bus = _relais([
            make_reply(CMD_SINGLE_ON, 1, 0x04),
            make_reply(CMD_SINGLE_OFF, 1, 0x04),
        ])
        relais.on(3)
        relais.off(3)
        on_frame, off_frame = bus.sent[-2:]
        assert on_frame == encode_frame(CMD_SINGLE_ON, 1, 0x04)
        assert off_frame == encode_frame(CMD_SINGLE_OFF, 1, 0x04)
        assert on_frame[1:3] == off_frame[1:3]

    @pytest.mark.parametrize("channel", [0, 9, -3])
    def test_out_of_range_channel_sends_empty_mask(self, channel):
        """An invalid channel still sends a frame, with mask 0."""
        relais, bus = _relais([make_reply(CMD_SINGLE_ON, 1, 0)])
        assert relais.on(channel) is True
        assert bus.sent[-1] == encode_frame(CMD_SINGLE_ON, 1, 0)

    def test_failed_command_returns_false(self):
        """A missing reply is reported as False, not raised."""
        relais, _ = _relais([])
        assert relais.set_relays(0xFF) is False
        assert relais.last_error is ExchangeError.TOO_SHORT

    @pytest.mark.parametrize("call", [
        lambda r: r.set_relays(256),
        lambda r: r.single_on(1, address=300),
        lambda r: r.single_toggle(-1),
        lambda r: r.get_relays(address=256),
    ])
    def test_out_of_byte_range_raises(self, call):
        """Values that do not fit in a byte raise before anything is sent."""
        relais, bus = _relais([])
        with pytest.raises(ValueError):
            call(relais)
        assert len(bus.sent) == 1
        assert relais.last_error is None

    def test_failed_command_keeps_status(self):
        """A failed get leaves relay_status at the last good value."""
        relais, _ = _relais([make_reply(CMD_GET_PORT, 1, 0x0F), b"\x00\x00"])
        relais.get_relays()
        assert relais.get_relays() is False
        assert relais.relay_status == 0x0F


class TestLifecycle:
    """Tests for close and context-manager use."""

    def test_close(self):
        """close() closes the bus."""
        relais, bus = _relais([])
        relais.close()
        assert bus.closed is True

    def test_context_manager(self):
        """Leaving the with-block closes the bus."""
        bus = FakeBus([make_setup_reply(1, 11)])
        with ConradRelais("/dev/ttyUSB0", delay_ms=0, bus=bus,
                          sleep=no_sleep) as relais:
            assert relais.is_initialized
        assert bus.closed is True

    def test_repr(self):
        """repr shows port, board count and firmware."""
        relais, _ = _relais([], boards=3, firmware=11)
        assert repr(relais) == "ConradRelais('/dev/ttyUSB0', boards=3, firmware=11)"
