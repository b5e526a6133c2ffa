"""High-level relay operations for a Conrad 197720 board chain.

``ConradRelais`` opens the port, runs the setup exchange against the
first board and exposes the relay commands.  Every operation returns
True if the chain answered correctly and False otherwise; protocol and
transport failures are never raised.

Example:
    >>> from conrad_relay.relais import ConradRelais
    >>> with ConradRelais("/dev/ttyUSB0") as relais:
    ...     relais.on(3)
    ...     relais.get_relays()
    ...     relais.relay_status
    True
    True
    4
"""

import logging
import time

from conrad_relay.bus import SerialBus
from conrad_relay.config import COM_DELAY_MS, SETUP_ADDRESS, TIMEOUT_MS
from conrad_relay.controller import BoardController
from conrad_relay.protocol import (
    CMD_GET_PORT,
    CMD_SET_PORT,
    CMD_SINGLE_OFF,
    CMD_SINGLE_ON,
    CMD_TOGGLE,
    channel_mask,
)

log = logging.getLogger(__name__)

MANUFACTURER = "Conrad Electronic SE"
MODEL = "197720"


class ConradRelais:
    """A chain of Conrad 197720 8-channel relay boards.

    Construction opens the port and runs setup.  A chain that does not
    answer setup is not an error: check ``is_initialized`` or
    ``number_of_boards`` afterwards.

    Methods taking an optional *address* default to the address of
    the first board as reported by the most recent reply.

    Args:
        port: Serial port device path (e.g. ``"/dev/ttyUSB0"``).
        delay_ms: Pause between sending a frame and reading the reply.
        timeout_ms: Serial read/write timeout.
        bus: Already-open bus to use instead of opening *port*.
        sleep: Blocking sleep function taking seconds.

    Raises:
        serial.SerialException: If *port* cannot be opened.
    """

    def __init__(self, port, delay_ms=COM_DELAY_MS, timeout_ms=TIMEOUT_MS,
                 bus=None, sleep=time.sleep):
        self.device_port = port.strip()
        if bus is None:
            bus = SerialBus(self.device_port, timeout_ms=timeout_ms)
        self._bus = bus
        self._controller = BoardController(bus, delay_ms=delay_ms, sleep=sleep)
        self._controller.setup(SETUP_ADDRESS)
        sleep(delay_ms / 1000.0)

    # -- Session metadata ----------------------------------------------------

    @property
    def instrument_manufacturer(self):
        return MANUFACTURER

    @property
    def instrument_type(self):
        return MODEL

    @property
    def instrument_firmware_version(self):
        """Firmware version of the first board as a decimal string."""
        return str(self._controller.session.firmware_version)

    @property
    def number_of_boards(self):
        return self._controller.session.board_count

    @property
    def is_initialized(self):
        """True once setup has succeeded."""
        return self._controller.session.initialized

    @property
    def first_address(self):
        return self._controller.session.first_address

    @property
    def relay_status(self):
        """Data byte of the last reply; the relay bitmask after ``get_relays``."""
        return self._controller.session.last_data

    @property
    def last_error(self):
        """``ExchangeError`` of the last failed operation, or None."""
        return self._controller.last_error

    # -- Relay commands ------------------------------------------------------

    def set_relays(self, data, address=None):
        """Switch all 8 relays at once; bit i of *data* drives relay i+1.

        Raises:
            ValueError: If *data* or *address* is outside 0-255.
        """
        return self._command(CMD_SET_PORT, address, data)

    def get_relays(self, address=None):
        """Query all 8 relays; the result is in ``relay_status``.

        Raises:
            ValueError: If *address* is outside 0-255.
        """
        return self._command(CMD_GET_PORT, address, 0)

    def single_on(self, mask, address=None):
        """Switch on the relays selected by *mask*, leaving the rest.

        Raises:
            ValueError: If *mask* or *address* is outside 0-255.
        """
        return self._command(CMD_SINGLE_ON, address, mask)

    def single_off(self, mask, address=None):
        """Switch off the relays selected by *mask*, leaving the rest.

        Raises:
            ValueError: If *mask* or *address* is outside 0-255.
        """
        return self._command(CMD_SINGLE_OFF, address, mask)

    def single_toggle(self, mask, address=None):
        """Toggle the relays selected by *mask*.

        Raises:
            ValueError: If *mask* or *address* is outside 0-255.
        """
        return self._command(CMD_TOGGLE, address, mask)

    def on(self, channel):
        """Switch on relay *channel* (1-8) of the first board.

        Any other channel sends an empty mask, which switches nothing.
        """
        return self.single_on(channel_mask(channel))

    def off(self, channel):
        """Switch off relay *channel* (1-8) of the first board.

        Any other channel sends an empty mask, which switches nothing.
        """
        return self.single_off(channel_mask(channel))

    # -- Lifecycle -----------------------------------------------------------

    def close(self):
        """Close the underlying bus."""
        self._bus.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return "ConradRelais({!r}, boards={}, firmware={})".format(
            self.device_port, self.number_of_boards,
            self.instrument_firmware_version,
        )

    def _command(self, command, address, data):
        if address is None:
            address = self._controller.session.first_address
        ok = self._controller.control_board(command, address, data)
        if not ok:
            log.debug("command %d to address %d failed: %s", command,
                      address, self._controller.last_error.value)
        return ok
