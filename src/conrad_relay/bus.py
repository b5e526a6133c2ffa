"""Serial transport for the relay board chain.

Wraps pyserial for the boards' fixed line settings (19200 baud, 8N1,
no handshake).  The protocol has no end-of-frame marker, so reading
is not frame-aware: ``read_available`` returns whatever the chain has
sent so far and the caller is responsible for waiting long enough
before reading.

Example:
    >>> from conrad_relay.bus import SerialBus
    >>> bus = SerialBus("/dev/ttyUSB0")
    >>> bus.send(b"\\x01\\x01\\x00\\x00")
    >>> reply = bus.read_available()
"""

import serial

from conrad_relay.config import BAUDRATE, TIMEOUT_MS


class TransportError(Exception):
    """I/O on an open port failed."""


class SerialBus:
    """Half-duplex serial link to the first board of a chain.

    Duck-typed -- tests can substitute any object with matching
    ``send(data)``, ``read_available()`` and ``close()`` methods.

    Args:
        port: Serial port device path (e.g. ``"/dev/ttyUSB0"``).
        baudrate: Baud rate, 19200 for Conrad 197720 boards.
        timeout_ms: Read and write timeout in milliseconds.

    Raises:
        serial.SerialException: If the port cannot be opened.

    Example:
        >>> bus = SerialBus("/dev/ttyUSB0")
        >>> bus.port
        '/dev/ttyUSB0'
    """

    def __init__(self, port, baudrate=BAUDRATE, timeout_ms=TIMEOUT_MS):
        self.port = port.strip()
        timeout = timeout_ms / 1000.0
        self._ser = serial.Serial(
            port=self.port,
            baudrate=baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
            timeout=timeout,
            write_timeout=timeout,
        )

    def send(self, data, discard_input=True):
        """Send raw bytes to the chain.

        Discards any stale input, writes *data*, then flushes the
        output buffer so the frame is on the wire before returning.

        Args:
            data: Bytes to transmit.
            discard_input: Drop buffered input before writing.  Pass
                False when the input may still hold unread frames.

        Raises:
            TransportError: If the write fails or times out.

        Example:
            >>> bus.send(b"\\x03\\x01\\x2a\\x28")
        """
        try:
            if discard_input:
                self._ser.reset_input_buffer()
            self._ser.write(data)
            self._ser.flush()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(
                "write to {} failed: {}".format(self.port, exc)
            ) from exc

    def read_available(self):
        """Return all bytes currently buffered, without waiting for more.

        Returns:
            bytes: Buffered input, ``b""`` if nothing has arrived.

        Raises:
            TransportError: If the read fails.

        Example:
            >>> bus.read_available().hex(' ')
            'fc 01 2a d7'
        """
        try:
            waiting = self._ser.in_waiting
            if not waiting:
                return b""
            return self._ser.read(waiting)
        except (serial.SerialException, OSError) as exc:
            raise TransportError(
                "read from {} failed: {}".format(self.port, exc)
            ) from exc

    def close(self):
        """Close the serial port."""
        self._ser.close()
