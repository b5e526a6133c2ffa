"""Request/response exchange with the first board of a relay chain.

One exchange is: encode a frame, send it, wait a fixed quiescence
interval, read everything the chain sent back, validate the first
block.  Failures are reported as a ``False`` result and never raised;
a failed exchange leaves the session untouched.

Example:
    >>> from conrad_relay.controller import BoardController
    >>> ctl = BoardController(bus)
    >>> ctl.setup()
    True
    >>> ctl.session.board_count
    1
"""

import enum
import logging
import time
from dataclasses import dataclass

from conrad_relay.bus import TransportError
from conrad_relay.config import COM_DELAY_MS, SETUP_ADDRESS
from conrad_relay.protocol import (
    CMD_SETUP,
    FrameError,
    FrameErrorKind,
    decode_response,
    encode_frame,
    format_frame,
)

log = logging.getLogger(__name__)


class ExchangeError(enum.Enum):
    """Why an exchange failed."""

    TRANSPORT_WRITE_FAILURE = "transport write failure"
    TRANSPORT_READ_FAILURE = "transport read failure"
    TOO_SHORT = "response too short"
    MISALIGNED = "response misaligned"
    CHECKSUM_MISMATCH = "checksum mismatch"
    COMMAND_MISMATCH = "command mismatch"


_FRAME_ERRORS = {
    FrameErrorKind.TOO_SHORT: ExchangeError.TOO_SHORT,
    FrameErrorKind.MISALIGNED: ExchangeError.MISALIGNED,
    FrameErrorKind.CHECKSUM_MISMATCH: ExchangeError.CHECKSUM_MISMATCH,
    FrameErrorKind.COMMAND_MISMATCH: ExchangeError.COMMAND_MISMATCH,
}


@dataclass(frozen=True)
class SessionDelta:
    """Session changes produced by one successful exchange.

    ``board_count`` is None unless the request was a setup command.
    """

    address: int
    data: int
    board_count: int | None = None


@dataclass
class Session:
    """State learned from the board chain.

    ``last_data`` holds the data byte of the most recent reply: the
    relay status after a get, the echoed data otherwise.
    """

    firmware_version: int = 0
    first_address: int = 0
    last_data: int = 0
    board_count: int = 0
    initialized: bool = False

    def apply(self, delta: SessionDelta) -> None:
        """Record the outcome of a successful exchange."""
        self.first_address = delta.address
        self.last_data = delta.data
        if delta.board_count is not None:
            self.board_count = delta.board_count


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of one exchange: ``delta`` on success, ``error`` otherwise."""

    ok: bool
    error: ExchangeError | None = None
    delta: SessionDelta | None = None


class BoardController:
    """Drives request/response exchanges over a bus.

    Not thread-safe: the controller assumes it is the only user of
    the bus.  Callers sharing one between threads must serialise
    access themselves.

    Args:
        bus: Object with ``send(data)`` and ``read_available()``
            methods that raise ``TransportError`` on I/O failure.
        delay_ms: Pause between send and read, in milliseconds.
        sleep: Blocking sleep function taking seconds; tests pass a
            no-op.

    Example:
        >>> ctl = BoardController(bus, delay_ms=0)
        >>> ctl.control_board(3, 1, 0x2A)
        True
    """

    def __init__(self, bus, delay_ms: int = COM_DELAY_MS, sleep=time.sleep):
        self._bus = bus
        self._delay = delay_ms / 1000.0
        self._sleep = sleep
        self.session = Session()
        self.last_error: ExchangeError | None = None

    def exchange(self, command: int, address: int, data: int) -> ExchangeResult:
        """Run one exchange and apply its result to the session.

        Send failures end the exchange immediately; there is no
        retry.  A failed read counts as an empty reply.

        Returns:
            ExchangeResult: ``ok`` with the applied delta, or the
                reason for failure.

        Example:
            >>> ctl.exchange(2, 1, 0).delta.data
            5
        """
        frame = encode_frame(command, address, data)
        try:
            self._bus.send(frame)
        except TransportError as exc:
            log.debug("send failed for frame [%s]: %s", format_frame(frame), exc)
            return self._fail(ExchangeError.TRANSPORT_WRITE_FAILURE)

        self._sleep(self._delay)

        read_failed = False
        try:
            raw = self._bus.read_available()
        except TransportError as exc:
            log.debug("read failed after frame [%s]: %s", format_frame(frame), exc)
            raw = b""
            read_failed = True

        log.debug("frame [%s] -> response [%s]", format_frame(frame),
                  format_frame(raw))

        try:
            block = decode_response(command, raw)
        except FrameError as exc:
            log.debug("bad response to command %d at address %d: %s",
                      command, address, exc)
            if read_failed:
                return self._fail(ExchangeError.TRANSPORT_READ_FAILURE)
            return self._fail(_FRAME_ERRORS[exc.kind])

        board_count = None
        if command == CMD_SETUP:
            board_count = block.block_count - 1
        delta = SessionDelta(block.address, block.data, board_count)
        self.session.apply(delta)
        self.last_error = None
        return ExchangeResult(ok=True, delta=delta)

    def control_board(self, command: int, address: int, data: int) -> bool:
        """Send *command* with *data* to *address*; return True on success.

        Example:
            >>> ctl.control_board(6, 1, 0x01)
            True
        """
        return self.exchange(command, address, data).ok

    def setup(self, address: int = SETUP_ADDRESS) -> bool:
        """Initialise the chain and record firmware version and board count.

        A failed setup is not an error: the session stays
        uninitialised with firmware version and board count at 0.

        Example:
            >>> ctl.setup()
            True
            >>> ctl.session.firmware_version
            11
        """
        if not self.control_board(CMD_SETUP, address, 0):
            log.info("setup at address %d failed: %s", address,
                     self.last_error.value)
            return False

        self.session.firmware_version = self.session.last_data
        self.session.initialized = True
        log.info(
            "setup ok: firmware=%d boards=%d first_address=%d",
            self.session.firmware_version,
            self.session.board_count,
            self.session.first_address,
        )
        return True

    def _fail(self, error: ExchangeError) -> ExchangeResult:
        self.last_error = error
        return ExchangeResult(ok=False, error=error)
