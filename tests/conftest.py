"""Shared pytest fixtures for conrad_relay tests."""

from conrad_relay.protocol import CMD_SETUP, encode_frame, response_command


def make_reply(command: int, address: int, data: int) -> bytes:
    """Build a valid one-block reply to *command*."""
    return encode_frame(response_command(command), address, data)


def make_setup_reply(boards: int, firmware: int, first: int = 1) -> bytes:
    """Build the setup reply of a chain of *boards* boards.

    Each board answers with its address and firmware version; the last
    board passes the setup frame on with the next free address, which
    comes back as an extra block.
    """
    blocks = [make_reply(CMD_SETUP, first + i, firmware) for i in range(boards)]
    blocks.append(encode_frame(CMD_SETUP, first + boards, 0))
    return b"".join(blocks)


class FakeBus:
    """Test double for SerialBus: canned responses, records sent data.

    Set ``send_error`` or ``read_error`` to an exception instance to
    make the next call raise it.
    """

    def __init__(self, responses: list[bytes]):
        """Initialize with canned responses."""
        self._responses = list(responses)
        self.sent = []
        self.send_error = None
        self.read_error = None
        self.closed = False

    def send(self, data: bytes) -> None:
        """Record *data* for later inspection."""
        if self.send_error is not None:
            exc, self.send_error = self.send_error, None
            raise exc
        self.sent.append(data)

    def read_available(self) -> bytes:
        """Return the next canned response, or empty bytes if exhausted."""
        if self.read_error is not None:
            exc, self.read_error = self.read_error, None
            raise exc
        if self._responses:
            return self._responses.pop(0)
        return b""

    def close(self) -> None:
        self.closed = True


def no_sleep(seconds: float) -> None:
    """Stand-in for time.sleep that returns immediately."""
