"""Frame encoding and decoding for the Conrad 197720 relay board protocol.

Every request is a fixed 4-byte frame: CMD, ADDR, DATA, XOR.  The
board chain answers with a run of 4-byte blocks; the command byte
of a reply is the one's complement of the request command.  There is
no start byte, length prefix or end marker on the wire.

Example:
    >>> from conrad_relay.protocol import encode_frame, decode_response, CMD_SET_PORT
    >>> encode_frame(CMD_SET_PORT, 1, 0x2A).hex(' ')
    '03 01 2a 28'
    >>> block = decode_response(CMD_SET_PORT, bytes.fromhex('fc 01 2a d7'))
    >>> block.address, block.data, block.block_count
    (1, 42, 1)
"""

import enum
from dataclasses import dataclass

# -- Protocol constants ------------------------------------------------------

FRAME_LEN = 4

CMD_SETUP = 1
CMD_GET_PORT = 2
CMD_SET_PORT = 3
CMD_SINGLE_ON = 6
CMD_SINGLE_OFF = 7
CMD_TOGGLE = 8

# Relays per board; channels are numbered 1..RELAY_COUNT.
RELAY_COUNT = 8


# -- Errors ------------------------------------------------------------------


class FrameErrorKind(enum.Enum):
    """Reason a response was rejected."""

    TOO_SHORT = "too short"
    MISALIGNED = "misaligned"
    CHECKSUM_MISMATCH = "checksum mismatch"
    COMMAND_MISMATCH = "command mismatch"


class FrameError(ValueError):
    """A response failed validation.

    Args:
        kind: The ``FrameErrorKind`` naming the failed check.
        message: Human-readable detail.
    """

    def __init__(self, kind, message):
        super().__init__("{}: {}".format(kind.value, message))
        self.kind = kind


@dataclass(frozen=True)
class ParsedBlock:
    """First block of a validated response.

    ``block_count`` counts every 4-byte block in the response, including
    those added by further boards in the chain; only the first block is
    interpreted.
    """

    address: int
    data: int
    block_count: int


# -- Encoding ----------------------------------------------------------------


def xor_checksum(command, address, data):
    """Return the XOR checksum of a frame's first three bytes.

    Example:
        >>> hex(xor_checksum(0x03, 0x01, 0x2A))
        '0x28'
    """
    return command ^ address ^ data


def encode_frame(command, address, data):
    """Build a 4-byte request frame.

    The checksum byte is always computed here, never supplied by the
    caller.

    Args:
        command: Command byte (int, 0-255).
        address: Board address (int, 0-255).
        data: Data byte (int, 0-255).

    Returns:
        bytes: ``CMD ADDR DATA XOR``.

    Raises:
        ValueError: If any argument does not fit in a byte.

    Example:
        >>> encode_frame(CMD_SETUP, 1, 0).hex(' ')
        '01 01 00 00'
    """
    for name, value in (("command", command), ("address", address),
                        ("data", data)):
        if not (0 <= value <= 0xFF):
            raise ValueError(
                "{} must be in range 0-255, got {}".format(name, value)
            )
    return bytes([command, address, data,
                  xor_checksum(command, address, data)])


def response_command(request_command):
    """Return the command byte a board sends back for *request_command*.

    Example:
        >>> response_command(CMD_SETUP)
        254
    """
    return 0xFF - request_command


# -- Decoding ----------------------------------------------------------------


def decode_response(request_command, raw):
    """Validate a response and parse its first block.

    Checks run in a fixed order: overall length, 4-byte alignment,
    XOR checksum of the first block, then the command echo.  Blocks
    after the first come from further boards in the chain and are
    counted but not parsed.

    Args:
        request_command: Command byte of the request that was sent.
        raw: Bytes read from the transport.

    Returns:
        ParsedBlock: Address and data of the first board plus the
            number of blocks in *raw*.

    Raises:
        FrameError: On any validation failure; ``kind`` tells which.

    Example:
        >>> decode_response(CMD_SETUP, bytes.fromhex('fe 01 0b f4 fe 02 0b f7'))
        ParsedBlock(address=1, data=11, block_count=2)
    """
    if len(raw) < FRAME_LEN:
        raise FrameError(
            FrameErrorKind.TOO_SHORT,
            "{} bytes, minimum is {}".format(len(raw), FRAME_LEN),
        )

    if len(raw) % FRAME_LEN != 0:
        raise FrameError(
            FrameErrorKind.MISALIGNED,
            "{} bytes is not a multiple of {}".format(len(raw), FRAME_LEN),
        )

    computed = xor_checksum(raw[0], raw[1], raw[2])
    if computed != raw[3]:
        raise FrameError(
            FrameErrorKind.CHECKSUM_MISMATCH,
            "received 0x{:02X}, computed 0x{:02X}".format(raw[3], computed),
        )

    if raw[0] + request_command != 0xFF:
        raise FrameError(
            FrameErrorKind.COMMAND_MISMATCH,
            "reply 0x{:02X} does not answer command 0x{:02X}".format(
                raw[0], request_command
            ),
        )

    return ParsedBlock(
        address=raw[1],
        data=raw[2],
        block_count=len(raw) // FRAME_LEN,
    )


# -- Helpers -----------------------------------------------------------------


def channel_mask(channel):
    """Return the relay bitmask for a 1-based *channel*.

    Channels 1-8 map to bits 0-7.  Anything else yields 0, which the
    board accepts as a command that switches nothing; no error is
    raised for it.

    Example:
        >>> channel_mask(3)
        4
        >>> channel_mask(9)
        0
    """
    if 1 <= channel <= RELAY_COUNT:
        return 1 << (channel - 1)
    return 0


def format_frame(data):
    """Return *data* as space-separated hex for log messages.

    Example:
        >>> format_frame(b"\\x03\\x01\\x2a\\x28")
        '03 01 2a 28'
    """
    return data.hex(" ")
