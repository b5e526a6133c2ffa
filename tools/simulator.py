#!/usr/bin/env python3
"""Virtual relay board chain for conrad-relay.

Listens on a serial port (typically a socat PTY) and answers frames
the way a chain of Conrad 197720 boards does: setup is answered by
every board and then passed back by the last one, the other commands
are answered by the addressed board only.  Frames for unknown
addresses or commands are ignored.

Usage:
    python simulator.py <port> [boards] [firmware]

Args:
    port: Serial port path (e.g. /tmp/relay-board).
    boards: Number of boards in the chain (default 1).
    firmware: Firmware version reported by setup (default 11).

Example:
    socat pty,raw,echo=0,link=/tmp/relay-host pty,raw,echo=0,link=/tmp/relay-board &
    python simulator.py /tmp/relay-board 2
"""

import sys
import time

# Add parent src to path so we can import conrad_relay
sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parents[1] / "src"))

from conrad_relay.bus import SerialBus
from conrad_relay.protocol import (
    CMD_GET_PORT,
    CMD_SET_PORT,
    CMD_SETUP,
    CMD_SINGLE_OFF,
    CMD_SINGLE_ON,
    CMD_TOGGLE,
    FRAME_LEN,
    encode_frame,
    format_frame,
    response_command,
    xor_checksum,
)


class BoardChain:
    """Relay state of *boards* chained boards.

    Board addresses are assigned by setup, starting at the address the
    setup frame was sent to; before the first setup they start at 1.
    """

    def __init__(self, boards, firmware):
        self.firmware = firmware
        self.first = 1
        self.relays = [0] * boards

    def handle(self, frame):
        """Return the chain's reply to one 4-byte *frame* (may be empty)."""
        cmd, addr, data, chk = frame
        if xor_checksum(cmd, addr, data) != chk:
            return b""

        if cmd == CMD_SETUP:
            self.first = addr
            blocks = [
                encode_frame(response_command(cmd), addr + i, self.firmware)
                for i in range(len(self.relays))
            ]
            # The last board forwards setup with the next free address.
            blocks.append(encode_frame(CMD_SETUP, addr + len(self.relays), 0))
            return b"".join(blocks)

        index = addr - self.first
        if not (0 <= index < len(self.relays)):
            return b""

        if cmd == CMD_GET_PORT:
            data = self.relays[index]
        elif cmd == CMD_SET_PORT:
            self.relays[index] = data
        elif cmd == CMD_SINGLE_ON:
            self.relays[index] |= data
        elif cmd == CMD_SINGLE_OFF:
            self.relays[index] &= ~data & 0xFF
        elif cmd == CMD_TOGGLE:
            self.relays[index] ^= data
        else:
            return b""
        return encode_frame(response_command(cmd), addr, data)


def run(port, boards, firmware):
    """Run the simulator loop.

    Opens *port* via SerialBus, collects incoming bytes into 4-byte
    frames and answers each one through a BoardChain.

    Args:
        port: Serial port device path.
        boards: Number of boards in the chain (int).
        firmware: Firmware version to report (int).
    """
    bus = SerialBus(port)
    chain = BoardChain(boards, firmware)
    pending = bytearray()

    print("simulator: boards={} firmware={} listening on {}".format(
        boards, firmware, port), flush=True)

    try:
        while True:
            pending.extend(bus.read_available())
            if len(pending) < FRAME_LEN:
                time.sleep(0.005)
                continue

            frame = bytes(pending[:FRAME_LEN])
            del pending[:FRAME_LEN]
            reply = chain.handle(frame)
            print("rx [{}] tx [{}] relays={}".format(
                format_frame(frame), format_frame(reply),
                " ".join("{:08b}".format(r) for r in chain.relays)),
                flush=True)
            if reply:
                bus.send(reply, discard_input=False)
    except KeyboardInterrupt:
        pass
    finally:
        bus.close()


if __name__ == "__main__":
    if not 2 <= len(sys.argv) <= 4:
        print("usage: simulator.py <port> [boards] [firmware]", file=sys.stderr)
        sys.exit(1)
    run(
        sys.argv[1],
        int(sys.argv[2]) if len(sys.argv) > 2 else 1,
        int(sys.argv[3]) if len(sys.argv) > 3 else 11,
    )
