#!/usr/bin/env python3
"""Quick smoke test against the simulator.

Opens the host-side PTY with ConradRelais, checks that setup found
the expected number of boards, then sets and reads back the relays
of the first board.  Exits 0 on success, 1 on failure.

Usage:
    python check_simulator.py <host_pty> <boards>

Args:
    host_pty: Path to the host-side PTY (e.g. /tmp/relay-host).
    boards: Number of boards the simulator was started with (int).

Example:
    python check_simulator.py /tmp/relay-host 2
"""

import sys

sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parents[1] / "src"))

from conrad_relay.relais import ConradRelais


def main(host_pty, boards):
    """Run the checks.

    Args:
        host_pty: Path to the host-side PTY.
        boards: Expected board count (int).

    Returns:
        int: 0 on success, 1 on failure.
    """
    with ConradRelais(host_pty) as relais:
        if not relais.is_initialized:
            print("FAIL: no reply to setup ({})".format(relais.last_error.value))
            return 1

        if relais.number_of_boards != boards:
            print("FAIL: expected {} boards, found {}".format(
                boards, relais.number_of_boards))
            return 1

        if not relais.set_relays(0x5A):
            print("FAIL: set_relays ({})".format(relais.last_error.value))
            return 1

        relais.on(1)
        relais.off(2)

        if not relais.get_relays():
            print("FAIL: get_relays ({})".format(relais.last_error.value))
            return 1

        if relais.relay_status != 0x59:
            print("FAIL: relays 0x{:02X}, expected 0x59".format(
                relais.relay_status))
            return 1

        print("OK: {} board(s), firmware {}, relays 0x{:02X}".format(
            relais.number_of_boards, relais.instrument_firmware_version,
            relais.relay_status))
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: check_simulator.py <host_pty> <boards>", file=sys.stderr)
        sys.exit(1)
    sys.exit(main(sys.argv[1], int(sys.argv[2])))
