"""Command-line control of a Conrad relay board chain.

Opens the port, runs setup and issues one relay command.  The port
comes from ``--port`` or from a TOML config file.

Example:
    Run from the command line::

        conrad-relay -p /dev/ttyUSB0 on 3
        conrad-relay -c relay.toml get -v
        conrad-relay -p /dev/ttyUSB0 -a 2 set 0xF0
"""

import argparse
import logging
import sys

import serial

from conrad_relay.config import COM_DELAY_MS, TIMEOUT_MS, load_config
from conrad_relay.paths import DEFAULT_CONFIG, resolve_config
from conrad_relay.relais import ConradRelais

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _byte(text: str) -> int:
    """argparse type for a byte given in decimal or 0x-hex."""
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError("not a number: %r" % text)
    if not (0 <= value <= 0xFF):
        raise argparse.ArgumentTypeError("must be 0-255, got %d" % value)
    return value


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``conrad-relay``."""
    parser = argparse.ArgumentParser(
        prog="conrad-relay",
        description="control Conrad 197720 relay boards",
    )
    parser.add_argument("-p", "--port", help="serial port device path")
    parser.add_argument(
        "-c", "--config",
        help="TOML config file (default: %s if found)" % DEFAULT_CONFIG,
    )
    parser.add_argument(
        "--delay-ms", type=int, default=None,
        help="pause between frame and reply (default %d)" % COM_DELAY_MS,
    )
    parser.add_argument(
        "-a", "--address", type=_byte, default=None,
        help="board address (default: first board)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )

    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("info", help="show board chain information")
    sub.add_parser("get", help="print the relay bitmask")
    for name, help_text in (
        ("set", "set all relays to MASK"),
        ("single-on", "switch on the relays in MASK"),
        ("single-off", "switch off the relays in MASK"),
        ("toggle", "toggle the relays in MASK"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("mask", type=_byte)
    for name, help_text in (
        ("on", "switch on relay CHANNEL (1-8)"),
        ("off", "switch off relay CHANNEL (1-8)"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("channel", type=int)
    return parser


def resolve_settings(args) -> dict:
    """Merge command-line options over the config file.

    ``--port`` and ``--delay-ms`` take precedence.  Without ``--port``
    a config file is required: ``--config`` or the default name.

    Raises:
        ValueError: On an invalid config file.
        FileNotFoundError: If no config file can be found.

    Example:
        >>> resolve_settings(build_parser().parse_args(["-p", "/dev/ttyS0", "info"]))
        {'port': '/dev/ttyS0', 'delay_ms': 100, 'timeout_ms': 3000}
    """
    if args.config is not None or args.port is None:
        settings = load_config(
            resolve_config(args.config or DEFAULT_CONFIG), port=args.port
        )
    else:
        settings = {
            "port": args.port,
            "delay_ms": COM_DELAY_MS,
            "timeout_ms": TIMEOUT_MS,
        }

    if args.delay_ms is not None:
        if args.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0, got %d" % args.delay_ms)
        settings["delay_ms"] = args.delay_ms
    return settings


def run(relais: ConradRelais, args) -> int:
    """Execute the parsed action against *relais*; return an exit status."""
    action = args.action
    address = args.address

    if action == "info":
        print("port:         %s" % relais.device_port)
        print("manufacturer: %s" % relais.instrument_manufacturer)
        print("type:         %s" % relais.instrument_type)
        print("firmware:     %s" % relais.instrument_firmware_version)
        print("boards:       %d" % relais.number_of_boards)
        print("first addr:   %d" % relais.first_address)
        return EXIT_OK if relais.is_initialized else EXIT_FAILED

    if action == "get":
        ok = relais.get_relays(address)
        if ok:
            print("0x%02X" % relais.relay_status)
    elif action == "set":
        ok = relais.set_relays(args.mask, address)
    elif action == "single-on":
        ok = relais.single_on(args.mask, address)
    elif action == "single-off":
        ok = relais.single_off(args.mask, address)
    elif action == "toggle":
        ok = relais.single_toggle(args.mask, address)
    elif action == "on":
        ok = relais.on(args.channel)
    else:
        ok = relais.off(args.channel)

    if not ok:
        log.error("%s failed: %s", action, relais.last_error.value)
        return EXIT_FAILED
    return EXIT_OK


def main(argv=None) -> int:
    """CLI entry point -- parse args, open the chain, run one action.

    Example:
        From the shell::

            conrad-relay -p /dev/ttyUSB0 info
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=level,
    )

    if args.action in ("on", "off") and args.address is not None:
        parser.error("on/off always target the first board; use single-on/single-off with -a")

    try:
        settings = resolve_settings(args)
    except (ValueError, FileNotFoundError) as exc:
        log.error("%s", exc)
        return EXIT_USAGE

    log.debug("opening %s (delay=%dms timeout=%dms)", settings["port"],
              settings["delay_ms"], settings["timeout_ms"])
    try:
        relais = ConradRelais(
            settings["port"],
            delay_ms=settings["delay_ms"],
            timeout_ms=settings["timeout_ms"],
        )
    except serial.SerialException as exc:
        log.error("cannot open %s: %s", settings["port"], exc)
        return EXIT_FAILED

    with relais:
        if not relais.is_initialized:
            log.warning("no reply to setup on %s", settings["port"])
        return run(relais, args)


if __name__ == "__main__":
    sys.exit(main())
