"""Project-wide configuration constants and config-file loading.

Central place for tuneable parameters shared across modules.
Import individual names where needed.

Example:
    >>> from conrad_relay.config import load_config, COM_DELAY_MS
    >>> cfg = load_config("relay.toml")
    >>> cfg["port"]
    '/dev/ttyUSB0'
"""

import tomllib

# Line speed of the Conrad 197720 boards (8N1, no handshake).
BAUDRATE = 19200

# Read and write timeout in milliseconds for the serial port.
TIMEOUT_MS = 3000

# Pause between sending a frame and reading the reply, in milliseconds.
# Found experimentally; every board in the chain must have answered
# before the read, since replies carry no length or end marker.
COM_DELAY_MS = 100

# The setup command is always sent to the first board.
SETUP_ADDRESS = 1


def load_config(path: str, port: str | None = None) -> dict:
    """Read a TOML config file and validate its keys.

    Keys: ``port`` (str, required unless *port* is given),
    ``delay_ms`` (int >= 0, default ``COM_DELAY_MS``), ``timeout_ms``
    (int > 0, default ``TIMEOUT_MS``).  A *port* argument replaces
    whatever the file says.

    Raises:
        ValueError: If a key is missing, has the wrong type or is out
            of range.

    Example:
        >>> cfg = load_config("relay.toml")
        >>> cfg["delay_ms"]
        100
    """
    with open(path, "rb") as f:
        raw = tomllib.load(f)

    if port is None:
        _require_str(raw, "port")
        port = raw["port"]
    if not port.strip():
        raise ValueError("port must not be empty")

    delay_ms = _optional_int(raw, "delay_ms", COM_DELAY_MS)
    if delay_ms < 0:
        raise ValueError("delay_ms must be >= 0, got %d" % delay_ms)

    timeout_ms = _optional_int(raw, "timeout_ms", TIMEOUT_MS)
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be > 0, got %d" % timeout_ms)

    return {
        "port": port.strip(),
        "delay_ms": delay_ms,
        "timeout_ms": timeout_ms,
    }


def _require_str(raw: dict[str, object], key: str) -> None:
    """Validate that *key* exists in *raw* and is a str."""
    if key not in raw:
        raise ValueError("missing required key: %s" % key)
    if not isinstance(raw[key], str):
        raise ValueError("%s must be str, got %s" % (key, type(raw[key]).__name__))


def _optional_int(raw: dict[str, object], key: str, default: int) -> int:
    """Return *key* from *raw* as an int, or *default* if absent."""
    if key not in raw:
        return default
    value = raw[key]
    # bool is an int subclass; TOML true/false is not a valid count.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("%s must be int, got %s" % (key, type(value).__name__))
    return value
