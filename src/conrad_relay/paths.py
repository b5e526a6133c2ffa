"""Config file lookup.

A bare config name is searched for in, in order:

  1. the current directory        ./relay.toml
  2. the user config directory    ~/.config/conrad-relay/relay.toml
  3. the system config directory  /etc/conrad-relay/relay.toml

A name containing ``/`` is an explicit path and is never searched for.
"""

import os

ETC_DIR = "/etc/conrad-relay"
USER_DIR = os.path.join("~", ".config", "conrad-relay")

# Used when neither --config nor --port is given on the command line.
DEFAULT_CONFIG = "relay.toml"


def search_dirs() -> list[str]:
    """Return the directories searched for a bare config name."""
    return [os.getcwd(), os.path.expanduser(USER_DIR), ETC_DIR]


def resolve_config(name: str) -> str:
    """Resolve a config file name to an absolute path.

    Args:
        name: A bare filename (e.g. ``"relay.toml"``) or a path
              (e.g. ``"conf/relay.toml"``).

    Raises:
        FileNotFoundError: If the file cannot be found.

    Example:
        >>> resolve_config("relay.toml")
        '/etc/conrad-relay/relay.toml'
    """
    if "/" in name:
        path = os.path.abspath(name)
        if not os.path.isfile(path):
            raise FileNotFoundError("config file not found: %s" % path)
        return path

    dirs = search_dirs()
    for d in dirs:
        candidate = os.path.join(d, name)
        if os.path.isfile(candidate):
            return os.path.abspath(candidate)

    raise FileNotFoundError(
        "config file '%s' not found in %s" % (name, ", ".join(dirs))
    )
