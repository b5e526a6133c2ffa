"""Control of daisy-chained Conrad 197720 relay boards over a serial link."""

__version__ = "0.1.0"
