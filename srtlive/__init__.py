"""Building blocks for SRT live streaming: configuration, MPEG-TS inspection, ring buffers and relays."""

__version__ = "1.4.0"