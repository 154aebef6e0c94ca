"""toolbridge - client for line-protocol tool workers."""

__version__ = "0.1.0"
