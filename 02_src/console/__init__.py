"""Console client module."""

from .console import ChatConsole

__all__ = ["ChatConsole"]
