"""Streaming module.

Consumes model fragment streams and derives message updates from them.
"""

from .consumer import MessageUpdate, StreamConsumer, UpdateCallback

__all__ = ["MessageUpdate", "StreamConsumer", "UpdateCallback"]
