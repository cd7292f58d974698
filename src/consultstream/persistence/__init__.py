"""Session persistence module.

Provides debounced conversation storage over a swappable key/value backend.
"""

from .base import KeyValueStore
from .factory import create_key_value_store
from .manager import SessionPersistenceManager, chats_key, derive_title

__all__ = [
    "KeyValueStore",
    "SessionPersistenceManager",
    "chats_key",
    "create_key_value_store",
    "derive_title",
]
