"""Terminal front-end for the conversation view."""

from .app import app, main

__all__ = ["app", "main"]
