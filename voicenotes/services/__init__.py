"""Services layer for voicenotes application logic."""

from .session_controller import SessionController

__all__ = [
    "SessionController",
]
