"""Access gate package."""

from lyvo.access.control import AccessController

__all__ = ["AccessController"]
