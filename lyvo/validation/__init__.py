"""Intent validation package."""

from lyvo.validation.validator import IntentValidator

__all__ = ["IntentValidator"]
