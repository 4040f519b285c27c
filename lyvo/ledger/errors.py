"""
Ledger Errors

All engine errors are local and recoverable. The caller decides whether
to surface them to the user. Nothing here is retried.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """
    A required field is missing or invalid.

    `issues` carries one human-readable message per offending field.
    """

    def __init__(self, message: str, issues: Optional[list[str]] = None):
        super().__init__(message)
        self.issues = issues or [message]


class InvalidCardReference(LedgerError):
    """A card-tagged write or settlement referenced an unknown card."""

    def __init__(self, card_id):
        super().__init__(f"Unknown credit card: {card_id}")
        self.card_id = card_id


class NotFoundError(LedgerError):
    """Update/delete of an id the store does not hold."""

    def __init__(self, entity_type: str, entity_id):
        super().__init__(f"{entity_type} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id
