"""Agenda package."""

from lyvo.agenda.store import AgendaStore

__all__ = ["AgendaStore"]
