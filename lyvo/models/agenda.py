"""
Agenda and Access Models

Calendar events entered through chat, the external calendar accounts a
user has linked, and the per-user access record behind the trial gate.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventSource(str, Enum):
    INTERNAL = "INTERNAL"
    GOOGLE = "GOOGLE"
    OUTLOOK = "OUTLOOK"


class ConnectionStatus(str, Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"


class CalendarEvent(BaseModel):
    """An appointment shown on the agenda."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1, max_length=200)
    starts_at: datetime
    description: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=300)
    source: EventSource = EventSource.INTERNAL
    color: Optional[str] = Field(default=None, max_length=50)


class CalendarConnection(BaseModel):
    """A linked external calendar account."""

    id: UUID = Field(default_factory=uuid4)
    account_name: str = Field(..., min_length=1, max_length=200)
    status: ConnectionStatus = ConnectionStatus.CONNECTED
    source: EventSource
    last_sync_at: Optional[datetime] = None


class AccessPlan(str, Enum):
    TRIAL = "trial"
    PREMIUM = "premium"


class UserAccess(BaseModel):
    """
    Access record for one user.

    `active` is set by the billing webhook for paying subscribers.
    Everyone else is allowed in until `trial_ends_at`.
    """

    uid: str = Field(..., min_length=1)
    active: bool = False
    plan: AccessPlan = AccessPlan.TRIAL
    trial_ends_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AgendaSnapshot(BaseModel):
    """Everything the agenda store owns, for persistence."""

    events: list[CalendarEvent] = Field(default_factory=list)
    connections: list[CalendarConnection] = Field(default_factory=list)
