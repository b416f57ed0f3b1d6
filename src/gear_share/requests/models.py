"""
Request Domain Models

A school's ask for equipment for an event, and the decision a provider
makes about it.

Fun fact: A full cricket kit for one team (bats, pads, gloves, helmets,
stumps) can cost more than a rural school's annual sports budget - which is
exactly why partial approvals matter!
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RequestStatus(str, Enum):
    """
    Request lifecycle states

    Finite state machine:
    PENDING → APPROVED → DELIVERED
            → PARTIAL  → DELIVERED
            → REJECTED
    """

    PENDING = "pending"  # Open for any provider
    APPROVED = "approved"  # Every item fully approved
    PARTIAL = "partial"  # Some quantity approved, not all
    REJECTED = "rejected"  # Declined with a reason
    DELIVERED = "delivered"  # Equipment reached the school


class Decision(str, Enum):
    """What a provider can answer"""

    APPROVED = "approved"
    PARTIAL = "partial"
    REJECTED = "rejected"


class RequestItem(BaseModel):
    """One line of a request"""

    equipment_id: str = Field(..., description="Catalog id or EQP reference")
    quantity_requested: int
    notes: str | None = None


class EventInfo(BaseModel):
    """The event the equipment is for"""

    event_name: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    description: str = ""


class ApprovedItem(BaseModel):
    """Provider's committed quantity for one request line"""

    equipment_id: str
    quantity_approved: int
    notes: str | None = None


REQUEST_PREFIX = "REQ"

# Statuses that close the approval phase
DECIDED_STATUSES = frozenset(
    {RequestStatus.APPROVED, RequestStatus.PARTIAL, RequestStatus.REJECTED}
)
