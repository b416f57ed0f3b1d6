"""
Request Events

Immutable facts about equipment requests.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from gear_share.directory.models import ActorRef, ProviderRef


class EquipmentRequestCreated(BaseModel):
    """School opened a request"""

    request_id: str
    reference: str
    requester_school_id: str
    event_name: str
    event_start: datetime | None = None
    event_end: datetime | None = None
    description: str = ""
    items: list[dict[str, Any]]
    created_by: ActorRef
    created_at: datetime


class EquipmentRequestApproved(BaseModel):
    """Provider approved all (approved) or some (partial) of a request"""

    request_id: str
    status: str = Field(..., description="approved or partial")
    items: list[dict[str, Any]] = Field(..., description="Lines with quantity_approved set")
    provider: ProviderRef | None = None
    transaction_id: str | None = None
    donation_id: str | None = None
    notes: str | None = None
    processed_by: ActorRef
    processed_at: datetime


class EquipmentRequestRejected(BaseModel):
    """Provider declined a request"""

    request_id: str
    rejection_reason: str
    notes: str | None = None
    processed_by: ActorRef
    processed_at: datetime


class EquipmentRequestDelivered(BaseModel):
    """Equipment reached the school"""

    request_id: str
    delivered_by: ActorRef
    delivered_at: datetime
