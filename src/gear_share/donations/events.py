"""
Donation Events
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from gear_share.directory.models import ActorRef
from gear_share.donations.models import DonorRef


class DonationCreated(BaseModel):
    """Donation recorded against a request"""

    donation_id: str
    reference: str
    donor: DonorRef
    recipient_school_id: str
    donation_type: str
    items: list[dict[str, Any]] = Field(default_factory=list)
    monetary_details: dict[str, Any] | None = None
    purpose: str | None = None
    request_id: str
    anonymous: bool = False
    reservation_ids: list[str] = Field(default_factory=list)
    created_by: ActorRef
    created_at: datetime


class DonationCancelled(BaseModel):
    """Donation voided"""

    donation_id: str
    reason: str
    cancelled_by: ActorRef
    cancelled_at: datetime
