"""
Transaction Events

Immutable facts about transactions. A transaction is born approved: the
provider's commitment is binding the moment it is recorded.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from gear_share.directory.models import ActorRef, ProviderRef


class TransactionApproved(BaseModel):
    """Transaction created in approved status"""

    transaction_id: str
    reference: str
    provider: ProviderRef
    recipient_school_id: str
    transaction_type: str
    items: list[dict[str, Any]]
    rental_details: dict[str, Any] | None = None
    originating_request_id: str | None = None
    reservation_ids: list[str] = Field(default_factory=list)
    terms: str | None = None
    notes: str | None = None
    approved_by: ActorRef
    approved_at: datetime


class TransactionReturned(BaseModel):
    """Rental came back; its reservations are released"""

    transaction_id: str
    returned_date: datetime
    confirmed_by: ActorRef
    confirmed_at: datetime


class TransactionCancelled(BaseModel):
    """Transaction called off; its reservations are released"""

    transaction_id: str
    reason: str | None = None
    cancelled_by: ActorRef
    cancelled_at: datetime


class TransactionCompleted(BaseModel):
    """Permanent transfer handed over"""

    transaction_id: str
    completed_by: ActorRef
    completed_at: datetime
