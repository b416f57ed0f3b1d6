"""
Transaction Commands

Intentions to create, close or cancel a transaction.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from gear_share.directory.models import ProviderRef
from gear_share.transactions.models import RentalDetails, TransactionItem, TransactionType


class CreateTransaction(BaseModel):
    """Bind approved equipment to a recipient"""

    provider: ProviderRef
    recipient_school_id: str
    transaction_type: TransactionType
    items: list[TransactionItem]
    rental_details: RentalDetails | None = None
    originating_request_id: str | None = None
    reservation_ids: list[str] = Field(default_factory=list)
    terms: str | None = None
    notes: str | None = None


class ConfirmReturn(BaseModel):
    """Rental came back"""

    transaction_id: str
    returned_date: datetime


class CancelTransaction(BaseModel):
    """Call a transaction off before it completes"""

    transaction_id: str
    reason: str | None = None


class CompleteTransaction(BaseModel):
    """Permanent transfer handed over"""

    transaction_id: str
