"""
Donation Commands
"""

from pydantic import BaseModel, Field

from gear_share.donations.models import DonatedItem, DonationType, DonorRef, MonetaryDetails


class CreateDonation(BaseModel):
    """Record a donation towards a request"""

    donor: DonorRef
    recipient_school_id: str
    donation_type: DonationType
    items: list[DonatedItem] = Field(default_factory=list)
    monetary_details: MonetaryDetails | None = None
    purpose: str | None = None
    request_id: str
    anonymous: bool = False
    reservation_ids: list[str] = Field(default_factory=list)


class CancelDonation(BaseModel):
    """Void a donation whose request could not be approved"""

    donation_id: str
    reason: str
