"""
Donation Domain Models

A donation fulfils a request without a transaction: money towards the
equipment, or the equipment itself given outright.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from gear_share.directory.models import ActorRef, ActorType, ProviderRef
from gear_share.transactions.models import ItemCondition


class DonationType(str, Enum):
    MONETARY = "MONETARY"
    EQUIPMENT = "EQUIPMENT"


class DonationStatus(str, Enum):
    PENDING = "pending"
    CANCELLED = "cancelled"


class DonorType(str, Enum):
    """Who gives: a school or governing body from the directory, or anyone else"""

    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"
    SCHOOL = "school"
    GOVERNING_BODY = "governing_body"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    MOBILE_PAYMENT = "MOBILE_PAYMENT"
    OTHER = "OTHER"


class DonorRef(BaseModel):
    """Identity of a donor as supplied by the caller"""

    donor_type: DonorType
    donor_id: str = Field(..., min_length=1)
    display_name: str | None = None

    model_config = {"frozen": True}

    def as_provider(self) -> ProviderRef | None:
        """Directory providers can back a donation with tracked stock"""
        if self.donor_type == DonorType.SCHOOL:
            return ProviderRef.school(self.donor_id)
        if self.donor_type == DonorType.GOVERNING_BODY:
            return ProviderRef.governing_body(self.donor_id)
        return None

    def as_actor(self) -> ActorRef | None:
        if self.donor_type == DonorType.SCHOOL:
            return ActorRef(actor_type=ActorType.SCHOOL, actor_id=self.donor_id, display_name=self.display_name)
        if self.donor_type == DonorType.GOVERNING_BODY:
            return ActorRef(
                actor_type=ActorType.GOVERNING_BODY,
                actor_id=self.donor_id,
                display_name=self.display_name,
            )
        return None


class DonatedItem(BaseModel):
    """One equipment line of an equipment donation"""

    equipment_id: str
    quantity: int = Field(..., ge=1)
    condition: ItemCondition = ItemCondition.GOOD
    estimated_value: Decimal | None = Field(default=None, ge=0)
    description: str | None = None


class MonetaryDetails(BaseModel):
    """Money given towards a request"""

    amount: Decimal = Field(..., gt=0)
    currency: str = Field(default="LKR", min_length=3, max_length=3)
    payment_method: PaymentMethod | None = None


DONATION_PREFIXES: dict[DonationType, str] = {
    DonationType.EQUIPMENT: "DON-E",
    DonationType.MONETARY: "DON-M",
}
