"""
Transaction Domain Models

A transaction is the binding record of equipment moving from a provider to
a recipient school: handed over for good, or lent until a due date.

Fun fact: Lending libraries for sports kit are older than you might think -
Victorian cricket clubs kept shared bats and pads in a common "club bag"!
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from gear_share.directory.models import ProviderType
from gear_share.kernel.time import as_utc, parse_timestamp


class TransactionType(str, Enum):
    """How the equipment changes hands"""

    RENTAL = "rental"  # Lent until return_due_date
    PERMANENT = "permanent"  # Transferred for good


class TransactionStatus(str, Enum):
    """
    Transaction lifecycle states

    Finite state machine:
    PENDING → APPROVED → COMPLETED (permanent transfers)
                       → RETURNED  (rentals)
    PENDING / APPROVED → CANCELLED
    PENDING → REJECTED
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class ItemCondition(str, Enum):
    """Condition of an item when it is handed over"""

    NEW = "new"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class TransactionItem(BaseModel):
    """One equipment line of a transaction"""

    equipment_id: str
    quantity: int = Field(..., ge=1)
    condition: ItemCondition = ItemCondition.GOOD
    notes: str | None = None


class RentalDetails(BaseModel):
    """Loan window of a rental; absent on permanent transfers"""

    start_date: datetime
    return_due_date: datetime
    returned_date: datetime | None = None
    fee: Decimal | None = Field(default=None, ge=0)


class TransactionTerms(BaseModel):
    """
    Terms a provider attaches to an approval

    Rentals need both dates; permanent transfers ignore them.
    """

    transaction_type: TransactionType = TransactionType.PERMANENT
    start_date: datetime | None = None
    return_due_date: datetime | None = None
    fee: Decimal | None = Field(default=None, ge=0)
    condition: ItemCondition | None = Field(
        default=None, description="Condition applied to every item unless overridden"
    )
    item_conditions: dict[str, ItemCondition] = Field(
        default_factory=dict, description="Per-equipment condition overrides"
    )
    item_notes: dict[str, str] = Field(default_factory=dict)
    terms: str | None = None
    notes: str | None = None


# Reference prefixes per provider kind and transaction type
TRANSACTION_PREFIXES: dict[tuple[ProviderType, TransactionType], str] = {
    (ProviderType.SCHOOL, TransactionType.PERMANENT): "TRF",
    (ProviderType.SCHOOL, TransactionType.RENTAL): "RNT",
    (ProviderType.GOVERNING_BODY, TransactionType.PERMANENT): "GTF",
    (ProviderType.GOVERNING_BODY, TransactionType.RENTAL): "GRT",
}


def is_overdue(transaction: dict[str, Any], now: datetime) -> bool:
    """
    Derived at read time, never stored

    A rental is overdue while it is still approved, has not come back, and
    its due date has passed.
    """
    if transaction["transaction_type"] != TransactionType.RENTAL.value:
        return False
    if transaction["status"] != TransactionStatus.APPROVED.value:
        return False
    rental = transaction.get("rental_details") or {}
    if rental.get("returned_date"):
        return False
    due = parse_timestamp(rental.get("return_due_date"))
    return due is not None and as_utc(now) > due
