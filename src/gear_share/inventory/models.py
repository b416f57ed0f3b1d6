"""
Inventory Domain Models

Stock levels, reservation statuses and tokens.

Fun fact: A regulation cricket ball weighs between 155.9 and 163 grams, so
a "reservation of 10 balls" is roughly a bag of flour's worth of leather!
"""

from enum import Enum

from pydantic import BaseModel, Field

from gear_share.directory.models import ProviderRef


class StockLevel(BaseModel):
    """Quantity of one equipment item held by one provider"""

    provider: ProviderRef
    equipment_id: str
    total_quantity: int = Field(..., ge=0)
    available_quantity: int = Field(..., ge=0)

    @property
    def reserved_quantity(self) -> int:
        return self.total_quantity - self.available_quantity


class ReservationStatus(str, Enum):
    """A reservation holds stock until released"""

    OPEN = "open"
    RELEASED = "released"


class ReservationToken(BaseModel):
    """
    Proof of a successful reservation

    Handed back by reserve() and accepted by release(). Immutable so that
    a holder cannot alter the quantity it gives back.
    """

    reservation_id: str
    provider: ProviderRef
    equipment_id: str
    quantity: int = Field(..., ge=1)

    model_config = {"frozen": True}


def stock_stream_id(provider: ProviderRef, equipment_id: str) -> str:
    """Event stream holding one provider's stock of one equipment item"""
    return f"stock:{provider.key}:{equipment_id}"
