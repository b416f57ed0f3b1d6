"""
Inventory Commands

Intentions to change the catalog or a provider's stock.
"""

from pydantic import BaseModel, Field

from gear_share.directory.models import ProviderRef


class RegisterEquipment(BaseModel):
    """Add an equipment item to the shared catalog"""

    name: str = Field(..., description="Equipment name, e.g. 'Cricket ball'")
    sport_id: str = Field(..., description="Sport the equipment belongs to")
    description: str | None = Field(default=None)


class StockEquipment(BaseModel):
    """Increase a provider's holding of an equipment item"""

    provider: ProviderRef
    equipment_id: str
    quantity: int


class ReserveInventory(BaseModel):
    """Take quantity out of a provider's available pool"""

    provider: ProviderRef
    equipment_id: str
    quantity: int
    purpose: str | None = Field(
        default=None, description="What the reservation backs, e.g. a request id"
    )


class ReleaseReservation(BaseModel):
    """Give a reservation's quantity back to the available pool"""

    reservation_id: str
    reason: str = Field(default="released")
