"""
Inventory Events

Immutable facts about the catalog and stock movements. Available quantity
is never stored directly: it is the sum of these events.
"""

from datetime import datetime

from pydantic import BaseModel

from gear_share.directory.models import ProviderRef


class EquipmentRegistered(BaseModel):
    """Equipment added to the catalog"""

    equipment_id: str
    reference: str
    name: str
    sport_id: str
    description: str | None = None
    registered_at: datetime


class InventoryStocked(BaseModel):
    """Provider took more of an item into stock"""

    provider: ProviderRef
    equipment_id: str
    quantity: int
    stocked_at: datetime


class InventoryReserved(BaseModel):
    """Quantity withdrawn from the available pool"""

    reservation_id: str
    provider: ProviderRef
    equipment_id: str
    quantity: int
    purpose: str | None = None
    reserved_at: datetime


class InventoryReleased(BaseModel):
    """Reserved quantity returned to the available pool"""

    reservation_id: str
    provider: ProviderRef
    equipment_id: str
    quantity: int
    reason: str
    released_at: datetime
