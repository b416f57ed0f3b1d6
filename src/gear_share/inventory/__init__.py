"""
Inventory Module

Equipment catalog and per-provider stock. Quantities only move through
reserve and release.
"""

from gear_share.inventory.commands import (
    RegisterEquipment,
    ReleaseReservation,
    ReserveInventory,
    StockEquipment,
)
from gear_share.inventory.handlers import InventoryCommandHandlers
from gear_share.inventory.models import (
    ReservationStatus,
    ReservationToken,
    StockLevel,
    stock_stream_id,
)
from gear_share.inventory.projections import EquipmentCatalog, StockLedger
from gear_share.inventory.registry import InventoryRegistry

__all__ = [
    "RegisterEquipment",
    "StockEquipment",
    "ReserveInventory",
    "ReleaseReservation",
    "InventoryCommandHandlers",
    "ReservationStatus",
    "ReservationToken",
    "StockLevel",
    "stock_stream_id",
    "EquipmentCatalog",
    "StockLedger",
    "InventoryRegistry",
]
