"""
Inventory Projections

The equipment catalog and the stock ledger. Available quantity is derived
by replaying stocked, reserved and released events per (provider, item)
stream, so it always reflects every open reservation.
"""

from typing import Any

from gear_share.directory.models import ProviderRef
from gear_share.inventory.models import ReservationStatus, stock_stream_id
from gear_share.kernel.events import Event


class EquipmentCatalog:
    """
    Equipment catalog projection

    Rebuilt from EquipmentRegistered events.
    """

    def __init__(self) -> None:
        self.equipment: dict[str, dict[str, Any]] = {}
        self._by_reference: dict[str, str] = {}

    def apply_event(self, event: Event) -> None:
        if event.event_type == "EquipmentRegistered":
            payload = event.payload
            self.equipment[payload["equipment_id"]] = {
                "equipment_id": payload["equipment_id"],
                "reference": payload["reference"],
                "name": payload["name"],
                "sport_id": payload["sport_id"],
                "description": payload.get("description"),
                "registered_at": payload["registered_at"],
                "version": event.version,
            }
            self._by_reference[payload["reference"]] = payload["equipment_id"]

    def get(self, equipment_id: str) -> dict[str, Any] | None:
        """Get equipment by id or EQP reference"""
        if equipment_id in self.equipment:
            return self.equipment[equipment_id]
        resolved = self._by_reference.get(equipment_id)
        return self.equipment.get(resolved) if resolved else None

    def sport_of(self, equipment_id: str) -> str | None:
        entry = self.get(equipment_id)
        return entry["sport_id"] if entry else None

    def list_all(self) -> list[dict[str, Any]]:
        return sorted(self.equipment.values(), key=lambda e: e["reference"])

    def list_for_sports(self, sport_ids: list[str]) -> list[dict[str, Any]]:
        wanted = set(sport_ids)
        return [e for e in self.list_all() if e["sport_id"] in wanted]

    def count(self) -> int:
        return len(self.equipment)


class StockLedger:
    """
    Stock ledger projection

    One level per stock stream plus every reservation ever taken.
    Events at or below a stream's known version are ignored, so catching a
    stream up from the store after a version conflict is safe.
    """

    def __init__(self) -> None:
        self.levels: dict[str, dict[str, Any]] = {}
        self.reservations: dict[str, dict[str, Any]] = {}

    def apply_event(self, event: Event) -> None:
        if event.stream_type != "Stock":
            return
        level = self.levels.get(event.stream_id)
        if level is not None and event.version <= level["version"]:
            return

        if event.event_type == "InventoryStocked":
            self._apply_stocked(event)
        elif event.event_type == "InventoryReserved":
            self._apply_reserved(event)
        elif event.event_type == "InventoryReleased":
            self._apply_released(event)

    def _level_for(self, event: Event) -> dict[str, Any]:
        payload = event.payload
        return self.levels.setdefault(
            event.stream_id,
            {
                "provider": payload["provider"],
                "equipment_id": payload["equipment_id"],
                "total_quantity": 0,
                "available_quantity": 0,
                "version": 0,
            },
        )

    def _apply_stocked(self, event: Event) -> None:
        level = self._level_for(event)
        level["total_quantity"] += event.payload["quantity"]
        level["available_quantity"] += event.payload["quantity"]
        level["version"] = event.version

    def _apply_reserved(self, event: Event) -> None:
        payload = event.payload
        level = self._level_for(event)
        level["available_quantity"] -= payload["quantity"]
        level["version"] = event.version
        self.reservations[payload["reservation_id"]] = {
            "reservation_id": payload["reservation_id"],
            "stream_id": event.stream_id,
            "provider": payload["provider"],
            "equipment_id": payload["equipment_id"],
            "quantity": payload["quantity"],
            "purpose": payload.get("purpose"),
            "status": ReservationStatus.OPEN.value,
            "reserved_at": payload["reserved_at"],
            "released_at": None,
        }

    def _apply_released(self, event: Event) -> None:
        payload = event.payload
        level = self._level_for(event)
        level["available_quantity"] += payload["quantity"]
        level["version"] = event.version
        reservation = self.reservations.get(payload["reservation_id"])
        if reservation is not None:
            reservation["status"] = ReservationStatus.RELEASED.value
            reservation["released_at"] = payload["released_at"]

    def version_of(self, stream_id: str) -> int:
        level = self.levels.get(stream_id)
        return level["version"] if level else 0

    def available(self, stream_id: str) -> int:
        level = self.levels.get(stream_id)
        return level["available_quantity"] if level else 0

    def level(self, provider: ProviderRef, equipment_id: str) -> dict[str, Any] | None:
        return self.levels.get(stock_stream_id(provider, equipment_id))

    def list_for_provider(self, provider: ProviderRef) -> list[dict[str, Any]]:
        prefix = stock_stream_id(provider, "")
        return [
            level for stream_id, level in sorted(self.levels.items())
            if stream_id.startswith(prefix)
        ]

    def reservation(self, reservation_id: str) -> dict[str, Any] | None:
        return self.reservations.get(reservation_id)

    def open_reservations(self, stream_id: str | None = None) -> list[dict[str, Any]]:
        return [
            r for r in self.reservations.values()
            if r["status"] == ReservationStatus.OPEN.value and (stream_id is None or r["stream_id"] == stream_id)
        ]
