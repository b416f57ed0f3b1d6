"""
Inventory Command Handlers

Transform catalog and stock commands into events.
"""

from typing import Any

from gear_share.inventory import commands, events, invariants
from gear_share.inventory.models import stock_stream_id
from gear_share.kernel.events import Event, create_event
from gear_share.kernel.ids import format_reference, generate_id
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import TimeProvider

EQUIPMENT_PREFIX = "EQP"


class InventoryCommandHandlers:
    """
    Command handlers for the equipment catalog and stock

    Stateless handlers: receive command, validate, emit events.
    All state queries done via projections passed as parameters.
    """

    def __init__(self, time_provider: TimeProvider, policy: ExchangePolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_register_equipment(
        self,
        command: commands.RegisterEquipment,
        command_id: str,
        actor_id: str,
        catalog: Any,  # EquipmentCatalog projection
    ) -> list[Event]:
        """Add a catalog entry with the next EQP reference"""
        now = self.time_provider.now()
        name = invariants.validate_not_blank(command.name, "name")
        sport_id = invariants.validate_not_blank(command.sport_id, "sport_id")

        equipment_id = generate_id()
        payload = events.EquipmentRegistered(
            equipment_id=equipment_id,
            reference=format_reference(EQUIPMENT_PREFIX, catalog.count() + 1),
            name=name,
            sport_id=sport_id,
            description=command.description,
            registered_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="EquipmentRegistered",
                stream_id=equipment_id,
                stream_type="Equipment",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=payload,
                version=1,
            )
        ]

    def handle_stock_equipment(
        self,
        command: commands.StockEquipment,
        command_id: str,
        actor_id: str,
        catalog: Any,
        ledger: Any,  # StockLedger projection
    ) -> list[Event]:
        """Increase total and available quantity for one provider"""
        now = self.time_provider.now()
        invariants.validate_equipment_exists(command.equipment_id, catalog.get(command.equipment_id))
        invariants.validate_positive_quantity(command.quantity)

        stream_id = stock_stream_id(command.provider, command.equipment_id)
        payload = events.InventoryStocked(
            provider=command.provider,
            equipment_id=command.equipment_id,
            quantity=command.quantity,
            stocked_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="InventoryStocked",
                stream_id=stream_id,
                stream_type="Stock",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=payload,
                version=ledger.version_of(stream_id) + 1,
            )
        ]

    def handle_reserve_inventory(
        self,
        command: commands.ReserveInventory,
        command_id: str,
        actor_id: str,
        catalog: Any,
        ledger: Any,
    ) -> list[Event]:
        """
        Withdraw quantity from the available pool

        Validates:
        - Equipment exists
        - Quantity is at least 1
        - Quantity does not exceed what the provider has available
        """
        now = self.time_provider.now()
        invariants.validate_equipment_exists(command.equipment_id, catalog.get(command.equipment_id))
        invariants.validate_positive_quantity(command.quantity)

        stream_id = stock_stream_id(command.provider, command.equipment_id)
        invariants.validate_sufficient_inventory(
            command.provider.key,
            command.equipment_id,
            command.quantity,
            ledger.available(stream_id),
        )

        payload = events.InventoryReserved(
            reservation_id=generate_id(),
            provider=command.provider,
            equipment_id=command.equipment_id,
            quantity=command.quantity,
            purpose=command.purpose,
            reserved_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="InventoryReserved",
                stream_id=stream_id,
                stream_type="Stock",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=payload,
                version=ledger.version_of(stream_id) + 1,
            )
        ]

    def handle_release_reservation(
        self,
        command: commands.ReleaseReservation,
        command_id: str,
        actor_id: str,
        ledger: Any,
    ) -> list[Event]:
        """Return an open reservation's quantity to the pool"""
        now = self.time_provider.now()
        reservation = invariants.validate_reservation_open(
            command.reservation_id, ledger.reservation(command.reservation_id)
        )
        stream_id = reservation["stream_id"]

        payload = events.InventoryReleased(
            reservation_id=command.reservation_id,
            provider=reservation["provider"],
            equipment_id=reservation["equipment_id"],
            quantity=reservation["quantity"],
            reason=command.reason,
            released_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="InventoryReleased",
                stream_id=stream_id,
                stream_type="Stock",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=payload,
                version=ledger.version_of(stream_id) + 1,
            )
        ]
