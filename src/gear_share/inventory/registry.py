"""
Inventory Registry

The only component that moves quantity counters. Every reservation and
release for a (provider, equipment) pair is serialised twice over: by a
keyed lock inside this process and by the stock stream's optimistic version
in the event store across processes.
"""

from typing import Any

from gear_share.directory.invariants import validate_provider_exists
from gear_share.directory.models import ProviderRef
from gear_share.directory.projections import ProviderDirectory
from gear_share.inventory import invariants
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
from gear_share.kernel.errors import InsufficientInventory, NotFound
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.events import Event
from gear_share.kernel.ids import generate_id
from gear_share.kernel.locks import KeyedLocks
from gear_share.kernel.logging import LogOperation, get_logger
from gear_share.kernel.metrics import reservations_total, track_command_duration
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.retry import retry_on_stream_conflict
from gear_share.kernel.time import TimeProvider
from gear_share.kernel.validation import parse_input

logger = get_logger(__name__)

_CATALOG_LOCK = "catalog"


class InventoryRegistry:
    """
    Equipment catalog plus available quantity per provider

    Example:
        >>> ball = registry.register_equipment("Cricket ball", sport_id="cricket")
        >>> registry.stock(provider, ball["equipment_id"], 20)
        >>> token = registry.reserve(provider, ball["equipment_id"], 10)
        >>> registry.get_available(provider, ball["equipment_id"])
        10
        >>> registry.release(token)
    """

    def __init__(
        self,
        event_store: SQLiteEventStore,
        time_provider: TimeProvider,
        policy: ExchangePolicy,
        directory: ProviderDirectory | None = None,
        catalog: EquipmentCatalog | None = None,
        ledger: StockLedger | None = None,
    ) -> None:
        self.event_store = event_store
        self.directory = directory
        self.catalog = catalog if catalog is not None else EquipmentCatalog()
        self.ledger = ledger if ledger is not None else StockLedger()
        self.handlers = InventoryCommandHandlers(time_provider, policy)
        self._locks = KeyedLocks()

    def apply_event(self, event: Event) -> None:
        """Feed a stored event into the inventory projections"""
        if event.stream_type == "Equipment":
            self.catalog.apply_event(event)
        elif event.stream_type == "Stock":
            self.ledger.apply_event(event)

    # ========================================================================
    # Catalog
    # ========================================================================

    @track_command_duration("register_equipment")
    def register_equipment(
        self,
        name: str,
        sport_id: str,
        description: str | None = None,
        actor_id: str = "system",
    ) -> dict[str, Any]:
        """Add an item to the catalog and return its entry"""
        command = parse_input(
            RegisterEquipment, name=name, sport_id=sport_id, description=description
        )
        with self._locks.hold(_CATALOG_LOCK):
            events = self.handlers.handle_register_equipment(
                command, generate_id(), actor_id, self.catalog
            )
            self._commit(events)
        return self.catalog.get(events[0].payload["equipment_id"])

    def get_equipment(self, equipment_id: str) -> dict[str, Any]:
        """Catalog entry by id or EQP reference"""
        return invariants.validate_equipment_exists(equipment_id, self.catalog.get(equipment_id))

    # ========================================================================
    # Quantities
    # ========================================================================

    @track_command_duration("stock")
    def stock(
        self,
        provider: ProviderRef,
        equipment_id: str,
        quantity: int,
        actor_id: str = "system",
    ) -> dict[str, Any]:
        """Increase a provider's holding; returns the new stock level"""
        command = parse_input(
            StockEquipment, provider=provider, equipment_id=equipment_id, quantity=quantity
        )
        if self.directory is not None:
            validate_provider_exists(command.provider, self.directory.resolve(command.provider))
        equipment_id = self.get_equipment(command.equipment_id)["equipment_id"]
        command = command.model_copy(update={"equipment_id": equipment_id})
        stream_id = stock_stream_id(command.provider, equipment_id)
        command_id = generate_id()

        with self._locks.hold(stream_id):
            for attempt in retry_on_stream_conflict():
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        self._catch_up(stream_id)
                    events = self.handlers.handle_stock_equipment(
                        command, command_id, actor_id, self.catalog, self.ledger
                    )
                    self._commit(events)

        logger.info(
            "Inventory stocked",
            provider=command.provider.key,
            equipment_id=equipment_id,
            quantity=quantity,
        )
        return dict(self.ledger.levels[stream_id])

    def get_available(self, provider: ProviderRef, equipment_id: str) -> int:
        """Free quantity after every open reservation"""
        equipment_id = self.get_equipment(equipment_id)["equipment_id"]
        return self.ledger.available(stock_stream_id(provider, equipment_id))

    def stock_level(self, provider: ProviderRef, equipment_id: str) -> StockLevel:
        """Total and free quantity of one item at one provider"""
        equipment_id = self.get_equipment(equipment_id)["equipment_id"]
        level = self.ledger.level(provider, equipment_id)
        if level is None:
            raise NotFound("StockLevel", f"{provider.key}:{equipment_id}")
        return StockLevel(
            provider=provider,
            equipment_id=equipment_id,
            total_quantity=level["total_quantity"],
            available_quantity=level["available_quantity"],
        )

    def is_tracked(self, provider: ProviderRef, equipment_id: str) -> bool:
        """Whether the provider has ever stocked this item"""
        entry = self.catalog.get(equipment_id)
        if entry is None:
            return False
        return self.ledger.level(provider, entry["equipment_id"]) is not None

    def list_stock(self, provider: ProviderRef) -> list[dict[str, Any]]:
        return [dict(level) for level in self.ledger.list_for_provider(provider)]

    @track_command_duration("reserve")
    def reserve(
        self,
        provider: ProviderRef,
        equipment_id: str,
        quantity: int,
        purpose: str | None = None,
        actor_id: str = "system",
    ) -> ReservationToken:
        """
        Atomically withdraw quantity from a provider's pool

        Raises:
            InsufficientInventory: quantity exceeds what is available
            ValidationError: quantity below 1
            NotFound: unknown equipment
        """
        command = parse_input(
            ReserveInventory,
            provider=provider,
            equipment_id=equipment_id,
            quantity=quantity,
            purpose=purpose,
        )
        equipment_id = self.get_equipment(command.equipment_id)["equipment_id"]
        command = command.model_copy(update={"equipment_id": equipment_id})
        stream_id = stock_stream_id(command.provider, equipment_id)
        command_id = generate_id()

        with self._locks.hold(stream_id):
            try:
                for attempt in retry_on_stream_conflict():
                    with attempt:
                        if attempt.retry_state.attempt_number > 1:
                            self._catch_up(stream_id)
                        events = self.handlers.handle_reserve_inventory(
                            command, command_id, actor_id, self.catalog, self.ledger
                        )
                        self._commit(events)
            except InsufficientInventory as e:
                reservations_total.labels(outcome="insufficient").inc()
                logger.info(
                    "Reservation refused",
                    provider=e.provider_key,
                    equipment_id=e.equipment_id,
                    requested=e.requested,
                    available=e.available,
                )
                raise

        reservations_total.labels(outcome="reserved").inc()
        payload = events[0].payload
        return ReservationToken(
            reservation_id=payload["reservation_id"],
            provider=command.provider,
            equipment_id=equipment_id,
            quantity=command.quantity,
        )

    @track_command_duration("release")
    def release(
        self,
        token: ReservationToken | str,
        reason: str = "released",
        actor_id: str = "system",
    ) -> None:
        """
        Give a reservation's quantity back

        Raises:
            InvalidStateTransition: the reservation was already released
            NotFound: unknown reservation
        """
        reservation_id = token.reservation_id if isinstance(token, ReservationToken) else token
        command = ReleaseReservation(reservation_id=reservation_id, reason=reason)
        reservation = invariants.validate_reservation_open(
            reservation_id, self.ledger.reservation(reservation_id)
        )
        stream_id = reservation["stream_id"]
        command_id = generate_id()

        with self._locks.hold(stream_id):
            with LogOperation(logger, "release", reservation_id=reservation_id, reason=reason):
                for attempt in retry_on_stream_conflict():
                    with attempt:
                        if attempt.retry_state.attempt_number > 1:
                            self._catch_up(stream_id)
                        events = self.handlers.handle_release_reservation(
                            command, command_id, actor_id, self.ledger
                        )
                        self._commit(events)

        reservations_total.labels(outcome="released").inc()

    def release_all(
        self,
        tokens: list[ReservationToken] | list[str],
        reason: str,
        actor_id: str = "system",
    ) -> None:
        """Release several reservations, newest first; already released ones are skipped"""
        for token in reversed(tokens):
            reservation_id = token.reservation_id if isinstance(token, ReservationToken) else token
            reservation = self.ledger.reservation(reservation_id)
            if reservation is None or reservation["status"] != ReservationStatus.OPEN.value:
                continue
            self.release(reservation_id, reason=reason, actor_id=actor_id)

    def token_for(self, reservation_id: str) -> ReservationToken:
        """Rebuild the token of a stored reservation"""
        reservation = self.ledger.reservation(reservation_id)
        if reservation is None:
            raise NotFound("Reservation", reservation_id)
        return ReservationToken(
            reservation_id=reservation_id,
            provider=ProviderRef.model_validate(reservation["provider"]),
            equipment_id=reservation["equipment_id"],
            quantity=reservation["quantity"],
        )

    # ========================================================================
    # Persistence
    # ========================================================================

    def _commit(self, events: list[Event]) -> None:
        for event in events:
            self.event_store.append(event.stream_id, event.version - 1, [event])
            self.apply_event(event)

    def _catch_up(self, stream_id: str) -> None:
        """Apply events another writer appended to a stock stream"""
        known = self.ledger.version_of(stream_id)
        for event in self.event_store.load_stream(stream_id):
            if event.version > known:
                self.ledger.apply_event(event)
