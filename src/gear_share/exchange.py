"""
GearShare - Main façade class

The primary interface to the equipment exchange. Wires every component
over one event store, rebuilds the read models from the log on start-up
and exposes the operations schools, governing bodies and donors use.

Example:
    >>> from gear_share import GearShare
    >>> gs = GearShare("gear.db")
    >>> royal = gs.register_school("Royal College", {"district": "Colombo", "province": "Western Province"})
    >>> trinity = gs.register_school("Trinity College", {"district": "Kandy", "province": "Central Province"})
    >>> bat = gs.register_equipment("Cricket bat", sport_id="cricket")
    >>> gs.stock(ProviderRef.school(trinity["school_id"]), bat["equipment_id"], 12)
    >>> request = gs.create_request(royal["school_id"], {"event_name": "Inter-school meet"},
    ...                             [{"equipment_id": bat["reference"], "quantity_requested": 6}])
    >>> gs.respond(request["request_id"], "approved",
    ...            actor=ActorRef(actor_type="school", actor_id=trinity["school_id"]))
"""

from datetime import datetime
from pathlib import Path
from typing import Any

from gear_share.directory.commands import RegisterGoverningBody, RegisterSchool, RelocateProvider
from gear_share.directory.handlers import DirectoryCommandHandlers
from gear_share.directory.invariants import validate_provider_exists
from gear_share.directory.models import SYSTEM_ACTOR, ActorRef, Location, ProviderRef, ProviderType
from gear_share.directory.projections import (
    GoverningBodyDirectory,
    ProviderDirectory,
    SchoolDirectory,
)
from gear_share.donations.bridge import DonationBridge
from gear_share.donations.gateway import DonationLedger
from gear_share.donations.models import DonatedItem, DonationType, DonorRef, MonetaryDetails
from gear_share.inventory.models import ReservationToken, StockLevel
from gear_share.inventory.registry import InventoryRegistry
from gear_share.kernel.bus import InProcessBus, Notifier
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.events import Event
from gear_share.kernel.ids import generate_id
from gear_share.kernel.locks import KeyedLocks
from gear_share.kernel.logging import get_logger
from gear_share.kernel.metrics import update_status_gauges
from gear_share.kernel.policy import ExchangePolicy, build_default_policy
from gear_share.kernel.time import RealTimeProvider, TimeProvider
from gear_share.kernel.validation import parse_input
from gear_share.proximity.cache import DistanceCache
from gear_share.requests.lifecycle import RequestLifecycleManager
from gear_share.requests.models import ApprovedItem, Decision, EventInfo, RequestItem
from gear_share.requests.projections import RequestRegistry
from gear_share.transactions.engine import TransactionReconciliationEngine
from gear_share.transactions.models import TransactionTerms
from gear_share.transactions.projections import TransactionRegistry

logger = get_logger(__name__)

_RELOCATION_EVENTS = {"SchoolRelocated", "GoverningBodyRelocated"}


class GearShare:
    """
    Equipment exchange façade

    Provides a unified API for:
    - School and governing body registration
    - Equipment catalog and stock
    - Request creation, listing, decisions and delivery
    - Rental returns, cancellations and completed transfers
    - Donations fulfilling requests
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: ExchangePolicy | None = None,
        time_provider: TimeProvider | None = None,
        bus: InProcessBus | None = None,
    ) -> None:
        """
        Initialize the exchange

        Args:
            sqlite_path: Path to SQLite database
            policy: Exchange policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
            bus: Notification bus (a private one if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or build_default_policy()
        self.time_provider = time_provider or RealTimeProvider()
        self.bus = bus or InProcessBus()

        # Infrastructure
        self.event_store = SQLiteEventStore(str(self.sqlite_path))
        self.directory_handlers = DirectoryCommandHandlers(self.time_provider, self.policy)
        self._directory_locks = KeyedLocks()

        # Projections
        self.schools = SchoolDirectory()
        self.governing_bodies = GoverningBodyDirectory()
        self.directory = ProviderDirectory(self.schools, self.governing_bodies)
        self.request_registry = RequestRegistry()
        self.transaction_registry = TransactionRegistry()
        self.distance_cache = DistanceCache()

        # Components
        self.inventory = InventoryRegistry(
            self.event_store, self.time_provider, self.policy, directory=self.directory
        )
        self.transactions = TransactionReconciliationEngine(
            self.event_store,
            self.time_provider,
            self.policy,
            self.inventory,
            registry=self.transaction_registry,
            bus=self.bus,
        )
        self.lifecycle = RequestLifecycleManager(
            self.event_store,
            self.time_provider,
            self.policy,
            self.directory,
            self.inventory,
            self.transactions,
            registry=self.request_registry,
            bus=self.bus,
            distance_cache=self.distance_cache,
        )
        self.donation_ledger = DonationLedger(self.event_store, self.time_provider)
        self.donations = DonationBridge(
            self.lifecycle, self.inventory, self.donation_ledger, self.policy
        )

        self._rebuild_projections()

    def _rebuild_projections(self) -> None:
        """Rebuild all projections from event store"""
        count = 0
        for event in self.event_store.load_all_events():
            self._apply(event)
            count += 1
        self._refresh_gauges()
        logger.info("Projections rebuilt", events=count, db_path=str(self.sqlite_path))

    def _apply(self, event: Event) -> None:
        if event.stream_type in ("School", "GoverningBody"):
            self.directory.apply_event(event)
            if event.event_type in _RELOCATION_EVENTS:
                self.distance_cache.invalidate(event.stream_id)
        elif event.stream_type in ("Equipment", "Stock"):
            self.inventory.apply_event(event)
        elif event.stream_type == "EquipmentRequest":
            self.lifecycle.apply_event(event)
        elif event.stream_type == "Transaction":
            self.transactions.apply_event(event)
        elif event.stream_type == "Donation":
            self.donation_ledger.apply_event(event)

    def _commit(self, events: list[Event]) -> None:
        for event in events:
            self.event_store.append(event.stream_id, event.version - 1, [event])
            self._apply(event)
        self.bus.publish_events(events)

    def _refresh_gauges(self) -> None:
        update_status_gauges(
            self.request_registry.count_by_status(),
            self.transaction_registry.count_by_status(),
        )

    # Notifications

    def subscribe(self, notifier: Notifier, event_types: list[str] | None = None) -> None:
        """Deliver committed events to a notifier (all events if no types given)"""
        self.bus.subscribe(notifier, event_types)

    # Directory operations

    def register_school(
        self,
        name: str,
        location: Location | dict[str, Any],
        principal_name: str | None = None,
        contact_email: str | None = None,
        actor_id: str = "system",
    ) -> dict[str, Any]:
        """
        Register a school

        Returns:
            School dict with school_id
        """
        command = parse_input(
            RegisterSchool,
            name=name,
            location=location,
            principal_name=principal_name,
            contact_email=contact_email,
        )
        events = self.directory_handlers.handle_register_school(command, generate_id(), actor_id)
        self._commit(events)
        return self.schools.get(events[0].stream_id)

    def register_governing_body(
        self,
        name: str,
        specialized_sport_ids: list[str],
        abbreviation: str | None = None,
        location: Location | dict[str, Any] | None = None,
        contact_email: str | None = None,
        actor_id: str = "system",
    ) -> dict[str, Any]:
        """
        Register a sports governing body

        Returns:
            Governing body dict with governing_body_id
        """
        command = parse_input(
            RegisterGoverningBody,
            name=name,
            abbreviation=abbreviation,
            specialized_sport_ids=specialized_sport_ids,
            location=location,
            contact_email=contact_email,
        )
        events = self.directory_handlers.handle_register_governing_body(
            command, generate_id(), actor_id
        )
        self._commit(events)
        return self.governing_bodies.get(events[0].stream_id)

    def relocate(
        self,
        provider: ProviderRef,
        location: Location | dict[str, Any],
        actor_id: str = "system",
    ) -> dict[str, Any]:
        """Move a school or governing body; cached distances involving it are dropped"""
        command = parse_input(
            RelocateProvider,
            provider_type=provider.provider_type,
            provider_id=provider.provider_id,
            location=location,
        )
        with self._directory_locks.hold(provider.provider_id):
            events = self.directory_handlers.handle_relocate_provider(
                command, generate_id(), actor_id, self.directory
            )
            self._commit(events)
        return self.directory.resolve(provider)

    def get_school(self, school_id: str) -> dict[str, Any]:
        return validate_provider_exists(ProviderRef.school(school_id), self.schools.get(school_id))

    def get_governing_body(self, governing_body_id: str) -> dict[str, Any]:
        return validate_provider_exists(
            ProviderRef.governing_body(governing_body_id),
            self.governing_bodies.get(governing_body_id),
        )

    def list_schools(self) -> list[dict[str, Any]]:
        return self.schools.list_all()

    def list_governing_bodies(self) -> list[dict[str, Any]]:
        return self.governing_bodies.list_all()

    # Inventory operations

    def register_equipment(
        self,
        name: str,
        sport_id: str,
        description: str | None = None,
        actor_id: str = "system",
    ) -> dict[str, Any]:
        """Add an item to the equipment catalog"""
        return self.inventory.register_equipment(name, sport_id, description, actor_id=actor_id)

    def get_equipment(self, equipment_id: str) -> dict[str, Any]:
        return self.inventory.get_equipment(equipment_id)

    def list_equipment(self, sport_ids: list[str] | None = None) -> list[dict[str, Any]]:
        if sport_ids is not None:
            return self.inventory.catalog.list_for_sports(sport_ids)
        return self.inventory.catalog.list_all()

    def stock(
        self,
        provider: ProviderRef,
        equipment_id: str,
        quantity: int,
        actor_id: str = "system",
    ) -> dict[str, Any]:
        """Add units to a provider's holding"""
        return self.inventory.stock(provider, equipment_id, quantity, actor_id=actor_id)

    def get_available(self, provider: ProviderRef, equipment_id: str) -> int:
        return self.inventory.get_available(provider, equipment_id)

    def stock_level(self, provider: ProviderRef, equipment_id: str) -> StockLevel:
        return self.inventory.stock_level(provider, equipment_id)

    def list_stock(self, provider: ProviderRef) -> list[dict[str, Any]]:
        return self.inventory.list_stock(provider)

    def reserve(
        self,
        provider: ProviderRef,
        equipment_id: str,
        quantity: int,
        purpose: str | None = None,
        actor_id: str = "system",
    ) -> ReservationToken:
        return self.inventory.reserve(provider, equipment_id, quantity, purpose, actor_id=actor_id)

    def release(self, token: ReservationToken | str, actor_id: str = "system") -> None:
        self.inventory.release(token, actor_id=actor_id)

    # Request operations

    def create_request(
        self,
        requester_school_id: str,
        event_info: EventInfo | dict[str, Any],
        items: list[RequestItem] | list[dict[str, Any]],
        actor: ActorRef | None = None,
    ) -> dict[str, Any]:
        """
        Open a pending equipment request

        Items may name equipment by id or EQP reference.
        """
        request = self.lifecycle.create(requester_school_id, event_info, items, actor)
        self._refresh_gauges()
        return request

    def get_request(self, request_id: str) -> dict[str, Any]:
        return self.lifecycle.get(request_id)

    def request_history(self, request_id: str) -> list[Event]:
        return self.lifecycle.history(request_id)

    def list_requests_for_school(
        self, school_id: str, statuses: list[str] | None = None
    ) -> list[dict[str, Any]]:
        return self.lifecycle.list_for_school(school_id, statuses)

    def list_requests_for_provider(
        self,
        provider: ProviderRef,
        specialized_sport_ids: list[str] | None = None,
        statuses: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Requests a provider can answer, nearest first"""
        return self.lifecycle.list_for_provider(provider, specialized_sport_ids, statuses)

    def respond(
        self,
        request_id: str,
        decision: Decision | str,
        approved_items: list[ApprovedItem] | list[dict[str, Any]] | None = None,
        rejection_reason: str | None = None,
        *,
        actor: ActorRef,
        provider: ProviderRef | None = None,
        terms: TransactionTerms | dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """
        Decide a pending request

        Approvals reserve stock and create the transaction in one step;
        see RequestLifecycleManager.respond for the failure guarantees.
        """
        request = self.lifecycle.respond(
            request_id,
            decision,
            approved_items,
            rejection_reason,
            actor=actor,
            provider=provider,
            terms=terms,
            notes=notes,
        )
        self._refresh_gauges()
        return request

    def mark_delivered(self, request_id: str, actor: ActorRef) -> dict[str, Any]:
        request = self.lifecycle.mark_delivered(request_id, actor)
        self._refresh_gauges()
        return request

    # Transaction operations

    def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        return self.transactions.get(transaction_id)

    def transactions_for_request(self, request_id: str) -> list[dict[str, Any]]:
        request = self.lifecycle.get(request_id)
        return [self.transactions.get(t) for t in request["transaction_ids"]]

    def confirm_return(
        self,
        transaction_id: str,
        returned_date: datetime | None = None,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> dict[str, Any]:
        transaction = self.transactions.confirm_return(transaction_id, returned_date, actor)
        self._refresh_gauges()
        return transaction

    def cancel_transaction(
        self,
        transaction_id: str,
        reason: str | None = None,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> dict[str, Any]:
        transaction = self.transactions.cancel(transaction_id, reason, actor)
        self._refresh_gauges()
        return transaction

    def complete_transaction(
        self, transaction_id: str, actor: ActorRef = SYSTEM_ACTOR
    ) -> dict[str, Any]:
        transaction = self.transactions.complete(transaction_id, actor)
        self._refresh_gauges()
        return transaction

    def release_stranded_reservations(self, actor: ActorRef = SYSTEM_ACTOR) -> list[str]:
        return self.transactions.release_stranded(actor)

    def is_overdue(self, transaction_id: str, now: datetime | None = None) -> bool:
        return self.transactions.is_overdue(transaction_id, now)

    def overdue_rentals(self, now: datetime | None = None) -> list[dict[str, Any]]:
        return self.transactions.overdue_rentals(now)

    def list_transactions(
        self,
        provider: ProviderRef | None = None,
        recipient_school_id: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        if provider is not None:
            return self.transactions.list_for_provider(provider, status)
        if recipient_school_id is not None:
            return self.transactions.list_for_recipient(recipient_school_id, status)
        return self.transaction_registry.list_all(status)

    # Donation operations

    def donate(
        self,
        request_id: str,
        donor: DonorRef | dict[str, Any],
        donation_type: DonationType | str,
        items: list[DonatedItem] | list[dict[str, Any]] | None = None,
        monetary: MonetaryDetails | dict[str, Any] | None = None,
        actor: ActorRef | None = None,
        purpose: str | None = None,
        anonymous: bool = False,
    ) -> dict[str, Any]:
        """
        Fulfil a pending request with a donation

        Returns:
            {"donation": ..., "request": ...}
        """
        result = self.donations.donate(
            request_id,
            donor,
            donation_type,
            items=items,
            monetary=monetary,
            actor=actor,
            purpose=purpose,
            anonymous=anonymous,
        )
        self._refresh_gauges()
        return result

    def get_donation(self, donation_id: str) -> dict[str, Any]:
        return self.donation_ledger.get(donation_id)

    def list_donations_for_request(self, request_id: str) -> list[dict[str, Any]]:
        request = self.lifecycle.get(request_id)
        return self.donation_ledger.registry.list_for_request(request["request_id"])

    # Health

    def status(self) -> dict[str, Any]:
        """
        Snapshot of the exchange for health checks and the CLI

        Returns:
            Event count, schools/governing bodies/equipment counts, request
            and transaction counts per status, overdue rentals and distance
            cache size
        """
        self._refresh_gauges()
        return {
            "event_count": self.event_store.count_events(),
            "schools": len(self.schools.entries),
            "governing_bodies": len(self.governing_bodies.entries),
            "equipment": self.inventory.catalog.count(),
            "requests": self.request_registry.count_by_status(),
            "transactions": self.transaction_registry.count_by_status(),
            "overdue_rentals": len(self.transactions.overdue_rentals()),
            "distance_cache_entries": len(self.distance_cache),
        }

    def provider_ref(self, provider_type: ProviderType | str, provider_id: str) -> ProviderRef:
        """Build and resolve a provider reference"""
        provider = parse_input(ProviderRef, provider_type=provider_type, provider_id=provider_id)
        validate_provider_exists(provider, self.directory.resolve(provider))
        return provider
