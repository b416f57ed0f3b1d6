"""
Donation Gateway

The bridge talks to donations through a small protocol so a payment or
pledge service can stand in for the local ledger.
"""

from typing import Any, Protocol

from gear_share.directory.models import ActorRef
from gear_share.donations.commands import CancelDonation, CreateDonation
from gear_share.donations.handlers import DonationCommandHandlers
from gear_share.donations.invariants import validate_donation_exists
from gear_share.donations.projections import DonationRegistry
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.events import Event
from gear_share.kernel.ids import generate_id
from gear_share.kernel.locks import KeyedLocks
from gear_share.kernel.logging import LogOperation, get_logger
from gear_share.kernel.time import TimeProvider

logger = get_logger(__name__)

_REFERENCE_LOCK = "donation-references"


class DonationGateway(Protocol):
    """Where donations are recorded"""

    def create_donation(self, command: CreateDonation, actor: ActorRef) -> dict[str, Any]:
        """Record a donation; returns it with donation_id and reference"""
        ...

    def cancel_donation(self, donation_id: str, reason: str, actor: ActorRef) -> dict[str, Any]:
        """Void a donation"""
        ...


class DonationLedger:
    """Donation gateway backed by the event store"""

    def __init__(
        self,
        event_store: SQLiteEventStore,
        time_provider: TimeProvider,
        registry: DonationRegistry | None = None,
    ) -> None:
        self.event_store = event_store
        self.registry = registry if registry is not None else DonationRegistry()
        self.handlers = DonationCommandHandlers(time_provider)
        self._locks = KeyedLocks()

    def apply_event(self, event: Event) -> None:
        if event.stream_type == "Donation":
            self.registry.apply_event(event)

    def create_donation(self, command: CreateDonation, actor: ActorRef) -> dict[str, Any]:
        with LogOperation(
            logger,
            "create_donation",
            request_id=command.request_id,
            donation_type=command.donation_type.value,
            donor_id=command.donor.donor_id,
        ):
            with self._locks.hold(_REFERENCE_LOCK):
                events = self.handlers.handle_create_donation(
                    command, generate_id(), actor, self.registry
                )
                self._commit(events)
        return self.registry.get(events[0].stream_id)

    def cancel_donation(self, donation_id: str, reason: str, actor: ActorRef) -> dict[str, Any]:
        command = CancelDonation(donation_id=donation_id, reason=reason)
        with self._locks.hold(donation_id):
            with LogOperation(logger, "cancel_donation", donation_id=donation_id, reason=reason):
                events = self.handlers.handle_cancel_donation(
                    command, generate_id(), actor, self.registry
                )
                self._commit(events)
        return self.registry.get(events[0].stream_id)

    def get(self, donation_id: str) -> dict[str, Any]:
        """Donation by id or DON-E/DON-M reference"""
        return validate_donation_exists(donation_id, self.registry.get(donation_id))

    def _commit(self, events: list[Event]) -> None:
        for event in events:
            self.event_store.append(event.stream_id, event.version - 1, [event])
            self.apply_event(event)
