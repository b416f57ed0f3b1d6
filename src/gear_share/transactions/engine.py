"""
Transaction Reconciliation Engine

Turns an approval into a binding transaction and runs the rental return
sub-lifecycle. Reservations taken at approval stay with the transaction:
a return or a cancellation hands them back to the inventory registry, a
completed permanent transfer keeps them consumed.
"""

from datetime import datetime
from typing import Any

from gear_share.directory.models import SYSTEM_ACTOR, ActorRef, ProviderRef
from gear_share.inventory.models import ReservationStatus, ReservationToken
from gear_share.inventory.registry import InventoryRegistry
from gear_share.kernel.bus import InProcessBus
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.events import Event
from gear_share.kernel.ids import generate_id
from gear_share.kernel.locks import KeyedLocks
from gear_share.kernel.logging import LogOperation, get_logger
from gear_share.kernel.metrics import reservations_total, track_command_duration
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import TimeProvider
from gear_share.kernel.validation import parse_input
from gear_share.transactions import invariants
from gear_share.transactions.commands import (
    CancelTransaction,
    CompleteTransaction,
    ConfirmReturn,
    CreateTransaction,
)
from gear_share.transactions.handlers import TransactionCommandHandlers
from gear_share.transactions.models import (
    ItemCondition,
    RentalDetails,
    TransactionItem,
    TransactionTerms,
    TransactionType,
    is_overdue,
)
from gear_share.transactions.projections import TransactionRegistry

logger = get_logger(__name__)

_REFERENCE_LOCK = "transaction-references"


class TransactionReconciliationEngine:
    """
    Creates transactions from approvals and closes them

    Example:
        >>> txn = engine.materialize(request, {"ball": 10}, provider, tokens, terms, actor)
        >>> engine.confirm_return(txn["transaction_id"], returned_date)
    """

    def __init__(
        self,
        event_store: SQLiteEventStore,
        time_provider: TimeProvider,
        policy: ExchangePolicy,
        inventory: InventoryRegistry,
        registry: TransactionRegistry | None = None,
        bus: InProcessBus | None = None,
    ) -> None:
        self.event_store = event_store
        self.time_provider = time_provider
        self.policy = policy
        self.inventory = inventory
        self.registry = registry if registry is not None else TransactionRegistry()
        self.bus = bus
        self.handlers = TransactionCommandHandlers(time_provider, policy)
        self._locks = KeyedLocks()

    def apply_event(self, event: Event) -> None:
        if event.stream_type == "Transaction":
            self.registry.apply_event(event)

    # ========================================================================
    # Creation
    # ========================================================================

    @track_command_duration("materialize_transaction")
    def materialize(
        self,
        request: dict[str, Any],
        approvals: dict[str, int],
        provider: ProviderRef,
        reservations: list[ReservationToken],
        terms: TransactionTerms | None = None,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> dict[str, Any]:
        """
        Build the transaction for an approved or partial request

        Items approved with zero units are left out. The caller owns the
        reservations until this returns; on any failure it must release them.

        Args:
            request: Request entry from the request registry
            approvals: equipment_id -> approved quantity
            provider: Who hands the equipment over
            reservations: Tokens backing the approved quantities
            terms: Transaction type, rental window, conditions
            actor: Who approved

        Raises:
            ValidationError: missing or inverted rental window, nothing approved
        """
        terms = terms or TransactionTerms()
        invariants.validate_rental_window(
            terms.transaction_type, terms.start_date, terms.return_due_date
        )

        default_condition = terms.condition or ItemCondition(self.policy.default_item_condition)
        items = [
            TransactionItem(
                equipment_id=equipment_id,
                quantity=quantity,
                condition=terms.item_conditions.get(equipment_id, default_condition),
                notes=terms.item_notes.get(equipment_id),
            )
            for equipment_id, quantity in approvals.items()
            if quantity > 0
        ]

        rental_details = None
        if terms.transaction_type == TransactionType.RENTAL:
            rental_details = RentalDetails(
                start_date=terms.start_date,
                return_due_date=terms.return_due_date,
                fee=terms.fee,
            )

        command = parse_input(
            CreateTransaction,
            provider=provider,
            recipient_school_id=request["requester_school_id"],
            transaction_type=terms.transaction_type,
            items=items,
            rental_details=rental_details,
            originating_request_id=request["request_id"],
            reservation_ids=[t.reservation_id for t in reservations],
            terms=terms.terms,
            notes=terms.notes,
        )

        with LogOperation(
            logger,
            "materialize_transaction",
            request_id=request["request_id"],
            provider=provider.key,
            transaction_type=terms.transaction_type.value,
        ):
            with self._locks.hold(_REFERENCE_LOCK):
                events = self.handlers.handle_create_transaction(
                    command, generate_id(), actor, self.registry
                )
                self._commit(events)

        return self.registry.get(events[0].payload["transaction_id"])

    # ========================================================================
    # Closing
    # ========================================================================

    @track_command_duration("confirm_return")
    def confirm_return(
        self,
        transaction_id: str,
        returned_date: datetime | None = None,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> dict[str, Any]:
        """
        Rental came back (approved → returned); releases its reservations

        Raises:
            InvalidStateTransition: permanent transfer, or not approved
            ValidationError: returned before the rental started
        """
        transaction = self._require(transaction_id)
        command = parse_input(
            ConfirmReturn,
            transaction_id=transaction["transaction_id"],
            returned_date=returned_date or self.time_provider.now(),
        )

        with self._locks.hold(command.transaction_id):
            with LogOperation(logger, "confirm_return", transaction_id=command.transaction_id):
                events = self.handlers.handle_confirm_return(
                    command, generate_id(), actor, self.registry
                )
                self._commit(events)
                self._release_reservations(transaction, "returned", actor)

        self._publish(events)
        return self.registry.get(command.transaction_id)

    @track_command_duration("cancel_transaction")
    def cancel(
        self,
        transaction_id: str,
        reason: str | None = None,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> dict[str, Any]:
        """
        Call a transaction off (pending/approved → cancelled); releases its reservations
        """
        transaction = self._require(transaction_id)
        command = CancelTransaction(transaction_id=transaction["transaction_id"], reason=reason)

        with self._locks.hold(command.transaction_id):
            with LogOperation(logger, "cancel_transaction", transaction_id=command.transaction_id):
                events = self.handlers.handle_cancel_transaction(
                    command, generate_id(), actor, self.registry
                )
                self._commit(events)
                self._release_reservations(transaction, "cancelled", actor)

        self._publish(events)
        return self.registry.get(command.transaction_id)

    @track_command_duration("complete_transaction")
    def complete(
        self,
        transaction_id: str,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> dict[str, Any]:
        """Permanent transfer handed over (approved → completed)"""
        transaction = self._require(transaction_id)
        command = CompleteTransaction(transaction_id=transaction["transaction_id"])

        with self._locks.hold(command.transaction_id):
            with LogOperation(logger, "complete_transaction", transaction_id=command.transaction_id):
                events = self.handlers.handle_complete_transaction(
                    command, generate_id(), actor, self.registry
                )
                self._commit(events)

        self._publish(events)
        return self.registry.get(command.transaction_id)

    @track_command_duration("release_stranded")
    def release_stranded(self, actor: ActorRef = SYSTEM_ACTOR) -> list[str]:
        """
        Release reservations still held by returned or cancelled transactions

        A return or cancellation commits before its stock goes back; if that
        release failed the reservations stay open until this runs.

        Returns:
            References of the transactions whose stock was released
        """
        repaired = []
        for status, reason in (("returned", "returned"), ("cancelled", "cancelled")):
            for transaction in self.registry.list_all(status):
                with self._locks.hold(transaction["transaction_id"]):
                    if not self._open_reservations(transaction):
                        continue
                    self._release_reservations(transaction, reason, actor)
                repaired.append(transaction["reference"])

        if repaired:
            logger.info("Stranded reservations released", transactions=repaired)
        return repaired

    # ========================================================================
    # Queries
    # ========================================================================

    def get(self, transaction_id: str) -> dict[str, Any]:
        """Transaction by id or reference"""
        return self._require(transaction_id)

    def is_overdue(self, transaction: dict[str, Any] | str, now: datetime | None = None) -> bool:
        if isinstance(transaction, str):
            transaction = self._require(transaction)
        return is_overdue(transaction, now or self.time_provider.now())

    def overdue_rentals(self, now: datetime | None = None) -> list[dict[str, Any]]:
        """Approved rentals past their due date, most overdue first"""
        now = now or self.time_provider.now()
        overdue = [t for t in self.registry.list_all("approved") if is_overdue(t, now)]
        return sorted(overdue, key=lambda t: t["rental_details"]["return_due_date"])

    def list_for_provider(
        self, provider: ProviderRef, status: str | None = None
    ) -> list[dict[str, Any]]:
        return self.registry.list_by_provider(provider.key, status)

    def list_for_recipient(
        self, school_id: str, status: str | None = None
    ) -> list[dict[str, Any]]:
        return self.registry.list_by_recipient(school_id, status)

    # ========================================================================
    # Internals
    # ========================================================================

    def _require(self, transaction_id: str) -> dict[str, Any]:
        return invariants.validate_transaction_exists(
            transaction_id, self.registry.get(transaction_id)
        )

    def _open_reservations(self, transaction: dict[str, Any]) -> list[str]:
        open_ids = []
        for reservation_id in transaction["reservation_ids"]:
            reservation = self.inventory.ledger.reservation(reservation_id)
            if reservation is not None and reservation["status"] == ReservationStatus.OPEN.value:
                open_ids.append(reservation_id)
        return open_ids

    def _release_reservations(
        self, transaction: dict[str, Any], reason: str, actor: ActorRef
    ) -> None:
        try:
            self.inventory.release_all(
                transaction["reservation_ids"], reason=reason, actor_id=actor.actor_id
            )
        except Exception:
            stranded = self._open_reservations(transaction)
            reservations_total.labels(outcome="stranded").inc(len(stranded))
            logger.error(
                "Reservations left open after transaction closed",
                transaction_id=transaction["transaction_id"],
                reservation_ids=stranded,
            )
            raise

    def _commit(self, events: list[Event]) -> None:
        for event in events:
            self.event_store.append(event.stream_id, event.version - 1, [event])
            self.apply_event(event)

    def _publish(self, events: list[Event]) -> None:
        if self.bus is not None:
            self.bus.publish_events(events)

    def publish_created(self, transaction_id: str) -> None:
        """Announce a materialised transaction once its request is committed"""
        if self.bus is None:
            return
        for event in self.event_store.load_stream(transaction_id):
            if event.event_type == "TransactionApproved":
                self.bus.publish_event(event)
