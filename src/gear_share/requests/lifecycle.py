"""
Request Lifecycle Manager

Owns the request state machine. The first response to reach a pending
request wins: respond holds the request's lock across the status check,
every inventory reservation, the transaction and the request event, and
the event store's expected-version check catches writers in other
processes. Any failure on the way releases what was reserved and leaves
the request pending and unchanged.
"""

from typing import Any

from gear_share.directory.invariants import validate_not_self_supply, validate_provider_exists
from gear_share.directory.models import ActorRef, ActorType, ProviderRef, ProviderType
from gear_share.directory.projections import ProviderDirectory
from gear_share.inventory.models import ReservationToken
from gear_share.inventory.registry import InventoryRegistry
from gear_share.kernel.bus import InProcessBus
from gear_share.kernel.errors import InvalidStateTransition, StreamVersionConflict, ValidationError
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.events import Event
from gear_share.kernel.ids import generate_id
from gear_share.kernel.locks import KeyedLocks
from gear_share.kernel.logging import LogOperation, get_logger
from gear_share.kernel.metrics import track_command_duration
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import TimeProvider, parse_timestamp
from gear_share.kernel.validation import parse_input
from gear_share.proximity.cache import DistanceCache
from gear_share.proximity.ranking import RankCandidate, distance_between, rank
from gear_share.requests import invariants
from gear_share.requests.commands import CreateEquipmentRequest, MarkDelivered, RespondToRequest
from gear_share.requests.handlers import RequestCommandHandlers
from gear_share.requests.models import ApprovedItem, Decision, EventInfo, RequestItem
from gear_share.requests.projections import RequestRegistry
from gear_share.requests.scoping import scope_for_school, scope_to_sports
from gear_share.transactions.engine import TransactionReconciliationEngine
from gear_share.transactions.invariants import validate_rental_window
from gear_share.transactions.models import TransactionTerms

logger = get_logger(__name__)

_REFERENCE_LOCK = "request-references"


class RequestLifecycleManager:
    """
    Creates, lists, decides and delivers equipment requests

    Example:
        >>> request = manager.create(school_id, EventInfo(event_name="Zonal meet"),
        ...                          [RequestItem(equipment_id="EQP000001", quantity_requested=10)])
        >>> manager.respond(request["request_id"], "approved", actor=provider_actor)
        >>> manager.mark_delivered(request["request_id"], actor=provider_actor)
    """

    def __init__(
        self,
        event_store: SQLiteEventStore,
        time_provider: TimeProvider,
        policy: ExchangePolicy,
        directory: ProviderDirectory,
        inventory: InventoryRegistry,
        transactions: TransactionReconciliationEngine,
        registry: RequestRegistry | None = None,
        bus: InProcessBus | None = None,
        distance_cache: DistanceCache | None = None,
    ) -> None:
        self.event_store = event_store
        self.time_provider = time_provider
        self.policy = policy
        self.directory = directory
        self.inventory = inventory
        self.transactions = transactions
        self.registry = registry if registry is not None else RequestRegistry()
        self.bus = bus
        # An empty cache is falsy
        self.distance_cache = distance_cache if distance_cache is not None else DistanceCache()
        self.handlers = RequestCommandHandlers(time_provider, policy)
        self._locks = KeyedLocks()

    def apply_event(self, event: Event) -> None:
        if event.stream_type == "EquipmentRequest":
            self.registry.apply_event(event)

    def hold(self, request_id: str):
        """Hold a request's lock (re-entrant) across several operations"""
        return self._locks.hold(request_id)

    # ========================================================================
    # Creation & queries
    # ========================================================================

    @track_command_duration("create_request")
    def create(
        self,
        requester_school_id: str,
        event_info: EventInfo | dict[str, Any],
        items: list[RequestItem] | list[dict[str, Any]],
        actor: ActorRef | None = None,
    ) -> dict[str, Any]:
        """
        Open a pending request for a school

        Raises:
            ValidationError: no items, quantity below 1, inverted event window
            NotFound: unknown school or equipment
        """
        actor = actor or ActorRef(actor_type=ActorType.SCHOOL, actor_id=requester_school_id)
        command = parse_input(
            CreateEquipmentRequest,
            requester_school_id=requester_school_id,
            event=event_info,
            items=items,
        )

        with LogOperation(logger, "create_request", requester_school_id=requester_school_id):
            with self._locks.hold(_REFERENCE_LOCK):
                events = self.handlers.handle_create_request(
                    command,
                    generate_id(),
                    actor,
                    self.directory.schools,
                    self.inventory.catalog,
                    self.registry,
                )
                self._commit(events)

        self._publish(events)
        return self.registry.get(events[0].stream_id)

    def get(self, request_id: str) -> dict[str, Any]:
        """Request by id or REQ reference"""
        return invariants.validate_request_exists(request_id, self.registry.get(request_id))

    def history(self, request_id: str) -> list[Event]:
        """Every event of a request, oldest first"""
        request = self.get(request_id)
        return self.event_store.load_stream(request["request_id"])

    def list_for_school(
        self, school_id: str, statuses: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """Requests a school has made"""
        return self.registry.list_by_school(school_id, statuses)

    def list_for_provider(
        self,
        provider: ProviderRef,
        specialized_sport_ids: list[str] | None = None,
        statuses: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Requests a provider may respond to, nearest first

        Governing bodies see only requests with a line in their sports, and
        only those lines. Schools see every other school's requests in full.
        Each entry carries the distance_km it was ranked by.
        """
        validate_provider_exists(provider, self.directory.resolve(provider))
        statuses = statuses or self.policy.default_listing_statuses

        visible = []
        if provider.provider_type == ProviderType.GOVERNING_BODY:
            if specialized_sport_ids is None:
                specialized_sport_ids = self.directory.governing_bodies.specialized_sports(
                    provider.provider_id
                )
            for request in self.registry.list_all(statuses):
                scoped = scope_to_sports(
                    request, specialized_sport_ids, self.inventory.catalog.sport_of
                )
                if scoped is not None:
                    visible.append(scoped)
        else:
            for request in self.registry.list_all(statuses):
                scoped = scope_for_school(request, provider.provider_id)
                if scoped is not None:
                    visible.append(scoped)

        provider_location = self.directory.location_of(provider)
        candidates = [
            RankCandidate(
                candidate_id=request["request_id"],
                location=self.directory.schools.location_of(request["requester_school_id"]),
                created_at=parse_timestamp(request["created_at"]),
                item=request,
            )
            for request in visible
        ]

        def cached_distance(candidate: RankCandidate) -> float:
            return self.distance_cache.get_or_compute(
                candidate.item["requester_school_id"],
                provider.provider_id,
                lambda: distance_between(candidate.location, provider_location, self.policy),
            )

        ranked = rank(provider_location, candidates, self.policy, distance_fn=cached_distance)
        return [dict(r.item, distance_km=round(r.distance_km, 3)) for r in ranked]

    # ========================================================================
    # Decisions
    # ========================================================================

    @track_command_duration("respond")
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
        donation_id: str | None = None,
        reserve_inventory: bool = True,
    ) -> dict[str, Any]:
        """
        Record a provider's decision on a pending request

        Approvals reserve every approved line (all or nothing), materialise
        the transaction and move the request to approved or partial.
        When donation_id is given the donation is the commitment: no
        transaction is created and reservations are left to the caller.

        Args:
            request_id: Request id or REQ reference
            decision: approved, partial or rejected
            approved_items: Per-line quantities; omitted means all in full
            rejection_reason: Required for rejections
            actor: Who decided
            provider: Who hands the equipment over (defaults to the actor's own)
            terms: Transaction type, rental window, item conditions
            notes: Free text stored on the request
            donation_id: Donation fulfilling the request instead of a transaction
            reserve_inventory: Reserve approved lines through the inventory registry

        Raises:
            InvalidStateTransition: request not pending (including a lost race)
            ValidationError: bad reason, quantities, provider or rental window
            InsufficientInventory: a line exceeds the provider's available stock
            NotFound: unknown request or provider
        """
        request_id = self.get(request_id)["request_id"]
        command = parse_input(
            RespondToRequest,
            request_id=request_id,
            decision=decision,
            approved_items=approved_items,
            rejection_reason=rejection_reason,
            notes=notes,
        )
        if command.approved_items is not None:
            command = command.model_copy(
                update={
                    "approved_items": [
                        item.model_copy(
                            update={
                                "equipment_id": self.inventory.get_equipment(item.equipment_id)[
                                    "equipment_id"
                                ]
                            }
                        )
                        for item in command.approved_items
                    ]
                }
            )
        terms = parse_input(TransactionTerms, terms)

        transaction_id = None
        with self._locks.hold(request_id):
            with LogOperation(
                logger,
                "respond",
                request_id=request_id,
                decision=command.decision.value,
                actor_id=actor.actor_id,
            ):
                request = self.get(request_id)
                invariants.validate_pending(request)

                if command.decision == Decision.REJECTED:
                    events = self.handlers.handle_respond(
                        command, generate_id(), actor, self.registry
                    )
                    self._commit_decision(request_id, events, "respond")
                else:
                    events, transaction_id = self._approve(
                        request, command, actor, provider, terms, donation_id, reserve_inventory
                    )

        self._publish(events)
        if transaction_id is not None:
            self.transactions.publish_created(transaction_id)
        return self.registry.get(request_id)

    def _approve(
        self,
        request: dict[str, Any],
        command: RespondToRequest,
        actor: ActorRef,
        provider: ProviderRef | None,
        terms: TransactionTerms,
        donation_id: str | None,
        reserve_inventory: bool,
    ) -> tuple[list[Event], str | None]:
        request_id = request["request_id"]
        approvals = invariants.resolve_approvals(request, command.decision, command.approved_items)
        materialize = donation_id is None

        provider = provider or actor.as_provider()
        if provider is None and (materialize or reserve_inventory):
            raise ValidationError(
                "Approval needs the providing school or governing body", field="provider"
            )
        if provider is not None:
            validate_provider_exists(provider, self.directory.resolve(provider))
            validate_not_self_supply(provider, request["requester_school_id"])
        if materialize:
            validate_rental_window(terms.transaction_type, terms.start_date, terms.return_due_date)

        tokens: list[ReservationToken] = []
        transaction: dict[str, Any] | None = None
        try:
            if reserve_inventory:
                for equipment_id, quantity in approvals.items():
                    if quantity > 0:
                        tokens.append(
                            self.inventory.reserve(
                                provider,
                                equipment_id,
                                quantity,
                                purpose=f"request:{request_id}",
                                actor_id=actor.actor_id,
                            )
                        )
            if materialize:
                transaction = self.transactions.materialize(
                    request, approvals, provider, tokens, terms, actor
                )
            events = self.handlers.handle_respond(
                command,
                generate_id(),
                actor,
                self.registry,
                provider=provider,
                transaction_id=transaction["transaction_id"] if transaction else None,
                donation_id=donation_id,
            )
            self._commit_decision(request_id, events, "respond")
        except Exception:
            self._roll_back(request_id, tokens, transaction, actor)
            raise

        return events, transaction["transaction_id"] if transaction else None

    def _roll_back(
        self,
        request_id: str,
        tokens: list[ReservationToken],
        transaction: dict[str, Any] | None,
        actor: ActorRef,
    ) -> None:
        """Undo a half-done approval; the original failure is re-raised by the caller"""
        logger.info(
            "Rolling back approval",
            request_id=request_id,
            reservations=len(tokens),
            transaction_id=transaction["transaction_id"] if transaction else None,
        )
        try:
            if transaction is not None:
                self.transactions.cancel(
                    transaction["transaction_id"], reason="approval rolled back", actor=actor
                )
            self.inventory.release_all(tokens, reason="approval rolled back", actor_id=actor.actor_id)
        except Exception as e:
            logger.error(
                "Approval rollback incomplete",
                request_id=request_id,
                error=str(e),
                exc_info=True,
            )

    @track_command_duration("mark_delivered")
    def mark_delivered(self, request_id: str, actor: ActorRef) -> dict[str, Any]:
        """
        Equipment reached the school (approved/partial → delivered)

        No inventory effect: stock moved when the request was approved.
        """
        request_id = self.get(request_id)["request_id"]
        command = MarkDelivered(request_id=request_id)

        with self._locks.hold(request_id):
            with LogOperation(logger, "mark_delivered", request_id=request_id):
                events = self.handlers.handle_mark_delivered(
                    command, generate_id(), actor, self.registry
                )
                self._commit_decision(request_id, events, "mark delivered")

        self._publish(events)
        return self.registry.get(request_id)

    # ========================================================================
    # Persistence
    # ========================================================================

    def _commit(self, events: list[Event]) -> None:
        for event in events:
            self.event_store.append(event.stream_id, event.version - 1, [event])
            self.apply_event(event)

    def _commit_decision(self, request_id: str, events: list[Event], attempted: str) -> None:
        """Append a state change; a lost race surfaces as InvalidStateTransition"""
        try:
            self._commit(events)
        except StreamVersionConflict as e:
            self._catch_up(request_id)
            current = self.registry.get(request_id)
            raise InvalidStateTransition(
                "EquipmentRequest",
                request_id,
                current["status"],
                attempted,
                message=f"Request {request_id} was changed concurrently (now {current['status']})",
            ) from e

    def _catch_up(self, request_id: str) -> None:
        known = self.registry.version_of(request_id)
        for event in self.event_store.load_stream(request_id):
            if event.version > known:
                self.registry.apply_event(event)

    def _publish(self, events: list[Event]) -> None:
        if self.bus is not None:
            self.bus.publish_events(events)
