"""
Request Command Handlers

Transform request commands into events. Validation happens here even when
the lifecycle manager already checked, so a handler never emits an event
that breaks the request invariants.
"""

from typing import Any

from gear_share.directory.models import ActorRef, ProviderRef
from gear_share.inventory.invariants import validate_equipment_exists
from gear_share.kernel.errors import NotFound
from gear_share.kernel.events import Event, create_event
from gear_share.kernel.ids import format_reference, generate_id
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import TimeProvider
from gear_share.requests import commands, events, invariants
from gear_share.requests.models import REQUEST_PREFIX, Decision


class RequestCommandHandlers:
    """
    Command handlers for equipment requests

    Stateless handlers: receive command, validate, emit events.
    All state queries done via projections passed as parameters.
    """

    def __init__(self, time_provider: TimeProvider, policy: ExchangePolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_create_request(
        self,
        command: commands.CreateEquipmentRequest,
        command_id: str,
        actor: ActorRef,
        school_directory: Any,  # SchoolDirectory projection
        catalog: Any,  # EquipmentCatalog projection
        request_registry: Any,  # RequestRegistry projection
    ) -> list[Event]:
        """
        Open a pending request

        Validates:
        - Requesting school exists
        - Items non-empty, quantities at least 1, equipment known and distinct
        - Event window not inverted
        """
        now = self.time_provider.now()

        if school_directory.get(command.requester_school_id) is None:
            raise NotFound("School", command.requester_school_id)
        event_name = invariants.validate_event_name(command.event.event_name)
        invariants.validate_event_window(command.event.start_date, command.event.end_date)

        # Resolve EQP references to catalog ids before checking for repeats
        items = [
            item.model_copy(
                update={
                    "equipment_id": validate_equipment_exists(
                        item.equipment_id, catalog.get(item.equipment_id)
                    )["equipment_id"]
                }
            )
            for item in command.items
        ]
        invariants.validate_request_items(items)

        request_id = generate_id()
        payload = events.EquipmentRequestCreated(
            request_id=request_id,
            reference=format_reference(REQUEST_PREFIX, request_registry.count() + 1),
            requester_school_id=command.requester_school_id,
            event_name=event_name,
            event_start=command.event.start_date,
            event_end=command.event.end_date,
            description=command.event.description,
            items=[item.model_dump(mode="json") for item in items],
            created_by=actor,
            created_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="EquipmentRequestCreated",
                stream_id=request_id,
                stream_type="EquipmentRequest",
                occurred_at=now,
                actor_id=actor.actor_id,
                command_id=command_id,
                payload=payload,
                version=1,
            )
        ]

    def handle_respond(
        self,
        command: commands.RespondToRequest,
        command_id: str,
        actor: ActorRef,
        request_registry: Any,
        provider: ProviderRef | None = None,
        transaction_id: str | None = None,
        donation_id: str | None = None,
    ) -> list[Event]:
        """
        Record a provider's decision on a pending request

        Emits EquipmentRequestRejected, or EquipmentRequestApproved with the
        status derived from the approved quantities.
        """
        now = self.time_provider.now()
        request = invariants.validate_request_exists(
            command.request_id, request_registry.get(command.request_id)
        )
        invariants.validate_pending(request)

        if command.decision == Decision.REJECTED:
            event_type = "EquipmentRequestRejected"
            payload = events.EquipmentRequestRejected(
                request_id=request["request_id"],
                rejection_reason=invariants.validate_rejection_reason(command.rejection_reason),
                notes=command.notes,
                processed_by=actor,
                processed_at=now,
            ).model_dump(mode="json")
        else:
            approvals = invariants.resolve_approvals(
                request, command.decision, command.approved_items
            )
            notes_by_item = {
                item.equipment_id: item.notes
                for item in command.approved_items or []
                if item.notes
            }
            event_type = "EquipmentRequestApproved"
            payload = events.EquipmentRequestApproved(
                request_id=request["request_id"],
                status=invariants.approval_status(request, approvals).value,
                items=[
                    {
                        **item,
                        "quantity_approved": approvals[item["equipment_id"]],
                        "notes": notes_by_item.get(item["equipment_id"], item.get("notes")),
                    }
                    for item in request["items"]
                ],
                provider=provider,
                transaction_id=transaction_id,
                donation_id=donation_id,
                notes=command.notes,
                processed_by=actor,
                processed_at=now,
            ).model_dump(mode="json")

        return [self._next_event(request, event_type, payload, now, actor, command_id)]

    def handle_mark_delivered(
        self,
        command: commands.MarkDelivered,
        command_id: str,
        actor: ActorRef,
        request_registry: Any,
    ) -> list[Event]:
        """Close an approved or partial request as delivered"""
        now = self.time_provider.now()
        request = invariants.validate_request_exists(
            command.request_id, request_registry.get(command.request_id)
        )
        invariants.validate_deliverable(request)

        payload = events.EquipmentRequestDelivered(
            request_id=request["request_id"],
            delivered_by=actor,
            delivered_at=now,
        ).model_dump(mode="json")

        return [
            self._next_event(request, "EquipmentRequestDelivered", payload, now, actor, command_id)
        ]

    def _next_event(
        self,
        request: dict[str, Any],
        event_type: str,
        payload: dict[str, Any],
        now: Any,
        actor: ActorRef,
        command_id: str,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            event_type=event_type,
            stream_id=request["request_id"],
            stream_type="EquipmentRequest",
            occurred_at=now,
            actor_id=actor.actor_id,
            command_id=command_id,
            payload=payload,
            version=request["version"] + 1,
        )
