"""
Transaction Command Handlers

Transform transaction commands into events after validation.
"""

from typing import Any

from gear_share.directory.invariants import validate_not_self_supply
from gear_share.directory.models import ActorRef
from gear_share.kernel.events import Event, create_event
from gear_share.kernel.ids import format_reference, generate_id
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import TimeProvider
from gear_share.transactions import commands, events, invariants
from gear_share.transactions.models import TRANSACTION_PREFIXES, TransactionStatus


class TransactionCommandHandlers:
    """
    Command handlers for equipment transactions

    Stateless handlers: receive command, validate, emit events.
    All state queries done via projections passed as parameters.
    """

    def __init__(self, time_provider: TimeProvider, policy: ExchangePolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_create_transaction(
        self,
        command: commands.CreateTransaction,
        command_id: str,
        actor: ActorRef,
        transaction_registry: Any,  # TransactionRegistry projection
    ) -> list[Event]:
        """
        Create a transaction in approved status

        Validates:
        - Provider and recipient differ
        - At least one item, no repeated equipment
        - Rental details present exactly for rentals, with a non-empty window
        """
        now = self.time_provider.now()

        validate_not_self_supply(command.provider, command.recipient_school_id)
        invariants.validate_items(command.items)
        invariants.validate_rental_details_match_type(
            command.transaction_type, command.rental_details
        )
        if command.rental_details is not None:
            invariants.validate_rental_window(
                command.transaction_type,
                command.rental_details.start_date,
                command.rental_details.return_due_date,
            )

        prefix = TRANSACTION_PREFIXES[
            (command.provider.provider_type, command.transaction_type)
        ]
        transaction_id = generate_id()

        payload = events.TransactionApproved(
            transaction_id=transaction_id,
            reference=format_reference(prefix, transaction_registry.count_with_prefix(prefix) + 1),
            provider=command.provider,
            recipient_school_id=command.recipient_school_id,
            transaction_type=command.transaction_type.value,
            items=[item.model_dump(mode="json") for item in command.items],
            rental_details=(
                command.rental_details.model_dump(mode="json")
                if command.rental_details
                else None
            ),
            originating_request_id=command.originating_request_id,
            reservation_ids=command.reservation_ids,
            terms=command.terms,
            notes=command.notes,
            approved_by=actor,
            approved_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="TransactionApproved",
                stream_id=transaction_id,
                stream_type="Transaction",
                occurred_at=now,
                actor_id=actor.actor_id,
                command_id=command_id,
                payload=payload,
                version=1,
            )
        ]

    def handle_confirm_return(
        self,
        command: commands.ConfirmReturn,
        command_id: str,
        actor: ActorRef,
        transaction_registry: Any,
    ) -> list[Event]:
        """Close an approved rental (approved → returned)"""
        now = self.time_provider.now()
        transaction = invariants.validate_transaction_exists(
            command.transaction_id, transaction_registry.get(command.transaction_id)
        )
        invariants.validate_returnable(transaction)
        invariants.validate_returned_date(transaction, command.returned_date)

        payload = events.TransactionReturned(
            transaction_id=transaction["transaction_id"],
            returned_date=command.returned_date,
            confirmed_by=actor,
            confirmed_at=now,
        ).model_dump(mode="json")

        return [self._next_event(transaction, "TransactionReturned", payload, now, actor, command_id)]

    def handle_cancel_transaction(
        self,
        command: commands.CancelTransaction,
        command_id: str,
        actor: ActorRef,
        transaction_registry: Any,
    ) -> list[Event]:
        """Call off a pending or approved transaction"""
        now = self.time_provider.now()
        transaction = invariants.validate_transaction_exists(
            command.transaction_id, transaction_registry.get(command.transaction_id)
        )
        invariants.validate_status(
            transaction, {TransactionStatus.PENDING, TransactionStatus.APPROVED}, "cancel"
        )

        payload = events.TransactionCancelled(
            transaction_id=transaction["transaction_id"],
            reason=command.reason,
            cancelled_by=actor,
            cancelled_at=now,
        ).model_dump(mode="json")

        return [self._next_event(transaction, "TransactionCancelled", payload, now, actor, command_id)]

    def handle_complete_transaction(
        self,
        command: commands.CompleteTransaction,
        command_id: str,
        actor: ActorRef,
        transaction_registry: Any,
    ) -> list[Event]:
        """Mark a permanent transfer as handed over (approved → completed)"""
        now = self.time_provider.now()
        transaction = invariants.validate_transaction_exists(
            command.transaction_id, transaction_registry.get(command.transaction_id)
        )
        invariants.validate_completable(transaction)

        payload = events.TransactionCompleted(
            transaction_id=transaction["transaction_id"],
            completed_by=actor,
            completed_at=now,
        ).model_dump(mode="json")

        return [self._next_event(transaction, "TransactionCompleted", payload, now, actor, command_id)]

    def _next_event(
        self,
        transaction: dict[str, Any],
        event_type: str,
        payload: dict[str, Any],
        now: Any,
        actor: ActorRef,
        command_id: str,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            event_type=event_type,
            stream_id=transaction["transaction_id"],
            stream_type="Transaction",
            occurred_at=now,
            actor_id=actor.actor_id,
            command_id=command_id,
            payload=payload,
            version=transaction["version"] + 1,
        )
