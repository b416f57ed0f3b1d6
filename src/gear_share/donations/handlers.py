"""
Donation Command Handlers
"""

from typing import Any

from gear_share.directory.models import ActorRef
from gear_share.donations import commands, events, invariants
from gear_share.donations.models import DONATION_PREFIXES
from gear_share.kernel.events import Event, create_event
from gear_share.kernel.ids import format_reference, generate_id
from gear_share.kernel.time import TimeProvider


class DonationCommandHandlers:
    """Stateless handlers for the donation stream"""

    def __init__(self, time_provider: TimeProvider):
        self.time_provider = time_provider

    def handle_create_donation(
        self,
        command: commands.CreateDonation,
        command_id: str,
        actor: ActorRef,
        donation_registry: Any,  # DonationRegistry projection
    ) -> list[Event]:
        """
        Record a pending donation

        Validates:
        - Equipment donations list distinct items and no money
        - Monetary donations carry an amount and no items
        """
        now = self.time_provider.now()
        invariants.validate_donation_shape(
            command.donation_type, command.items, command.monetary_details
        )

        prefix = DONATION_PREFIXES[command.donation_type]
        donation_id = generate_id()

        payload = events.DonationCreated(
            donation_id=donation_id,
            reference=format_reference(prefix, donation_registry.count_with_prefix(prefix) + 1),
            donor=command.donor,
            recipient_school_id=command.recipient_school_id,
            donation_type=command.donation_type.value,
            items=[item.model_dump(mode="json") for item in command.items],
            monetary_details=(
                command.monetary_details.model_dump(mode="json")
                if command.monetary_details
                else None
            ),
            purpose=command.purpose,
            request_id=command.request_id,
            anonymous=command.anonymous,
            reservation_ids=command.reservation_ids,
            created_by=actor,
            created_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="DonationCreated",
                stream_id=donation_id,
                stream_type="Donation",
                occurred_at=now,
                actor_id=actor.actor_id,
                command_id=command_id,
                payload=payload,
                version=1,
            )
        ]

    def handle_cancel_donation(
        self,
        command: commands.CancelDonation,
        command_id: str,
        actor: ActorRef,
        donation_registry: Any,
    ) -> list[Event]:
        now = self.time_provider.now()
        donation = invariants.validate_donation_exists(
            command.donation_id, donation_registry.get(command.donation_id)
        )
        invariants.validate_cancellable(donation)

        payload = events.DonationCancelled(
            donation_id=donation["donation_id"],
            reason=command.reason,
            cancelled_by=actor,
            cancelled_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="DonationCancelled",
                stream_id=donation["donation_id"],
                stream_type="Donation",
                occurred_at=now,
                actor_id=actor.actor_id,
                command_id=command_id,
                payload=payload,
                version=donation["version"] + 1,
            )
        ]
