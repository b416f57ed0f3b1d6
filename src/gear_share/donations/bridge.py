"""
Donation Bridge

A donor can fulfil a pending request instead of a lending provider. The
donation is recorded first, then the request is approved through the
lifecycle manager with the donation as its commitment, so no transaction
is created. A failed approval voids the donation and hands back any stock
the donor had reserved.
"""

from typing import Any

from gear_share.directory.models import SYSTEM_ACTOR, ActorRef
from gear_share.donations.commands import CreateDonation
from gear_share.donations.gateway import DonationGateway
from gear_share.donations.models import DonatedItem, DonationType, DonorRef, MonetaryDetails
from gear_share.inventory.models import ReservationToken
from gear_share.inventory.registry import InventoryRegistry
from gear_share.kernel.errors import ValidationError
from gear_share.kernel.logging import LogOperation, get_logger
from gear_share.kernel.metrics import track_command_duration
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.validation import parse_input
from gear_share.requests import invariants as request_invariants
from gear_share.requests.lifecycle import RequestLifecycleManager
from gear_share.requests.models import ApprovedItem, Decision

logger = get_logger(__name__)


class DonationBridge:
    """
    Fulfils requests through donations

    Example:
        >>> bridge.donate(request_id, DonorRef(donor_type="individual", donor_id="d-1"),
        ...               "MONETARY", monetary={"amount": "25000"})
    """

    def __init__(
        self,
        lifecycle: RequestLifecycleManager,
        inventory: InventoryRegistry,
        gateway: DonationGateway,
        policy: ExchangePolicy,
    ) -> None:
        self.lifecycle = lifecycle
        self.inventory = inventory
        self.gateway = gateway
        self.policy = policy

    @track_command_duration("donate")
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
        Record a donation and approve the request it fulfils

        Equipment donations approve exactly the donated quantities; monetary
        donations approve every line in full.

        Returns:
            {"donation": donation entry, "request": updated request entry}

        Raises:
            InvalidStateTransition: request not pending
            ValidationError: malformed donation, or donated lines outside the request
            InsufficientInventory: a provider donor lacks the tracked stock
            NotFound: unknown request or equipment
        """
        donor = parse_input(DonorRef, donor)
        try:
            donation_type = DonationType(donation_type)
        except ValueError as e:
            raise ValidationError(
                f"Unknown donation type: {donation_type}", field="donation_type"
            ) from e
        donated = [parse_input(DonatedItem, item) for item in items or []]
        monetary = parse_input(MonetaryDetails, monetary) if monetary is not None else None
        actor = actor or donor.as_actor() or SYSTEM_ACTOR
        provider = donor.as_provider()

        with self.lifecycle.hold(self.lifecycle.get(request_id)["request_id"]):
            request = self.lifecycle.get(request_id)
            request_id = request["request_id"]
            with LogOperation(
                logger,
                "donate",
                request_id=request_id,
                donation_type=donation_type.value,
                donor_id=donor.donor_id,
            ):
                request_invariants.validate_pending(request)

                donated = [
                    item.model_copy(
                        update={
                            "equipment_id": self.inventory.get_equipment(item.equipment_id)[
                                "equipment_id"
                            ]
                        }
                    )
                    for item in donated
                ]
                approved_items = None
                if donation_type == DonationType.EQUIPMENT:
                    approved_items = [
                        ApprovedItem(equipment_id=item.equipment_id, quantity_approved=item.quantity)
                        for item in donated
                    ]
                approvals = request_invariants.resolve_approvals(
                    request, Decision.APPROVED, approved_items
                )

                tokens: list[ReservationToken] = []
                donation: dict[str, Any] | None = None
                try:
                    if (
                        self.policy.donation_reserves_inventory
                        and provider is not None
                        and donation_type == DonationType.EQUIPMENT
                    ):
                        for equipment_id, quantity in approvals.items():
                            if quantity > 0 and self.inventory.is_tracked(provider, equipment_id):
                                tokens.append(
                                    self.inventory.reserve(
                                        provider,
                                        equipment_id,
                                        quantity,
                                        purpose=f"donation:{request_id}",
                                        actor_id=actor.actor_id,
                                    )
                                )

                    donation = self.gateway.create_donation(
                        CreateDonation(
                            donor=donor,
                            recipient_school_id=request["requester_school_id"],
                            donation_type=donation_type,
                            items=donated,
                            monetary_details=monetary,
                            purpose=purpose or request["event_name"],
                            request_id=request_id,
                            anonymous=anonymous,
                            reservation_ids=[t.reservation_id for t in tokens],
                        ),
                        actor,
                    )

                    updated = self.lifecycle.respond(
                        request_id,
                        Decision.APPROVED,
                        approved_items,
                        actor=actor,
                        provider=provider,
                        notes=f"Donation initiated with ID: {donation['reference']}",
                        donation_id=donation["donation_id"],
                        reserve_inventory=False,
                    )
                except Exception:
                    self._roll_back(request_id, tokens, donation, actor)
                    raise

        return {"donation": donation, "request": updated}

    def _roll_back(
        self,
        request_id: str,
        tokens: list[ReservationToken],
        donation: dict[str, Any] | None,
        actor: ActorRef,
    ) -> None:
        try:
            if donation is not None:
                self.gateway.cancel_donation(
                    donation["donation_id"], reason="request approval failed", actor=actor
                )
            self.inventory.release_all(tokens, reason="donation rolled back", actor_id=actor.actor_id)
        except Exception as e:
            logger.error(
                "Donation rollback incomplete",
                request_id=request_id,
                error=str(e),
                exc_info=True,
            )
