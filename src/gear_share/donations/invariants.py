"""
Donation Invariants
"""

from typing import Any

from gear_share.donations.models import DonatedItem, DonationStatus, DonationType, MonetaryDetails
from gear_share.kernel.errors import InvalidStateTransition, NotFound, ValidationError


def validate_donation_shape(
    donation_type: DonationType,
    items: list[DonatedItem],
    monetary_details: MonetaryDetails | None,
) -> None:
    """Equipment donations list items; monetary donations carry an amount"""
    if donation_type == DonationType.EQUIPMENT:
        if not items:
            raise ValidationError("Equipment donation needs at least one item", field="items")
        if monetary_details is not None:
            raise ValidationError(
                "Equipment donation cannot carry monetary details", field="monetary_details"
            )
        equipment_ids = [item.equipment_id for item in items]
        if len(set(equipment_ids)) != len(equipment_ids):
            raise ValidationError("Donated items must not repeat equipment", field="items")
    else:
        if monetary_details is None:
            raise ValidationError(
                "Monetary donation needs an amount", field="monetary_details"
            )
        if items:
            raise ValidationError("Monetary donation cannot list items", field="items")


def validate_donation_exists(donation_id: str, donation: dict[str, Any] | None) -> dict[str, Any]:
    if donation is None:
        raise NotFound("Donation", donation_id)
    return donation


def validate_cancellable(donation: dict[str, Any]) -> None:
    if donation["status"] != DonationStatus.PENDING:
        raise InvalidStateTransition(
            "Donation", donation["donation_id"], donation["status"], "cancel"
        )
