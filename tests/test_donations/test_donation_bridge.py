"""
Tests for the Donation Bridge

A donation approves the request it fulfils without creating a transaction.
If the approval fails the donation is voided and any stock it held returns.
"""

import pytest

from gear_share.kernel.errors import (
    InsufficientInventory,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)

WELL_WISHER = {"donor_type": "individual", "donor_id": "donor-7", "display_name": "Old Royalist"}


def test_monetary_donation_approves_every_line(world, cricket_request):
    result = world.gs.donate(
        cricket_request["request_id"],
        WELL_WISHER,
        "MONETARY",
        monetary={"amount": "25000", "payment_method": "BANK_TRANSFER"},
    )
    donation, request = result["donation"], result["request"]

    assert donation["reference"] == "DON-M000001"
    assert donation["status"] == "pending"
    assert donation["monetary_details"]["currency"] == "LKR"
    assert donation["request_id"] == cricket_request["request_id"]
    assert donation["purpose"] == "Inter-school cricket meet"

    assert request["status"] == "approved"
    assert [i["quantity_approved"] for i in request["items"]] == [10, 15]
    assert request["donation_id"] == donation["donation_id"]
    assert request["notes"] == "Donation initiated with ID: DON-M000001"
    # A donation is the commitment; no transaction is created
    assert request["transaction_ids"] == []
    assert world.gs.list_transactions() == []


def test_equipment_donation_from_provider_reserves_tracked_stock(world, cricket_request):
    donor = {"donor_type": "school", "donor_id": world.trinity["school_id"]}

    result = world.gs.donate(
        cricket_request["request_id"],
        donor,
        "EQUIPMENT",
        items=[{"equipment_id": world.bat, "quantity": 10, "condition": "excellent"}],
    )
    donation, request = result["donation"], result["request"]

    assert donation["reference"] == "DON-E000001"
    assert len(donation["reservation_ids"]) == 1
    assert world.gs.get_available(world.trinity_ref, world.bat) == 10

    assert request["status"] == "partial"
    assert [i["quantity_approved"] for i in request["items"]] == [10, 0]
    assert request["provider"]["provider_id"] == world.trinity["school_id"]
    assert request["processed_by"]["actor_type"] == "school"


def test_equipment_donation_from_individual_touches_no_stock(world, cricket_request):
    result = world.gs.donate(
        cricket_request["request_id"],
        WELL_WISHER,
        "EQUIPMENT",
        items=[
            {"equipment_id": world.bat, "quantity": 10},
            {"equipment_id": "EQP000002", "quantity": 15},
        ],
    )

    assert result["request"]["status"] == "approved"
    assert result["donation"]["reservation_ids"] == []
    assert result["donation"]["items"][1]["equipment_id"] == world.ball
    assert world.gs.get_available(world.trinity_ref, world.bat) == 20


def test_donation_needs_a_pending_request(world, cricket_request):
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)

    with pytest.raises(InvalidStateTransition):
        world.gs.donate(cricket_request["request_id"], WELL_WISHER, "MONETARY", monetary={"amount": "100"})

    assert world.gs.list_donations_for_request(cricket_request["request_id"]) == []


def test_failed_approval_voids_the_donation(world, cricket_request, monkeypatch):
    donor = {"donor_type": "school", "donor_id": world.trinity["school_id"]}

    def lost_race(*args, **kwargs):
        raise InvalidStateTransition(
            "EquipmentRequest", cricket_request["request_id"], "approved", "respond"
        )

    monkeypatch.setattr(world.gs.lifecycle, "respond", lost_race)

    with pytest.raises(InvalidStateTransition):
        world.gs.donate(
            cricket_request["request_id"],
            donor,
            "EQUIPMENT",
            items=[{"equipment_id": world.ball, "quantity": 15}],
        )

    [donation] = world.gs.list_donations_for_request(cricket_request["request_id"])
    assert donation["status"] == "cancelled"
    assert donation["cancellation_reason"] == "request approval failed"
    assert world.gs.get_available(world.trinity_ref, world.ball) == 30
    for reservation_id in donation["reservation_ids"]:
        assert world.gs.inventory.ledger.reservation(reservation_id)["status"] == "released"


def test_requester_cannot_donate_to_itself(world, cricket_request):
    donor = {"donor_type": "school", "donor_id": world.royal["school_id"]}

    with pytest.raises(ValidationError):
        world.gs.donate(cricket_request["request_id"], donor, "MONETARY", monetary={"amount": "500"})

    [donation] = world.gs.list_donations_for_request(cricket_request["request_id"])
    assert donation["status"] == "cancelled"
    assert world.gs.get_request(cricket_request["request_id"])["status"] == "pending"


def test_provider_donor_short_of_stock(world, cricket_request):
    donor = {"donor_type": "governing_body", "donor_id": world.slc["governing_body_id"]}
    world.gs.reserve(world.slc_ref, world.bat, 45)

    with pytest.raises(InsufficientInventory):
        world.gs.donate(
            cricket_request["request_id"],
            donor,
            "EQUIPMENT",
            items=[{"equipment_id": world.bat, "quantity": 10}],
        )

    assert world.gs.list_donations_for_request(cricket_request["request_id"]) == []
    assert world.gs.get_available(world.slc_ref, world.bat) == 5


def test_unknown_donation_type_is_invalid(world, cricket_request):
    with pytest.raises(ValidationError) as exc_info:
        world.gs.donate(cricket_request["request_id"], WELL_WISHER, "PLEDGE")
    assert exc_info.value.field == "donation_type"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"donation_type": "MONETARY"},
        {"donation_type": "MONETARY", "monetary": {"amount": "0"}},
        {"donation_type": "EQUIPMENT"},
    ],
    ids=["monetary-without-amount", "zero-amount", "equipment-without-items"],
)
def test_malformed_donations_are_invalid(world, cricket_request, kwargs):
    with pytest.raises(ValidationError):
        world.gs.donate(cricket_request["request_id"], WELL_WISHER, **kwargs)

    assert world.gs.get_request(cricket_request["request_id"])["status"] == "pending"


def test_donated_equipment_must_be_in_the_request(world, cricket_request):
    with pytest.raises(ValidationError):
        world.gs.donate(
            cricket_request["request_id"],
            WELL_WISHER,
            "EQUIPMENT",
            items=[{"equipment_id": world.football, "quantity": 2}],
        )
    assert world.gs.list_donations_for_request(cricket_request["request_id"]) == []


def test_unknown_donated_equipment_is_not_found(world, cricket_request):
    with pytest.raises(NotFound):
        world.gs.donate(
            cricket_request["request_id"],
            WELL_WISHER,
            "EQUIPMENT",
            items=[{"equipment_id": "EQP000999", "quantity": 2}],
        )


def test_donation_lookup_by_reference(world, cricket_request):
    world.gs.donate(cricket_request["request_id"], WELL_WISHER, "MONETARY", monetary={"amount": "750.50"})

    donation = world.gs.get_donation("DON-M000001")
    assert donation["donor"]["display_name"] == "Old Royalist"
    assert donation["monetary_details"]["amount"] == "750.50"
