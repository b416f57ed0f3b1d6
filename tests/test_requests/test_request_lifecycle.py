"""
Tests for the Request Lifecycle Manager

Creation, decisions (approved / partial / rejected), delivery and the
provider-facing listing. Every failed decision leaves the request pending.
"""

from datetime import datetime, timezone

import pytest

from gear_share.directory.models import ActorRef, ActorType, ProviderRef
from gear_share.kernel.errors import (
    InsufficientInventory,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)

RENTAL_TERMS = {
    "transaction_type": "rental",
    "start_date": datetime(2025, 1, 1, tzinfo=timezone.utc),
    "return_due_date": datetime(2025, 1, 8, tzinfo=timezone.utc),
}


def assert_quantity_invariant(request):
    for item in request["items"]:
        if item["quantity_approved"] is not None:
            assert 0 <= item["quantity_approved"] <= item["quantity_requested"]


# =============================================================================
# Creation
# =============================================================================


def test_create_request(world, cricket_request):
    assert cricket_request["reference"] == "REQ000001"
    assert cricket_request["status"] == "pending"
    assert cricket_request["requester_school_id"] == world.royal["school_id"]
    assert cricket_request["event_name"] == "Inter-school cricket meet"
    assert [i["equipment_id"] for i in cricket_request["items"]] == [world.bat, world.ball]
    assert all(i["quantity_approved"] is None for i in cricket_request["items"])
    assert cricket_request["transaction_ids"] == []
    assert cricket_request["created_by"]["actor_type"] == "school"


def test_create_request_resolves_equipment_references(world):
    request = world.gs.create_request(
        world.royal["school_id"],
        {"event_name": "Sports meet"},
        [{"equipment_id": "EQP000003", "quantity_requested": 2}],
    )
    assert request["items"][0]["equipment_id"] == world.football
    assert world.gs.get_request(request["reference"])["request_id"] == request["request_id"]


@pytest.mark.parametrize(
    "items",
    [
        [],
        [{"equipment_id": "EQP000001", "quantity_requested": 0}],
        [
            {"equipment_id": "EQP000001", "quantity_requested": 2},
            {"equipment_id": "EQP000001", "quantity_requested": 3},
        ],
    ],
    ids=["no-items", "zero-quantity", "repeated-equipment"],
)
def test_create_request_rejects_bad_items(world, items):
    with pytest.raises(ValidationError):
        world.gs.create_request(world.royal["school_id"], {"event_name": "Meet"}, items)
    assert world.gs.request_registry.count() == 0


def test_create_request_rejects_inverted_event_window(world):
    with pytest.raises(ValidationError):
        world.gs.create_request(
            world.royal["school_id"],
            {
                "event_name": "Meet",
                "start_date": datetime(2025, 2, 10, tzinfo=timezone.utc),
                "end_date": datetime(2025, 2, 9, tzinfo=timezone.utc),
            },
            [{"equipment_id": world.bat, "quantity_requested": 1}],
        )


def test_create_request_rejects_blank_event_name(world):
    with pytest.raises(ValidationError):
        world.gs.create_request(
            world.royal["school_id"],
            {"event_name": "  "},
            [{"equipment_id": world.bat, "quantity_requested": 1}],
        )


def test_create_request_unknown_school_or_equipment(world):
    with pytest.raises(NotFound):
        world.gs.create_request(
            "no-such-school", {"event_name": "Meet"}, [{"equipment_id": world.bat, "quantity_requested": 1}]
        )
    with pytest.raises(NotFound):
        world.gs.create_request(
            world.royal["school_id"],
            {"event_name": "Meet"},
            [{"equipment_id": "EQP000099", "quantity_requested": 1}],
        )


def test_get_unknown_request_is_not_found(world):
    with pytest.raises(NotFound):
        world.gs.get_request("REQ000404")


# =============================================================================
# Decisions
# =============================================================================


def test_full_approval_creates_transaction_and_reserves(world, cricket_request):
    """Ten bats and fifteen balls, handed over for good"""
    request = world.gs.respond(
        cricket_request["request_id"],
        "approved",
        [
            {"equipment_id": world.bat, "quantity_approved": 10},
            {"equipment_id": world.ball, "quantity_approved": 15},
        ],
        actor=world.trinity_actor,
        terms={"transaction_type": "permanent"},
    )

    assert request["status"] == "approved"
    assert [i["quantity_approved"] for i in request["items"]] == [10, 15]
    assert request["provider"] == {"provider_type": "school", "provider_id": world.trinity["school_id"]}
    assert request["processed_by"]["actor_id"] == world.trinity["school_id"]
    assert request["processed_by"]["actor_type"] == "school"
    assert request["processed_at"] is not None
    assert_quantity_invariant(request)

    [transaction] = world.gs.transactions_for_request(request["request_id"])
    assert transaction["reference"] == "TRF000001"
    assert transaction["status"] == "approved"
    assert transaction["transaction_type"] == "permanent"
    assert transaction["rental_details"] is None
    assert transaction["recipient_school_id"] == world.royal["school_id"]
    assert transaction["originating_request_id"] == request["request_id"]
    assert {(i["equipment_id"], i["quantity"]) for i in transaction["items"]} == {
        (world.bat, 10),
        (world.ball, 15),
    }
    assert all(i["condition"] == "good" for i in transaction["items"])
    assert len(transaction["reservation_ids"]) == 2

    assert world.gs.get_available(world.trinity_ref, world.bat) == 10
    assert world.gs.get_available(world.trinity_ref, world.ball) == 15


def test_partial_approval_excludes_zero_lines(world, cricket_request):
    request = world.gs.respond(
        cricket_request["request_id"],
        "partial",
        [
            {"equipment_id": world.bat, "quantity_approved": 4},
            {"equipment_id": world.ball, "quantity_approved": 0},
        ],
        actor=world.trinity_actor,
    )

    assert request["status"] == "partial"
    assert [i["quantity_approved"] for i in request["items"]] == [4, 0]

    [transaction] = world.gs.transactions_for_request(request["request_id"])
    assert [(i["equipment_id"], i["quantity"]) for i in transaction["items"]] == [(world.bat, 4)]
    assert len(transaction["reservation_ids"]) == 1

    assert world.gs.get_available(world.trinity_ref, world.bat) == 16
    assert world.gs.get_available(world.trinity_ref, world.ball) == 30


def test_approval_status_follows_quantities_not_decision_label(world, cricket_request):
    """An 'approved' answer that leaves a line short is recorded as partial"""
    request = world.gs.respond(
        cricket_request["request_id"],
        "approved",
        [{"equipment_id": world.bat, "quantity_approved": 10}],
        actor=world.trinity_actor,
    )
    assert request["status"] == "partial"
    assert [i["quantity_approved"] for i in request["items"]] == [10, 0]


def test_rejection_without_reason_keeps_request_pending(world, cricket_request):
    with pytest.raises(ValidationError):
        world.gs.respond(cricket_request["request_id"], "rejected", actor=world.trinity_actor)
    with pytest.raises(ValidationError):
        world.gs.respond(
            cricket_request["request_id"], "rejected", rejection_reason="   ", actor=world.trinity_actor
        )

    request = world.gs.get_request(cricket_request["request_id"])
    assert request["status"] == "pending"
    assert request["version"] == 1


def test_rejection_with_reason(world, cricket_request):
    request = world.gs.respond(
        cricket_request["request_id"],
        "rejected",
        rejection_reason="All bats are out for the Big Match",
        actor=world.trinity_actor,
    )

    assert request["status"] == "rejected"
    assert request["rejection_reason"] == "All bats are out for the Big Match"
    assert request["transaction_ids"] == []
    assert world.gs.get_available(world.trinity_ref, world.bat) == 20


def test_approve_without_items_approves_everything(world):
    request = world.gs.create_request(
        world.mahinda["school_id"],
        {"event_name": "Practice"},
        [{"equipment_id": world.bat, "quantity_requested": 12}],
    )
    approved = world.gs.respond(request["request_id"], "approved", actor=world.slc_actor)

    assert approved["status"] == "approved"
    assert approved["items"][0]["quantity_approved"] == 12

    [transaction] = world.gs.transactions_for_request(request["request_id"])
    assert transaction["reference"] == "GTF000001"
    assert transaction["provider"]["provider_type"] == "governing_body"
    assert world.gs.get_available(world.slc_ref, world.bat) == 38


def test_partial_without_items_is_invalid(world, cricket_request):
    with pytest.raises(ValidationError):
        world.gs.respond(cricket_request["request_id"], "partial", actor=world.trinity_actor)


@pytest.mark.parametrize(
    "approved_items",
    [
        [{"equipment_id": "bat", "quantity_approved": 11}],
        [{"equipment_id": "bat", "quantity_approved": -1}],
        [{"equipment_id": "bat", "quantity_approved": 0}, {"equipment_id": "ball", "quantity_approved": 0}],
        [{"equipment_id": "football", "quantity_approved": 1}],
        [{"equipment_id": "bat", "quantity_approved": 1}, {"equipment_id": "bat", "quantity_approved": 2}],
    ],
    ids=["above-requested", "negative", "nothing-approved", "not-in-request", "repeated-line"],
)
def test_out_of_range_approvals_are_rejected(world, cricket_request, approved_items):
    ids = {"bat": world.bat, "ball": world.ball, "football": world.football}
    items = [dict(item, equipment_id=ids[item["equipment_id"]]) for item in approved_items]

    with pytest.raises(ValidationError):
        world.gs.respond(cricket_request["request_id"], "partial", items, actor=world.trinity_actor)

    request = world.gs.get_request(cricket_request["request_id"])
    assert request["status"] == "pending"
    assert world.gs.get_available(world.trinity_ref, world.bat) == 20


def test_approvals_accept_catalog_references(world, cricket_request):
    request = world.gs.respond(
        cricket_request["request_id"],
        "partial",
        [
            {"equipment_id": "EQP000001", "quantity_approved": 2},
            {"equipment_id": "EQP000002", "quantity_approved": 0},
        ],
        actor=world.trinity_actor,
    )

    assert request["status"] == "partial"
    assert [i["quantity_approved"] for i in request["items"]] == [2, 0]
    assert world.gs.get_available(world.trinity_ref, world.bat) == 18


def test_approval_of_unknown_reference_is_not_found(world, cricket_request):
    with pytest.raises(NotFound):
        world.gs.respond(
            cricket_request["request_id"],
            "partial",
            [{"equipment_id": "EQP000999", "quantity_approved": 1}],
            actor=world.trinity_actor,
        )
    assert world.gs.get_request(cricket_request["request_id"])["status"] == "pending"


def test_second_response_is_invalid_state_transition(world, cricket_request):
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)

    with pytest.raises(InvalidStateTransition) as exc_info:
        world.gs.respond(cricket_request["request_id"], "approved", actor=world.slc_actor)
    assert exc_info.value.current_status == "approved"

    with pytest.raises(InvalidStateTransition):
        world.gs.respond(
            cricket_request["request_id"], "rejected", rejection_reason="late", actor=world.slc_actor
        )
    assert world.gs.get_available(world.slc_ref, world.bat) == 50


def test_partial_request_is_closed_for_further_responses(world, cricket_request):
    world.gs.respond(
        cricket_request["request_id"],
        "partial",
        [{"equipment_id": world.bat, "quantity_approved": 5}],
        actor=world.trinity_actor,
    )
    with pytest.raises(InvalidStateTransition):
        world.gs.respond(
            cricket_request["request_id"],
            "partial",
            [{"equipment_id": world.ball, "quantity_approved": 15}],
            actor=world.slc_actor,
        )


def test_insufficient_inventory_on_third_item_releases_the_first_two(world):
    """Rollback atomicity: nothing reserved survives a failed approval"""
    request = world.gs.create_request(
        world.royal["school_id"],
        {"event_name": "Sports day"},
        [
            {"equipment_id": world.bat, "quantity_requested": 10},
            {"equipment_id": world.ball, "quantity_requested": 15},
            {"equipment_id": world.football, "quantity_requested": 12},
        ],
    )

    with pytest.raises(InsufficientInventory) as exc_info:
        world.gs.respond(request["request_id"], "approved", actor=world.trinity_actor)

    assert exc_info.value.equipment_id == world.football
    assert exc_info.value.shortfall == 2
    assert world.gs.get_available(world.trinity_ref, world.bat) == 20
    assert world.gs.get_available(world.trinity_ref, world.ball) == 30
    assert world.gs.get_available(world.trinity_ref, world.football) == 10
    assert world.gs.inventory.ledger.open_reservations() == []

    unchanged = world.gs.get_request(request["request_id"])
    assert unchanged["status"] == "pending"
    assert unchanged["version"] == 1
    assert unchanged["transaction_ids"] == []
    assert world.gs.list_transactions() == []

    # Any provider may retry with smaller quantities
    retried = world.gs.respond(
        request["request_id"],
        "partial",
        [
            {"equipment_id": world.bat, "quantity_approved": 10},
            {"equipment_id": world.ball, "quantity_approved": 15},
            {"equipment_id": world.football, "quantity_approved": 10},
        ],
        actor=world.trinity_actor,
    )
    assert retried["status"] == "partial"
    assert world.gs.get_available(world.trinity_ref, world.football) == 0


def test_admin_must_name_the_provider(world, cricket_request):
    with pytest.raises(ValidationError):
        world.gs.respond(cricket_request["request_id"], "approved", actor=world.admin)

    request = world.gs.respond(
        cricket_request["request_id"], "approved", actor=world.admin, provider=world.trinity_ref
    )
    assert request["processed_by"] == {
        "actor_type": "admin",
        "actor_id": "admin-1",
        "display_name": "Ministry desk",
    }
    assert request["provider"]["provider_type"] == "school"
    assert world.gs.get_available(world.trinity_ref, world.bat) == 10


def test_school_cannot_supply_itself(world):
    request = world.gs.create_request(
        world.trinity["school_id"], {"event_name": "Own meet"}, [{"equipment_id": world.bat, "quantity_requested": 2}]
    )
    with pytest.raises(ValidationError):
        world.gs.respond(request["request_id"], "approved", actor=world.trinity_actor)
    assert world.gs.get_available(world.trinity_ref, world.bat) == 20


def test_unknown_provider_is_not_found(world, cricket_request):
    with pytest.raises(NotFound):
        world.gs.respond(
            cricket_request["request_id"],
            "approved",
            actor=world.admin,
            provider=ProviderRef.governing_body("no-such-body"),
        )


def test_rental_approval(world, cricket_request):
    request = world.gs.respond(
        cricket_request["request_id"],
        "approved",
        actor=world.trinity_actor,
        terms=dict(RENTAL_TERMS, fee="1500.00", condition="excellent"),
        notes="Collect from the pavilion",
    )

    assert request["notes"] == "Collect from the pavilion"
    [transaction] = world.gs.transactions_for_request(request["request_id"])
    assert transaction["reference"] == "RNT000001"
    assert transaction["transaction_type"] == "rental"
    assert transaction["rental_details"]["returned_date"] is None
    assert transaction["rental_details"]["fee"] == "1500.00"
    assert all(i["condition"] == "excellent" for i in transaction["items"])


@pytest.mark.parametrize(
    "terms",
    [
        {"transaction_type": "rental"},
        {"transaction_type": "rental", "start_date": datetime(2025, 1, 1, tzinfo=timezone.utc)},
        {
            "transaction_type": "rental",
            "start_date": datetime(2025, 1, 8, tzinfo=timezone.utc),
            "return_due_date": datetime(2025, 1, 8, tzinfo=timezone.utc),
        },
    ],
    ids=["no-dates", "no-due-date", "empty-window"],
)
def test_rental_needs_a_valid_window(world, cricket_request, terms):
    with pytest.raises(ValidationError):
        world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor, terms=terms)

    assert world.gs.get_request(cricket_request["request_id"])["status"] == "pending"
    assert world.gs.get_available(world.trinity_ref, world.bat) == 20


def test_unknown_decision_is_invalid(world, cricket_request):
    with pytest.raises(ValidationError):
        world.gs.respond(cricket_request["request_id"], "maybe", actor=world.trinity_actor)


# =============================================================================
# Delivery
# =============================================================================


def test_mark_delivered_after_approval(world, cricket_request, test_time):
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)
    test_time.advance_days(2)

    delivered = world.gs.mark_delivered(cricket_request["request_id"], world.trinity_actor)

    assert delivered["status"] == "delivered"
    assert delivered["delivered_at"] is not None
    # Stock moved at approval; delivery does not touch it again
    assert world.gs.get_available(world.trinity_ref, world.bat) == 10


def test_mark_delivered_twice_fails_and_keeps_first_effect(world, cricket_request, test_time):
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)
    first = dict(world.gs.mark_delivered(cricket_request["request_id"], world.trinity_actor))
    test_time.advance_days(1)

    with pytest.raises(InvalidStateTransition):
        world.gs.mark_delivered(cricket_request["request_id"], world.trinity_actor)

    current = world.gs.get_request(cricket_request["request_id"])
    assert current["status"] == "delivered"
    assert current["delivered_at"] == first["delivered_at"]
    assert current["version"] == first["version"]


def test_mark_delivered_requires_approval(world, cricket_request):
    with pytest.raises(InvalidStateTransition):
        world.gs.mark_delivered(cricket_request["request_id"], world.trinity_actor)

    world.gs.respond(
        cricket_request["request_id"], "rejected", rejection_reason="No stock", actor=world.trinity_actor
    )
    with pytest.raises(InvalidStateTransition):
        world.gs.mark_delivered(cricket_request["request_id"], world.trinity_actor)


def test_partial_request_can_be_delivered(world, cricket_request):
    world.gs.respond(
        cricket_request["request_id"],
        "partial",
        [{"equipment_id": world.ball, "quantity_approved": 5}],
        actor=world.trinity_actor,
    )
    assert world.gs.mark_delivered(cricket_request["request_id"], world.admin)["status"] == "delivered"


# =============================================================================
# History, listings and notifications
# =============================================================================


def test_request_history(world, cricket_request):
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)
    world.gs.mark_delivered(cricket_request["request_id"], world.trinity_actor)

    history = world.gs.request_history(cricket_request["reference"])
    assert [e.event_type for e in history] == [
        "EquipmentRequestCreated",
        "EquipmentRequestApproved",
        "EquipmentRequestDelivered",
    ]
    assert [e.version for e in history] == [1, 2, 3]


def test_list_requests_for_school(world, cricket_request):
    world.gs.create_request(
        world.ananda["school_id"], {"event_name": "Futsal"}, [{"equipment_id": world.football, "quantity_requested": 3}]
    )
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)

    royal = world.gs.list_requests_for_school(world.royal["school_id"])
    assert [r["request_id"] for r in royal] == [cricket_request["request_id"]]
    assert world.gs.list_requests_for_school(world.royal["school_id"], ["pending"]) == []


def test_notifications_follow_committed_transitions(world):
    seen = []

    class Recorder:
        def notify(self, event):
            seen.append(event.event_type)

    world.gs.subscribe(Recorder())
    request = world.gs.create_request(
        world.royal["school_id"], {"event_name": "Meet"}, [{"equipment_id": world.bat, "quantity_requested": 2}]
    )
    world.gs.respond(request["request_id"], "approved", actor=world.trinity_actor)

    assert "EquipmentRequestCreated" in seen
    assert seen.index("EquipmentRequestApproved") < seen.index("TransactionApproved")


def test_failing_notifier_does_not_roll_back(world, cricket_request):
    class Broken:
        def notify(self, event):
            raise RuntimeError("SMS gateway unreachable")

    world.gs.subscribe(Broken(), ["EquipmentRequestApproved", "EquipmentRequestRejected"])

    request = world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)

    assert request["status"] == "approved"
    assert world.gs.get_request(cricket_request["request_id"])["status"] == "approved"
    assert world.gs.get_available(world.trinity_ref, world.bat) == 10


def test_quantity_invariant_holds_after_every_decision(world):
    requests = [
        world.gs.create_request(
            school["school_id"],
            {"event_name": f"Meet {n}"},
            [
                {"equipment_id": world.bat, "quantity_requested": 3},
                {"equipment_id": world.ball, "quantity_requested": 4},
            ],
        )
        for n, school in enumerate([world.royal, world.ananda, world.mahinda])
    ]
    world.gs.respond(requests[0]["request_id"], "approved", actor=world.trinity_actor)
    world.gs.respond(
        requests[1]["request_id"],
        "partial",
        [{"equipment_id": world.ball, "quantity_approved": 2}],
        actor=world.trinity_actor,
    )
    world.gs.respond(requests[2]["request_id"], "rejected", rejection_reason="No", actor=world.slc_actor)

    for request in world.gs.request_registry.list_all():
        assert_quantity_invariant(request)


def test_actor_defaults_to_requesting_school(world):
    request = world.gs.create_request(
        world.royal["school_id"],
        {"event_name": "Meet"},
        [{"equipment_id": world.bat, "quantity_requested": 1}],
        actor=ActorRef(actor_type=ActorType.ADMIN, actor_id="admin-2"),
    )
    assert request["created_by"]["actor_type"] == "admin"
