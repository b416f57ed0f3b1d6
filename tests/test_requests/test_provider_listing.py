"""
Tests for the provider-facing request listing

Governing bodies only see the lines in their sports, schools never see
their own requests, and everything comes back nearest first.
"""

import pytest

from gear_share.directory.models import ProviderRef
from gear_share.kernel.errors import NotFound


def _request(world, school, *lines):
    return world.gs.create_request(
        school["school_id"],
        {"event_name": f"{school['name']} sports day"},
        [{"equipment_id": equipment_id, "quantity_requested": qty} for equipment_id, qty in lines],
    )


def test_school_listing_ranked_nearest_first(world):
    # Created far-to-near so the order below comes from ranking, not insertion
    _request(world, world.jaffna, (world.football, 2))
    _request(world, world.trinity, (world.football, 2))
    _request(world, world.mahinda, (world.football, 2))
    _request(world, world.royal, (world.football, 2))

    listed = world.gs.list_requests_for_provider(world.ananda_ref)

    assert [r["requester_school_id"] for r in listed] == [
        world.royal["school_id"],
        world.mahinda["school_id"],
        world.trinity["school_id"],
        world.jaffna["school_id"],
    ]
    distances = [r["distance_km"] for r in listed]
    assert distances[0] == 0.0
    assert distances[1] < 50.0
    assert distances[2] == pytest.approx(94.3, abs=0.5)
    # Jaffna has no coordinates and sits in another province
    assert distances[3] == 1000.0


def test_school_never_sees_its_own_requests(world):
    own = _request(world, world.trinity, (world.bat, 1))
    other = _request(world, world.royal, (world.bat, 1))

    listed = world.gs.list_requests_for_provider(world.trinity_ref)

    ids = [r["request_id"] for r in listed]
    assert other["request_id"] in ids
    assert own["request_id"] not in ids


def test_governing_body_sees_only_lines_in_its_sports(world):
    mixed = _request(world, world.royal, (world.bat, 5), (world.football, 3))
    _request(world, world.mahinda, (world.football, 4))

    listed = world.gs.list_requests_for_provider(world.slc_ref)

    assert [r["request_id"] for r in listed] == [mixed["request_id"]]
    assert [i["equipment_id"] for i in listed[0]["items"]] == [world.bat]
    # The stored request keeps every line
    assert len(world.gs.get_request(mixed["request_id"])["items"]) == 2


def test_governing_body_sports_can_be_overridden(world):
    _request(world, world.mahinda, (world.football, 4))

    listed = world.gs.list_requests_for_provider(world.slc_ref, specialized_sport_ids=["football"])

    assert len(listed) == 1
    assert listed[0]["items"][0]["equipment_id"] == world.football


def test_listing_filters_by_status(world, cricket_request):
    pending = _request(world, world.mahinda, (world.ball, 2))
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)

    default = world.gs.list_requests_for_provider(world.ananda_ref)
    assert [r["request_id"] for r in default] == [pending["request_id"]]

    approved = world.gs.list_requests_for_provider(world.ananda_ref, statuses=["approved"])
    assert [r["request_id"] for r in approved] == [cricket_request["request_id"]]


def test_listing_fills_the_distance_cache(world, cricket_request):
    assert len(world.gs.distance_cache) == 0

    world.gs.list_requests_for_provider(world.trinity_ref)
    world.gs.list_requests_for_provider(world.trinity_ref)

    assert len(world.gs.distance_cache) == 1
    assert world.gs.distance_cache.hits == 1


def test_unknown_provider_listing_is_not_found(world):
    with pytest.raises(NotFound):
        world.gs.list_requests_for_provider(ProviderRef.school("nowhere"))


def test_listing_returns_copies(world, cricket_request):
    listed = world.gs.list_requests_for_provider(world.slc_ref)
    listed[0]["items"].clear()

    assert len(world.gs.get_request(cricket_request["request_id"])["items"]) == 2
