"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Iterator

import pytest

from gear_share import GearShare
from gear_share.directory.models import ActorRef, ActorType, ProviderRef
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import TestTimeProvider

COLOMBO = {
    "district": "Colombo",
    "province": "Western Province",
    "coordinates": {"latitude": 6.9271, "longitude": 79.8612},
}
GAMPAHA = {
    "district": "Gampaha",
    "province": "Western Province",
    "coordinates": {"latitude": 7.0873, "longitude": 79.9990},
}
KANDY = {
    "district": "Kandy",
    "province": "Central Province",
    "coordinates": {"latitude": 7.2906, "longitude": 80.6337},
}
JAFFNA = {"district": "Jaffna", "province": "Northern Province"}


@pytest.fixture
def locations() -> SimpleNamespace:
    """Registered locations used across tests"""
    return SimpleNamespace(colombo=COLOMBO, gampaha=GAMPAHA, kandy=KANDY, jaffna=JAFFNA)


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # WAL mode leaves side files next to the database
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.unlink()


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC, the middle of the first school term.
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> ExchangePolicy:
    return ExchangePolicy()


@pytest.fixture
def gear_share(temp_db: Path, test_time: TestTimeProvider, policy: ExchangePolicy) -> GearShare:
    """Fresh exchange over an empty database"""
    return GearShare(temp_db, policy=policy, time_provider=test_time)


@pytest.fixture
def world(gear_share: GearShare) -> SimpleNamespace:
    """
    A small exchange to play in

    Schools: Royal (Colombo), Ananda (Colombo), Mahinda (Gampaha),
    Trinity (Kandy) and Jaffna Central (no coordinates).
    Governing body: Sri Lanka Cricket, specialised in cricket.
    Stock: Trinity holds 20 bats, 30 balls and 10 footballs; SLC holds 50
    bats; Ananda holds 5 footballs.
    """
    gs = gear_share
    royal = gs.register_school("Royal College", COLOMBO, principal_name="R. Perera")
    ananda = gs.register_school("Ananda College", COLOMBO)
    mahinda = gs.register_school("Mahinda Vidyalaya", GAMPAHA)
    trinity = gs.register_school("Trinity College", KANDY)
    jaffna = gs.register_school("Jaffna Central College", JAFFNA)
    slc = gs.register_governing_body(
        "Sri Lanka Cricket", ["cricket"], abbreviation="SLC", location=COLOMBO
    )

    bat = gs.register_equipment("Cricket bat", sport_id="cricket")
    ball = gs.register_equipment("Cricket ball", sport_id="cricket")
    football = gs.register_equipment("Football", sport_id="football")

    trinity_ref = ProviderRef.school(trinity["school_id"])
    ananda_ref = ProviderRef.school(ananda["school_id"])
    slc_ref = ProviderRef.governing_body(slc["governing_body_id"])

    gs.stock(trinity_ref, bat["equipment_id"], 20)
    gs.stock(trinity_ref, ball["equipment_id"], 30)
    gs.stock(trinity_ref, football["equipment_id"], 10)
    gs.stock(slc_ref, bat["equipment_id"], 50)
    gs.stock(ananda_ref, football["equipment_id"], 5)

    return SimpleNamespace(
        gs=gs,
        royal=royal,
        ananda=ananda,
        mahinda=mahinda,
        trinity=trinity,
        jaffna=jaffna,
        slc=slc,
        bat=bat["equipment_id"],
        ball=ball["equipment_id"],
        football=football["equipment_id"],
        trinity_ref=trinity_ref,
        ananda_ref=ananda_ref,
        slc_ref=slc_ref,
        trinity_actor=ActorRef(actor_type=ActorType.SCHOOL, actor_id=trinity["school_id"]),
        ananda_actor=ActorRef(actor_type=ActorType.SCHOOL, actor_id=ananda["school_id"]),
        slc_actor=ActorRef(actor_type=ActorType.GOVERNING_BODY, actor_id=slc["governing_body_id"]),
        admin=ActorRef(actor_type=ActorType.ADMIN, actor_id="admin-1", display_name="Ministry desk"),
    )


@pytest.fixture
def cricket_request(world: SimpleNamespace) -> dict:
    """Royal asks for 10 bats and 15 balls"""
    return world.gs.create_request(
        world.royal["school_id"],
        {"event_name": "Inter-school cricket meet"},
        [
            {"equipment_id": world.bat, "quantity_requested": 10},
            {"equipment_id": world.ball, "quantity_requested": 15},
        ],
    )
