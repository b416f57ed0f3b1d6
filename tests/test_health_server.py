"""
Tests for health server

Liveness, readiness against the event store, and the detailed view with
exchange counts when a GearShare instance is attached.

Fun fact: Kubernetes restarts a container that fails its liveness probe but
only stops routing traffic to one that fails readiness. Two endpoints, two
very different consequences!
"""

import pytest

from gear_share import health_server
from gear_share.health_server import app, initialize_health_server


@pytest.fixture
def client():
    """Flask test client"""
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


@pytest.fixture(autouse=True)
def reset_health_state():
    yield
    health_server._db_path = None
    health_server._gear_share = None


def test_initialize_accepts_string_path(temp_db):
    initialize_health_server(str(temp_db))
    assert health_server._db_path == temp_db


def test_liveness_always_answers(client):
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.get_json() == {"status": "alive", "service": "gear-share"}


def test_readiness_before_initialization(client):
    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_path_not_initialized"


def test_readiness_missing_database(client, tmp_path):
    initialize_health_server(tmp_path / "absent.db")

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_file_not_found"


def test_readiness_database_without_events_table(client, tmp_path):
    empty = tmp_path / "empty.db"
    empty.touch()
    initialize_health_server(empty)

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_operational_error"


def test_readiness_reports_event_count(client, world, temp_db):
    initialize_health_server(temp_db)

    response = client.get("/health/ready")

    data = response.get_json()
    assert response.status_code == 200
    assert data["status"] == "ready"
    assert data["event_count"] == world.gs.event_store.count_events()


def test_detailed_health_with_exchange(client, world, cricket_request, temp_db):
    world.gs.respond(cricket_request["request_id"], "approved", actor=world.trinity_actor)
    initialize_health_server(temp_db, gear_share=world.gs)

    response = client.get("/health")

    data = response.get_json()
    assert response.status_code == 200
    assert data["status"] == "healthy"
    assert data["service"] == "gear-share"
    assert data["database"]["event_count"] > 0
    assert data["exchange"]["requests"] == {"approved": 1}
    assert data["exchange"]["transactions"] == {"approved": 1}
    assert data["exchange"]["overdue_rentals"] == 0


def test_detailed_health_degraded_without_database(client):
    response = client.get("/health")

    data = response.get_json()
    assert response.status_code == 503
    assert data["status"] == "degraded"
    assert data["database"] == {"status": "not_initialized"}
    assert "exchange" not in data
