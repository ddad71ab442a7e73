import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture()
def db():
    """A fresh in-memory Mongo database per test."""
    return mongomock.MongoClient()["bus_fleet_test"]


@pytest.fixture()
def client(db):
    """Test client bound to the in-memory database.

    Entered as a context manager so startup runs and the unique
    bus_number index exists, as it would against a real server.
    """
    app = create_app(database=db, settings=Settings(database_url="mongodb://test", log_level="WARNING"))
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_trip():
    def _make(trip_number="T1", stops=("Central", "Market", "Airport"), **overrides):
        trip = {
            "trip_number": trip_number,
            "schedule": "Daily 08:00",
            "initial_stop": stops[0],
            "final_stop": stops[-1],
            "route": "City Loop",
            "stops": [
                {"stop_name": name, "arrival_time": f"08:{i * 10:02d}"}
                for i, name in enumerate(stops)
            ],
        }
        trip.update(overrides)
        return trip
    return _make


@pytest.fixture()
def bus(client):
    payload = {"name": "Express1", "bus_number": "B100", "bus_type": "AC"}
    resp = client.post("/api/buses", json=payload)
    assert resp.status_code == 201
    return resp.json()
