def test_stop_query_returns_trips_calling_at_stop(client, bus, make_trip):
    client.post("/api/buses/B100/trips", json=make_trip("T1", stops=("Central", "Market")))
    client.post("/api/buses/B100/trips", json=make_trip("T2", stops=("Harbour", "Airport")))

    resp = client.get("/api/buses/stop/Market")
    assert resp.status_code == 200
    assert [t["trip_number"] for t in resp.json()] == ["T1"]


def test_stop_query_spans_buses(client, bus, make_trip):
    client.post("/api/buses", json={"name": "Shuttle", "bus_number": "B200", "bus_type": "Mini"})
    client.post("/api/buses/B100/trips", json=make_trip("T1", stops=("Central", "Market")))
    client.post("/api/buses/B200/trips", json=make_trip("S1", stops=("Market", "Harbour")))

    resp = client.get("/api/buses/stop/Market")
    assert sorted(t["trip_number"] for t in resp.json()) == ["S1", "T1"]


def test_stop_query_repeats_trip_per_matching_stop(client, bus, make_trip):
    client.post("/api/buses/B100/trips", json=make_trip("LOOP", stops=("Central", "Market", "Central")))

    resp = client.get("/api/buses/stop/Central")
    assert resp.status_code == 200
    assert [t["trip_number"] for t in resp.json()] == ["LOOP", "LOOP"]


def test_stop_query_not_found(client, bus, make_trip):
    client.post("/api/buses/B100/trips", json=make_trip("T1"))
    resp = client.get("/api/buses/stop/Nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"message": "No buses found for this stop"}


def test_stop_route_wins_over_bus_number(client, bus, make_trip):
    client.post("/api/buses/B100/trips", json=make_trip("T1", stops=("trips", "Market")))
    resp = client.get("/api/buses/stop/trips")
    assert resp.status_code == 200
    assert resp.json()[0]["trip_number"] == "T1"


def _standalone(db, make_trip, number, stops):
    db["trip"].insert_one(make_trip(number, stops=stops))


def test_trips_between_respects_stop_order(client, db, make_trip):
    _standalone(db, make_trip, "T1", ("A", "B", "C"))

    forward = client.get("/api/trips", params={"fromStopName": "A", "toStopName": "C"})
    assert forward.status_code == 200
    assert [t["trip_number"] for t in forward.json()] == ["T1"]

    backward = client.get("/api/trips", params={"fromStopName": "C", "toStopName": "A"})
    assert backward.status_code == 200
    assert backward.json() == []


def test_trips_between_uses_first_occurrence(client, db, make_trip):
    # only first occurrences count: A precedes the second B, not the first
    _standalone(db, make_trip, "T1", ("B", "A", "B"))

    resp = client.get("/api/trips", params={"fromStopName": "A", "toStopName": "B"})
    assert resp.json() == []
    resp = client.get("/api/trips", params={"fromStopName": "B", "toStopName": "A"})
    assert [t["trip_number"] for t in resp.json()] == ["T1"]


def test_trips_between_excludes_trips_missing_a_stop(client, db, make_trip):
    _standalone(db, make_trip, "T1", ("A", "B"))
    _standalone(db, make_trip, "T2", ("A", "C"))
    _standalone(db, make_trip, "T3", ("X", "A", "Y", "C"))

    resp = client.get("/api/trips", params={"fromStopName": "A", "toStopName": "C"})
    assert [t["trip_number"] for t in resp.json()] == ["T2", "T3"]


def test_trips_between_ignores_embedded_trips(client, bus, make_trip):
    client.post("/api/buses/B100/trips", json=make_trip("T1", stops=("A", "C")))
    resp = client.get("/api/trips", params={"fromStopName": "A", "toStopName": "C"})
    assert resp.status_code == 200
    assert resp.json() == []


def test_trips_between_same_stop_matches_nothing(client, db, make_trip):
    _standalone(db, make_trip, "T1", ("A", "B"))
    resp = client.get("/api/trips", params={"fromStopName": "A", "toStopName": "A"})
    assert resp.json() == []


def test_trips_between_requires_both_stops(client):
    resp = client.get("/api/trips", params={"fromStopName": "A"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Missing required fields"}
