from datetime import date, time

import pytest

from fleet.api import trip as tripAPI
from fleet.src.db import Car, Driver, Ledger, Preorder, Route, Trip
from fleet.src.enums import (
    CarType,
    DriverStatus,
    EntryType,
    PreorderStatus,
    TripStatus,
)

from conftest import PHONE

TRIP = "/staff/fleet/trip"
PREORDER = "/staff/fleet/preorder"
ASSIGNMENT = "/staff/fleet/preorder/assignment"


@pytest.fixture
def fleet(session):
    car = Car(plate_number="KL01EV1", model="Nexon EV", car_type=CarType.ELECTRIC)
    driver = Driver(name="Anil", phone=PHONE)
    route = Route(
        name="TVM -> COK",
        origin="Trivandrum",
        destination="Kochi",
        distance_km=205,
        base_price=4500,
    )
    session.add_all([car, driver, route])
    session.commit()
    return {"car": car.id, "driver": driver.id, "route": route.id}


def startTrip(client, admin, fleet, fare=500):
    response = client.post(
        TRIP,
        headers=admin,
        data={
            "car_id": fleet["car"],
            "driver_id": fleet["driver"],
            "route_id": fleet["route"],
            "total_fare": fare,
        },
    )
    assert response.status_code == 201
    return response.json()


def test_start_trip_puts_car_and_driver_on_duty(client, session, admin, fleet):
    trip = startTrip(client, admin, fleet)
    assert trip["status"] == TripStatus.HEADING_TO_PICKUP
    assert trip["total_fare"] == 500

    session.expire_all()
    assert session.get(Car, fleet["car"]).status == TripStatus.HEADING_TO_PICKUP
    assert session.get(Driver, fleet["driver"]).status == DriverStatus.BUSY


def test_start_trip_without_fare_uses_route_price(client, admin, fleet):
    response = client.post(
        TRIP, headers=admin, data={"car_id": fleet["car"], "route_id": fleet["route"]}
    )
    assert response.status_code == 201
    assert response.json()["total_fare"] == 4500


def test_start_trip_requires_known_car(client, admin, fleet):
    assert client.post(TRIP, headers=admin, data={}).status_code == 406
    assert client.post(TRIP, headers=admin, data={"car_id": 999}).status_code == 404


def test_status_change_moves_car(client, session, driver, admin, fleet):
    trip = startTrip(client, admin, fleet)
    response = client.patch(
        TRIP, headers=driver, data={"id": trip["id"], "status": TripStatus.ON_HIGHWAY}
    )
    assert response.status_code == 200
    assert response.json()["status"] == TripStatus.ON_HIGHWAY
    session.expire_all()
    assert session.get(Car, fleet["car"]).status == TripStatus.ON_HIGHWAY
    assert session.query(Ledger).count() == 0


def test_completing_trip_books_income_once(client, session, admin, fleet):
    trip = startTrip(client, admin, fleet, fare=500)
    response = client.patch(
        TRIP, headers=admin, data={"id": trip["id"], "status": TripStatus.COMPLETED}
    )
    assert response.status_code == 200
    assert response.json()["completed_on"] is not None

    session.expire_all()
    entries = session.query(Ledger).all()
    assert len(entries) == 1
    assert entries[0].entry_type == EntryType.INCOME
    assert entries[0].category is None
    assert float(entries[0].amount) == 500
    assert entries[0].trip_id == trip["id"]
    assert session.get(Car, fleet["car"]).status == TripStatus.IDLE
    assert session.get(Driver, fleet["driver"]).status == DriverStatus.AVAILABLE

    repeated = client.patch(
        TRIP, headers=admin, data={"id": trip["id"], "status": TripStatus.COMPLETED}
    )
    assert repeated.status_code == 200
    session.expire_all()
    assert session.query(Ledger).count() == 1


def test_completed_trip_is_terminal(client, admin, fleet):
    trip = startTrip(client, admin, fleet)
    client.patch(
        TRIP, headers=admin, data={"id": trip["id"], "status": TripStatus.COMPLETED}
    )
    response = client.patch(
        TRIP, headers=admin, data={"id": trip["id"], "status": TripStatus.ON_HIGHWAY}
    )
    assert response.status_code == 406


def test_zero_fare_trip_books_nothing(client, session, admin, fleet):
    trip = startTrip(client, admin, fleet, fare=0)
    client.patch(
        TRIP, headers=admin, data={"id": trip["id"], "status": TripStatus.COMPLETED}
    )
    session.expire_all()
    assert session.query(Ledger).count() == 0
    assert session.get(Car, fleet["car"]).status == TripStatus.IDLE


def test_failing_completion_leaves_trip_unchanged(
    client, session, admin, fleet, monkeypatch
):
    trip = startTrip(client, admin, fleet)
    completeTrip = tripAPI.completeTrip

    def brokenCompletion(session, trip):
        completeTrip(session, trip)
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(tripAPI, "completeTrip", brokenCompletion)
    with pytest.raises(RuntimeError):
        client.patch(
            TRIP, headers=admin, data={"id": trip["id"], "status": TripStatus.COMPLETED}
        )

    session.expire_all()
    stored = session.get(Trip, trip["id"])
    assert stored.status == TripStatus.HEADING_TO_PICKUP
    assert stored.completed_on is None
    assert session.query(Ledger).count() == 0
    assert session.get(Car, fleet["car"]).status == TripStatus.HEADING_TO_PICKUP
    assert session.get(Driver, fleet["driver"]).status == DriverStatus.BUSY


def test_preorder_assignment_and_trip_start(client, session, admin, fleet):
    preorder = client.post(
        PREORDER,
        headers=admin,
        data={
            "customer_name": "Meera",
            "customer_phone": PHONE,
            "route_id": fleet["route"],
            "scheduled_date": "2026-10-20",
            "scheduled_time": "09:30",
        },
    ).json()
    assert preorder["status"] == PreorderStatus.PENDING

    assigned = client.patch(
        ASSIGNMENT,
        headers=admin,
        data={"id": preorder["id"], "car_id": fleet["car"], "driver_id": fleet["driver"]},
    )
    assert assigned.status_code == 200
    assert assigned.json()["status"] == PreorderStatus.ASSIGNED
    assert assigned.json()["assigned_car_id"] == fleet["car"]

    trip = client.post(TRIP, headers=admin, data={"preorder_id": preorder["id"]})
    assert trip.status_code == 201
    assert trip.json()["car_id"] == fleet["car"]
    assert trip.json()["total_fare"] == 4500
    session.expire_all()
    assert session.get(Preorder, preorder["id"]).status == PreorderStatus.IN_PROGRESS

    client.patch(
        TRIP,
        headers=admin,
        data={"id": trip.json()["id"], "status": TripStatus.COMPLETED},
    )
    session.expire_all()
    assert session.get(Preorder, preorder["id"]).status == PreorderStatus.COMPLETED


def test_unassigned_preorder_cannot_start(client, session, admin, fleet):
    preorder = Preorder(
        customer_name="Meera",
        customer_phone=PHONE,
        scheduled_date=date(2026, 10, 20),
        scheduled_time=time(9, 30),
    )
    session.add(preorder)
    session.commit()

    response = client.post(TRIP, headers=admin, data={"preorder_id": preorder.id})
    assert response.status_code == 412
    assert session.query(Trip).count() == 0


def test_preorder_transitions(client, session, admin, fleet):
    preorder = Preorder(
        customer_name="Meera",
        customer_phone=PHONE,
        scheduled_date=date(2026, 10, 20),
        scheduled_time=time(9, 30),
    )
    session.add(preorder)
    session.commit()

    invalid = client.patch(
        PREORDER,
        headers=admin,
        data={"id": preorder.id, "status": PreorderStatus.COMPLETED},
    )
    assert invalid.status_code == 406

    cancelled = client.patch(
        PREORDER,
        headers=admin,
        data={"id": preorder.id, "status": PreorderStatus.CANCELLED},
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == PreorderStatus.CANCELLED
