import pytest

from fleet.src.db import Car, EnergyLog, Ledger, MaintenanceLog, Trip
from fleet.src.enums import (
    CarType,
    EnergyLogType,
    EntryType,
    ExpenseCategory,
    TripStatus,
)

ENERGY_LOG = "/staff/fleet/energy_log"
MAINTENANCE_LOG = "/staff/fleet/maintenance_log"
LEDGER = "/staff/fleet/ledger"
LOCATION = "/staff/fleet/trip/location"


@pytest.fixture
def carID(session):
    car = Car(plate_number="KL01EV1", model="Nexon EV", car_type=CarType.ELECTRIC)
    session.add(car)
    session.commit()
    return car.id


@pytest.fixture
def tripID(session, carID):
    trip = Trip(car_id=carID, status=TripStatus.ON_HIGHWAY, total_fare=0)
    session.add(trip)
    session.commit()
    return trip.id


def test_charging_log_books_one_expense(client, session, admin, carID):
    response = client.post(
        ENERGY_LOG,
        headers=admin,
        data={
            "car_id": carID,
            "log_type": EnergyLogType.CHARGING,
            "location": "Kollam Supercharger",
            "amount": 30,
            "cost": 540,
            "kwh": 30,
        },
    )
    assert response.status_code == 201

    entries = session.query(Ledger).all()
    assert len(entries) == 1
    assert entries[0].entry_type == EntryType.EXPENSE
    assert entries[0].category == ExpenseCategory.CHARGING
    assert float(entries[0].amount) == 540
    assert entries[0].description == "Charging at Kollam Supercharger"
    assert entries[0].car_id == carID


def test_fuel_log_keeps_no_kwh(client, session, admin, carID):
    response = client.post(
        ENERGY_LOG,
        headers=admin,
        data={
            "car_id": carID,
            "log_type": EnergyLogType.FUELING,
            "location": "Attingal",
            "amount": 40,
            "cost": 4200,
            "kwh": 12,
        },
    )
    assert response.status_code == 201
    assert response.json()["kwh"] is None
    assert session.query(Ledger).one().category == ExpenseCategory.FUEL


def test_energy_log_for_unknown_car(client, session, admin):
    response = client.post(
        ENERGY_LOG,
        headers=admin,
        data={
            "car_id": 42,
            "log_type": EnergyLogType.FUELING,
            "location": "Attingal",
            "amount": 40,
            "cost": 4200,
        },
    )
    assert response.status_code == 404
    assert session.query(EnergyLog).count() == 0
    assert session.query(Ledger).count() == 0


def test_maintenance_log(client, session, admin, carID):
    response = client.post(
        MAINTENANCE_LOG,
        headers=admin,
        data={"car_id": carID, "maintenance_type": "Oil change", "cost": 2500},
    )
    assert response.status_code == 201
    assert session.query(MaintenanceLog).count() == 1

    listed = client.get(MAINTENANCE_LOG, headers=admin, params={"car_id": carID})
    assert len(listed.json()) == 1


def test_income_entries_carry_no_category(client, admin):
    response = client.post(
        LEDGER,
        headers=admin,
        data={
            "entry_type": EntryType.INCOME,
            "category": ExpenseCategory.TOLL,
            "amount": 1000,
        },
    )
    assert response.status_code == 201
    assert response.json()["category"] is None

    expense = client.post(
        LEDGER,
        headers=admin,
        data={
            "entry_type": EntryType.EXPENSE,
            "category": ExpenseCategory.TOLL,
            "amount": 250,
        },
    )
    assert expense.json()["category"] == ExpenseCategory.TOLL

    expenses = client.get(LEDGER, headers=admin, params={"entry_type": EntryType.EXPENSE})
    assert [e["id"] for e in expenses.json()] == [expense.json()["id"]]


def test_ledger_write_needs_admin(client, session, driver):
    response = client.post(
        LEDGER, headers=driver, data={"entry_type": EntryType.INCOME, "amount": 10}
    )
    assert response.status_code == 403
    assert session.query(Ledger).count() == 0


def test_driver_shares_location(client, driver, tripID, carID):
    response = client.post(
        LOCATION,
        headers=driver,
        data={
            "trip_id": tripID,
            "location": "POINT(76.6889 8.7617)",
            "heading": 90,
            "speed": 25,
        },
    )
    assert response.status_code == 201
    location = response.json()
    assert location["car_id"] == carID
    assert location["speed"] == 90.0
    assert location["latitude"] == pytest.approx(8.7617)
    assert location["longitude"] == pytest.approx(76.6889)


def test_location_validation(client, session, driver, tripID):
    notPoint = client.post(
        LOCATION,
        headers=driver,
        data={"trip_id": tripID, "location": "LINESTRING(0 0, 1 1)"},
    )
    assert notPoint.status_code == 406

    outOfRange = client.post(
        LOCATION, headers=driver, data={"trip_id": tripID, "location": "POINT(200 95)"}
    )
    assert outOfRange.status_code == 406

    unknownTrip = client.post(
        LOCATION, headers=driver, data={"trip_id": 999, "location": "POINT(76 8)"}
    )
    assert unknownTrip.status_code == 404

    session.get(Trip, tripID).status = TripStatus.COMPLETED
    session.commit()
    finished = client.post(
        LOCATION, headers=driver, data={"trip_id": tripID, "location": "POINT(76 8)"}
    )
    assert finished.status_code == 412


def test_latest_location_per_active_trip(client, session, driver, tripID, carID):
    for point in ["POINT(76.1 8.1)", "POINT(76.2 8.2)"]:
        client.post(LOCATION, headers=driver, data={"trip_id": tripID, "location": point})

    finished = Trip(car_id=carID, status=TripStatus.ON_HIGHWAY, total_fare=0)
    session.add(finished)
    session.commit()
    client.post(
        LOCATION, headers=driver, data={"trip_id": finished.id, "location": "POINT(77 9)"}
    )
    finished.status = TripStatus.COMPLETED
    session.commit()

    response = client.get(f"{LOCATION}/latest", headers=driver)
    assert response.status_code == 200
    latest = response.json()
    assert len(latest) == 1
    assert latest[0]["trip_id"] == tripID
    assert latest[0]["longitude"] == pytest.approx(76.2)
