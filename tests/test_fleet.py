from datetime import date, time

from fleet.src.db import Car, Driver, Preorder, Route, Trip
from fleet.src.enums import CarType, DriverStatus, TripStatus

from conftest import PHONE

CAR = "/staff/fleet/car"
DRIVER = "/staff/fleet/driver"
ROUTE = "/staff/fleet/route"


def test_electric_car_starts_charged(client, admin):
    response = client.post(
        CAR,
        headers=admin,
        data={"plate_number": "KL01EV1", "model": "Nexon EV", "car_type": CarType.ELECTRIC},
    )
    assert response.status_code == 201
    car = response.json()
    assert car["current_charge_percent"] == 100
    assert car["battery_health"] == 100
    assert car["fuel_level"] is None
    assert car["health_score"] == 100
    assert car["status"] == TripStatus.IDLE


def test_gas_car_starts_fueled(client, admin):
    response = client.post(
        CAR,
        headers=admin,
        data={"plate_number": "KL02GA1", "model": "Innova", "car_type": CarType.GAS},
    )
    assert response.status_code == 201
    car = response.json()
    assert car["fuel_level"] == 100
    assert car["current_charge_percent"] is None
    assert car["battery_health"] is None


def test_car_write_needs_admin(client, driver, session):
    response = client.post(
        CAR,
        headers=driver,
        data={"plate_number": "KL02GA1", "model": "Innova", "car_type": CarType.GAS},
    )
    assert response.status_code == 403
    assert session.query(Car).count() == 0


def test_car_update_and_listing(client, admin):
    car = client.post(
        CAR,
        headers=admin,
        data={"plate_number": "KL02GA1", "model": "Innova", "car_type": CarType.GAS},
    ).json()

    response = client.patch(
        CAR, headers=admin, data={"id": car["id"], "mileage": 1500, "fuel_level": 40}
    )
    assert response.status_code == 200
    assert response.json()["mileage"] == 1500
    assert response.json()["fuel_level"] == 40

    listed = client.get(CAR, headers=admin, params={"car_type": CarType.GAS})
    assert listed.status_code == 200
    assert [c["id"] for c in listed.json()] == [car["id"]]


def test_switching_car_type_resets_energy_readings(client, admin):
    car = client.post(
        CAR,
        headers=admin,
        data={"plate_number": "KL02GA1", "model": "Innova", "car_type": CarType.GAS},
    ).json()
    client.patch(CAR, headers=admin, data={"id": car["id"], "fuel_level": 35})

    electric = client.patch(
        CAR,
        headers=admin,
        data={"id": car["id"], "car_type": CarType.ELECTRIC, "current_charge_percent": 60},
    )
    assert electric.status_code == 200
    assert electric.json()["car_type"] == CarType.ELECTRIC
    assert electric.json()["fuel_level"] is None
    assert electric.json()["battery_health"] == 100
    assert electric.json()["current_charge_percent"] == 60

    gas = client.patch(CAR, headers=admin, data={"id": car["id"], "car_type": CarType.GAS})
    assert gas.json()["fuel_level"] == 100
    assert gas.json()["current_charge_percent"] is None
    assert gas.json()["battery_health"] is None


def test_driver_starts_available(client, admin, driver):
    response = client.post(DRIVER, headers=admin, data={"name": "Anil", "phone": PHONE})
    assert response.status_code == 201
    assert response.json()["status"] == DriverStatus.AVAILABLE

    listed = client.get(DRIVER, headers=driver)
    assert listed.status_code == 200
    assert len(listed.json()) == 1


def test_driver_rejects_invalid_phone(client, admin):
    response = client.post(DRIVER, headers=admin, data={"name": "Anil", "phone": "12"})
    assert response.status_code == 422


def test_public_routes_need_no_token(client, admin):
    client.post(
        ROUTE,
        headers=admin,
        data={
            "name": "TVM -> COK",
            "origin": "Trivandrum",
            "destination": "Kochi",
            "distance_km": 205,
            "base_price": 4500,
        },
    )
    response = client.get("/public/route")
    assert response.status_code == 200
    assert response.json()[0]["origin"] == "Trivandrum"


def test_route_delete_keeps_trips_and_preorders(client, session, admin):
    route = Route(
        name="TVM -> COK",
        origin="Trivandrum",
        destination="Kochi",
        distance_km=205,
        base_price=4500,
    )
    car = Car(plate_number="KL01EV1", model="Nexon EV", car_type=CarType.ELECTRIC)
    session.add_all([route, car])
    session.flush()
    preorder = Preorder(
        customer_name="Meera",
        customer_phone=PHONE,
        route_id=route.id,
        scheduled_date=date(2026, 10, 20),
        scheduled_time=time(9, 30),
    )
    trip = Trip(car_id=car.id, route_id=route.id, total_fare=4500)
    session.add_all([preorder, trip])
    session.commit()
    preorderID, tripID, routeID = preorder.id, trip.id, route.id

    response = client.request("DELETE", ROUTE, headers=admin, data={"id": routeID})
    assert response.status_code == 204

    session.expire_all()
    assert session.query(Route).count() == 0
    assert session.get(Preorder, preorderID).route_id is None
    assert session.get(Trip, tripID).route_id is None
    assert session.get(Car, car.id) is not None

    again = client.request("DELETE", ROUTE, headers=admin, data={"id": routeID})
    assert again.status_code == 204
