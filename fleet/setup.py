import argparse
from http import HTTPStatus
from requests import post, patch
from datetime import date, timedelta

from fleet.src import argon2, external
from fleet.src.enums import CarType, Role
from fleet.src.minio import createBucket, deleteBucket
from fleet.src.constants import PAYMENT_PROOFS, PAYMENT_QR_CODES
from fleet.src.urls import (
    URL_ACCOUNT_TOKEN,
    URL_ACCOUNT,
    URL_CAR,
    URL_DRIVER,
    URL_ROUTE,
    URL_PREORDER,
    URL_PREORDER_ASSIGNMENT,
    URL_PAYMENT_METHOD,
)
from fleet.src.db import Account, UserRole, sessionMaker, engine, ORMbase


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    deleteBucket(PAYMENT_PROOFS)
    deleteBucket(PAYMENT_QR_CODES)
    print("* All buckets deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    createBucket(PAYMENT_PROOFS)
    createBucket(PAYMENT_QR_CODES)
    print("* All buckets created")
    session.close()


def createExternalTables():
    externalEngine = external.getEngine()
    if externalEngine is None:
        print("* EXTERNAL_DB_URL is not set, skipped external tables")
        return
    tables = list(external.SYNC_TABLES.values())
    ORMbase.metadata.create_all(externalEngine, tables=tables)
    print("* External tables created")


def initDB():
    session = sessionMaker()
    admin = Account(
        email="admin@highwayfleet.in",
        password=argon2.makePassword("password"),
    )
    session.add(admin)
    session.flush()

    adminRole = UserRole(user_id=admin.id, role=Role.ADMIN, email=admin.email)
    session.add(adminRole)
    session.flush()

    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, header: dict = {}, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, headers=header, **kwargs)
    if response.status_code != status_code:
        assert response.status_code == status_code
    else:
        return response


def PATCH(URL: str, header: dict = {}, status_code: int = HTTPStatus.OK, **kwargs):
    response = patch(URL, headers=header, **kwargs)
    if response.status_code != status_code:
        assert response.status_code == status_code
    else:
        return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080/staff"

    # Create Account Token
    credentials = {"email": "admin@highwayfleet.in", "password": "password"}
    response = POST(
        (BASE_URL + URL_ACCOUNT_TOKEN),
        data=credentials,
        status_code=HTTPStatus.CREATED,
    )
    if response.status_code == HTTPStatus.CREATED:
        print("* Created token for admin")
    accessToken = {"Authorization": f"Bearer {response.json()['access_token']}"}

    # Create Driver account
    driverAccountData = {
        "email": "driver@highwayfleet.in",
        "password": "password",
        "role": Role.DRIVER,
    }
    POST(
        (BASE_URL + URL_ACCOUNT),
        header=accessToken,
        data=driverAccountData,
        status_code=HTTPStatus.CREATED,
    )
    print("* Created driver account")

    # Create Routes
    route1Data = {
        "name": "Trivandrum -> Kochi",
        "origin": "Trivandrum",
        "destination": "Kochi",
        "distance_km": 205,
        "base_price": 4500,
        "estimated_tolls": 250,
    }
    route2Data = {
        "name": "Kochi -> Kozhikode",
        "origin": "Kochi",
        "destination": "Kozhikode",
        "distance_km": 185,
        "base_price": 4000,
        "estimated_tolls": 180,
    }
    route1 = POST(
        (BASE_URL + URL_ROUTE),
        header=accessToken,
        data=route1Data,
        status_code=HTTPStatus.CREATED,
    )
    POST(
        (BASE_URL + URL_ROUTE),
        header=accessToken,
        data=route2Data,
        status_code=HTTPStatus.CREATED,
    )
    print("* Created routes")

    # Create Cars
    car1Data = {
        "plate_number": "KL01EV1000",
        "model": "Tata Nexon EV",
        "year": 2024,
        "car_type": CarType.ELECTRIC,
        "mileage": 12000,
    }
    car2Data = {
        "plate_number": "KL02GA2000",
        "model": "Toyota Innova Crysta",
        "year": 2022,
        "car_type": CarType.GAS,
        "mileage": 56000,
    }
    car1 = POST(
        (BASE_URL + URL_CAR),
        header=accessToken,
        data=car1Data,
        status_code=HTTPStatus.CREATED,
    )
    POST(
        (BASE_URL + URL_CAR),
        header=accessToken,
        data=car2Data,
        status_code=HTTPStatus.CREATED,
    )
    print("* Created cars")

    # Create Driver
    driverData = {
        "name": "Test Driver",
        "phone": "+919496801157",
        "email": "driver@highwayfleet.in",
        "license_uploaded": True,
        "permit_uploaded": True,
    }
    driver = POST(
        (BASE_URL + URL_DRIVER),
        header=accessToken,
        data=driverData,
        status_code=HTTPStatus.CREATED,
    )
    print("* Created driver")

    # Create Preorder and assign it
    preorderData = {
        "customer_name": "Test Customer",
        "customer_phone": "+919496801157",
        "customer_address": "Edava, Thiruvananthapuram, Kerala 695311",
        "route_id": route1.json()["id"],
        "scheduled_date": (date.today() + timedelta(days=1)).isoformat(),
        "scheduled_time": "09:30",
    }
    preorder = POST(
        (BASE_URL + URL_PREORDER),
        header=accessToken,
        data=preorderData,
        status_code=HTTPStatus.CREATED,
    )
    assignmentData = {
        "id": preorder.json()["id"],
        "car_id": car1.json()["id"],
        "driver_id": driver.json()["id"],
    }
    PATCH(
        (BASE_URL + URL_PREORDER_ASSIGNMENT),
        header=accessToken,
        data=assignmentData,
        status_code=HTTPStatus.OK,
    )
    print("* Created and assigned preorder")

    # Create Payment method
    paymentMethodData = {
        "name": "UPI",
        "account_name": "Fleet Travels",
        "account_number": "fleet@upi",
    }
    POST(
        (BASE_URL + URL_PAYMENT_METHOD),
        header=accessToken,
        data=paymentMethodData,
        status_code=HTTPStatus.CREATED,
    )
    print("* Created payment method")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-ext", action="store_true", help="create external tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.ext:
        createExternalTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
