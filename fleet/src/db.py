from secrets import token_hex
from sqlalchemy import (
    TEXT,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    create_engine,
    func,
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker

from fleet.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from fleet.src.enums import (
    AccountStatus,
    DriverStatus,
    PlatformType,
    PreorderStatus,
    TripStatus,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()


# ----------------------------------- Account DB Models ---------------------------------------#
class Account(ORMbase):
    """
    Represents a login account of the fleet dashboard.

    Every staff member (administrators and drivers) signs in with an account.
    The capabilities of an account are decided by its role row in `user_role`.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the account.

        email (String):
            Unique login email of the account.
            Maximum 256 characters long.

        password (TEXT):
            Argon2 hash of the account password.

        status (Integer):
            Enum value of `AccountStatus`.
            Only `ACTIVE` accounts can request new access tokens.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the account was created.
    """

    __tablename__ = "account"

    id = Column(Integer, primary_key=True)
    email = Column(String(256), nullable=False, unique=True)
    password = Column(TEXT, nullable=False)
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class UserRole(ORMbase):
    """
    Binds an account to the `ADMIN` or `DRIVER` role.

    The existence of any row in this table disables the first-admin bootstrap.

    Columns:
        id (Integer):
            Primary key.

        user_id (Integer):
            Foreign key referencing `account.id`, unique per account.
            Cascades on delete.

        role (Integer):
            Enum value of `Role`.

        email (String):
            Copy of the account email for listing purposes.
    """

    __tablename__ = "user_role"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    role = Column(Integer, nullable=False)
    email = Column(String(256))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class AccessToken(ORMbase):
    """
    Bearer token of a staff session. Tokens expire after `expires_in` seconds
    and are removed with their account. The oldest ones are rotated out once an
    account holds `MAX_ACCOUNT_TOKENS`.

    Columns:
        access_token (String):
            Random 64 character hex string sent as `Authorization: Bearer`.

        expires_at (DateTime):
            Moment the token stops being accepted. Refreshing moves it forward.

        platform_type, client_details:
            What the caller said about its device at login.
    """

    __tablename__ = "access_token"

    id = Column(Integer, primary_key=True)
    account_id = Column(
        Integer,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Fleet DB Models -----------------------------------------#
class Car(ORMbase):
    """
    Represents a vehicle of the fleet.

    Electric cars track `current_charge_percent` and `battery_health`,
    gas cars track `fuel_level`. The columns of the other kind stay NULL.
    The car status mirrors the status of the trip it is currently serving.

    Columns:
        id (Integer):
            Primary key.

        plate_number (String):
            Unique registration plate of the car.
            Maximum 16 characters long.

        model (String):
            Make and model of the car.

        year (Integer):
            Manufacturing year.

        car_type (Integer):
            Enum value of `CarType`.

        mileage (Integer):
            Odometer reading in kilometers.

        current_charge_percent (Integer):
            Battery charge in percent, electric cars only.

        battery_health (Integer):
            Battery health in percent, electric cars only.

        fuel_level (Integer):
            Fuel level in percent, gas cars only.

        health_score (Integer):
            Overall health of the car in percent, defaults to 100.

        oil_change_mileage (Integer):
            Mileage interval between oil changes.

        last_oil_change_mileage (Integer):
            Odometer reading at the last oil change.

        status (Integer):
            Enum value of `TripStatus`, defaults to `IDLE`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the car was added.
    """

    __tablename__ = "car"

    id = Column(Integer, primary_key=True)
    plate_number = Column(String(16), nullable=False, unique=True)
    model = Column(String(64), nullable=False)
    year = Column(Integer)
    car_type = Column(Integer, nullable=False)
    mileage = Column(Integer, nullable=False, default=0)
    # Energy and health
    current_charge_percent = Column(Integer)
    battery_health = Column(Integer)
    fuel_level = Column(Integer)
    health_score = Column(Integer, nullable=False, default=100)
    oil_change_mileage = Column(Integer)
    last_oil_change_mileage = Column(Integer)
    status = Column(Integer, nullable=False, default=TripStatus.IDLE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Driver(ORMbase):
    """
    Represents a driver of the fleet.

    Columns:
        id (Integer):
            Primary key.

        name (String):
            Full name of the driver.

        phone (String):
            Contact number in RFC3966 format.

        email (String):
            Optional contact email.

        hours_driven_today (Numeric):
            Hours driven during the current day.

        license_uploaded (Boolean):
            Whether the driving license is on file.

        permit_uploaded (Boolean):
            Whether the highway permit is on file.

        status (Integer):
            Enum value of `DriverStatus`, defaults to `AVAILABLE`.
            Set to `BUSY` while the driver is on a trip.
    """

    __tablename__ = "driver"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False)
    phone = Column(String(32), nullable=False)
    email = Column(String(256))
    hours_driven_today = Column(Numeric(5, 2), nullable=False, default=0)
    license_uploaded = Column(Boolean, nullable=False, default=False)
    permit_uploaded = Column(Boolean, nullable=False, default=False)
    status = Column(Integer, nullable=False, default=DriverStatus.AVAILABLE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Route(ORMbase):
    """
    Represents a highway route between two places, with its base fare.

    Deleting a route keeps its trips and preorders, their `route_id` becomes NULL.
    """

    __tablename__ = "route"

    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False)
    origin = Column(String(128), nullable=False)
    destination = Column(String(128), nullable=False)
    distance_km = Column(Numeric(8, 2), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    estimated_tolls = Column(Numeric(10, 2), nullable=False, default=0)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Preorder(ORMbase):
    """
    Represents a customer booking waiting for (or already given) a car and driver.

    A preorder moves `PENDING -> ASSIGNED -> IN_PROGRESS -> COMPLETED` and can
    be `CANCELLED` before it is completed. It becomes `IN_PROGRESS` when a trip
    is started from it and `COMPLETED` together with that trip.

    Columns:
        id (Integer):
            Primary key.

        customer_name (String):
            Name of the customer.

        customer_phone (String):
            Contact number of the customer.

        customer_address (TEXT):
            Optional pickup address.

        route_id (Integer):
            Foreign key referencing `route.id`, set to NULL when the route is deleted.

        assigned_car_id (Integer):
            Foreign key referencing `car.id`, set to NULL when the car is deleted.

        assigned_driver_id (Integer):
            Foreign key referencing `driver.id`, set to NULL when the driver is deleted.

        scheduled_date (Date):
            Date of the pickup.

        scheduled_time (Time):
            Time of the pickup.

        notes (TEXT):
            Optional notes from the customer or staff.

        status (Integer):
            Enum value of `PreorderStatus`, defaults to `PENDING`.

        payment_proof_url (TEXT):
            Download path of the payment proof uploaded by the customer.
    """

    __tablename__ = "preorder"

    id = Column(Integer, primary_key=True)
    customer_name = Column(String(64), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_address = Column(TEXT)
    route_id = Column(Integer, ForeignKey("route.id", ondelete="SET NULL"))
    assigned_car_id = Column(Integer, ForeignKey("car.id", ondelete="SET NULL"))
    assigned_driver_id = Column(Integer, ForeignKey("driver.id", ondelete="SET NULL"))
    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(Time, nullable=False)
    notes = Column(TEXT)
    status = Column(Integer, nullable=False, default=PreorderStatus.PENDING)
    payment_proof_url = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Trip(ORMbase):
    """
    Represents one assignment of a car, a driver and a route, progressing
    from dispatch to completion.

    Columns:
        id (Integer):
            Primary key.

        car_id (Integer):
            Foreign key referencing `car.id`. Cascades on delete.

        driver_id (Integer):
            Foreign key referencing `driver.id`, set to NULL when the driver is deleted.

        route_id (Integer):
            Foreign key referencing `route.id`, set to NULL when the route is deleted.

        preorder_id (Integer):
            Foreign key referencing `preorder.id`, set to NULL when the preorder is deleted.

        status (Integer):
            Enum value of `TripStatus`. `COMPLETED` is terminal.

        started_on (DateTime):
            Timestamp indicating when the trip was started.

        completed_on (DateTime):
            Timestamp indicating when the trip was completed.

        total_fare (Numeric):
            Fare of the trip, booked as income when the trip is completed.
    """

    __tablename__ = "trip"

    id = Column(Integer, primary_key=True)
    car_id = Column(
        Integer,
        ForeignKey("car.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    driver_id = Column(Integer, ForeignKey("driver.id", ondelete="SET NULL"))
    route_id = Column(Integer, ForeignKey("route.id", ondelete="SET NULL"))
    preorder_id = Column(Integer, ForeignKey("preorder.id", ondelete="SET NULL"))
    status = Column(Integer, nullable=False, default=TripStatus.HEADING_TO_PICKUP)
    started_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
    completed_on = Column(DateTime(timezone=True))
    total_fare = Column(Numeric(10, 2), nullable=False, default=0)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Ledger(ORMbase):
    """
    Represents an income or expense record used for financial reporting.

    Columns:
        id (Integer):
            Primary key.

        entry_type (Integer):
            Enum value of `EntryType`.

        category (Integer):
            Enum value of `ExpenseCategory`, NULL for income entries.

        amount (Numeric):
            Positive amount of the entry.

        description (TEXT):
            Optional free-form description.

        car_id, driver_id, trip_id (Integer):
            Optional references to the car, driver and trip the entry belongs to.
            Set to NULL when the referenced row is deleted.
    """

    __tablename__ = "ledger"

    id = Column(Integer, primary_key=True)
    entry_type = Column(Integer, nullable=False)
    category = Column(Integer)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(TEXT)
    car_id = Column(Integer, ForeignKey("car.id", ondelete="SET NULL"))
    driver_id = Column(Integer, ForeignKey("driver.id", ondelete="SET NULL"))
    trip_id = Column(Integer, ForeignKey("trip.id", ondelete="SET NULL"))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class EnergyLog(ORMbase):
    """
    Represents a charging or fueling stop of a car.

    Creating an energy log also books its cost as a ledger expense.
    """

    __tablename__ = "energy_log"

    id = Column(Integer, primary_key=True)
    car_id = Column(
        Integer,
        ForeignKey("car.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    log_type = Column(Integer, nullable=False)
    location = Column(String(128))
    amount = Column(Numeric(10, 2), nullable=False)
    cost = Column(Numeric(10, 2), nullable=False)
    kwh = Column(Numeric(10, 2))
    price_per_unit = Column(Numeric(10, 2))
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class MaintenanceLog(ORMbase):
    __tablename__ = "maintenance_log"

    id = Column(Integer, primary_key=True)
    car_id = Column(
        Integer,
        ForeignKey("car.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    maintenance_type = Column(String(64), nullable=False)
    cost = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(TEXT)
    mileage_at_service = Column(Integer)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class PaymentMethod(ORMbase):
    """
    Represents a way customers can pay for a booking, shown on the public booking page.

    Columns:
        id (Integer):
            Primary key.

        name (String):
            Display name, such as the bank or wallet name.

        account_name (String):
            Name of the receiving account holder.

        account_number (String):
            Receiving account number or wallet identifier.

        qr_code_url (TEXT):
            Public download path of the uploaded QR code image.

        is_active (Boolean):
            Only active methods are listed publicly.
    """

    __tablename__ = "payment_method"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False)
    account_name = Column(String(64))
    account_number = Column(String(64))
    qr_code_url = Column(TEXT)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class PaymentProof(ORMbase):
    """
    Metadata of a payment proof image uploaded from the public booking page.
    The file itself lives in the `payment-proofs` bucket under the row id.
    """

    __tablename__ = "payment_proof"

    id = Column(Integer, primary_key=True)
    file_name = Column(TEXT, nullable=False)
    file_type = Column(TEXT, nullable=False)
    file_size = Column(Integer, nullable=False)
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class VehicleLocation(ORMbase):
    """
    Represents a location shared by a driver during a trip.

    Columns:
        id (Integer):
            Primary key.

        trip_id (Integer):
            Foreign key referencing `trip.id`. Cascades on delete.

        car_id (Integer):
            Foreign key referencing `car.id`. Cascades on delete.

        latitude, longitude (Float):
            WGS84 (SRID 4326) coordinates.

        heading (Float):
            Direction of travel in degrees.

        speed (Float):
            Speed in km/h.

        accuracy (Float):
            Accuracy radius of the reading in meters.

        recorded_on (DateTime):
            Timestamp indicating when the location was recorded.
    """

    __tablename__ = "vehicle_location"

    id = Column(Integer, primary_key=True)
    trip_id = Column(
        Integer,
        ForeignKey("trip.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    car_id = Column(
        Integer,
        ForeignKey("car.id", ondelete="CASCADE"),
        nullable=False,
    )
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    heading = Column(Float, nullable=False, default=0)
    speed = Column(Float)
    accuracy = Column(Float)
    recorded_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
