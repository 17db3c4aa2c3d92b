from enum import IntEnum


class AppID(IntEnum):
    STAFF = 1
    PUBLIC = 2


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class AccountStatus(IntEnum):
    ACTIVE = 1
    SUSPENDED = 2


class PlatformType(IntEnum):
    OTHER = 1
    WEB = 2
    NATIVE = 3
    SERVER = 4


class Role(IntEnum):
    ADMIN = 1
    DRIVER = 2


class CarType(IntEnum):
    ELECTRIC = 1
    GAS = 2


class TripStatus(IntEnum):
    IDLE = 1
    HEADING_TO_PICKUP = 2
    ON_HIGHWAY = 3
    REST_STOP = 4
    COMPLETED = 5


class DriverStatus(IntEnum):
    AVAILABLE = 1
    BUSY = 2


class PreorderStatus(IntEnum):
    PENDING = 1
    ASSIGNED = 2
    IN_PROGRESS = 3
    COMPLETED = 4
    CANCELLED = 5


class EntryType(IntEnum):
    INCOME = 1
    EXPENSE = 2


class ExpenseCategory(IntEnum):
    FUEL = 1
    CHARGING = 2
    TOLL = 3
    COMMISSION = 4
    REPAIR = 5
    MAINTENANCE = 6
    OTHER = 7


class EnergyLogType(IntEnum):
    CHARGING = 1
    FUELING = 2
