from datetime import datetime, timezone

from fleet.api.analytics import (
    dashboardSummary,
    financeSummary,
    healthDistribution,
    tripHistorySummary,
)
from fleet.src.db import Car, Driver, Ledger, Trip
from fleet.src.enums import (
    CarType,
    DriverStatus,
    EntryType,
    ExpenseCategory,
    TripStatus,
)

from conftest import PHONE


def entry(entryType, amount, month, category=None, year=2026):
    return Ledger(
        entry_type=entryType,
        category=category,
        amount=amount,
        created_on=datetime(year, month, 15, tzinfo=timezone.utc),
    )


def test_finance_summary():
    entries = [
        entry(EntryType.INCOME, 1000, 9),
        entry(EntryType.EXPENSE, 200, 9, ExpenseCategory.FUEL),
        entry(EntryType.INCOME, 500, 10),
        entry(EntryType.EXPENSE, 100, 10, ExpenseCategory.TOLL),
        entry(EntryType.EXPENSE, 50, 10),
        entry(EntryType.INCOME, 300, 12, year=2025),
    ]
    summary = financeSummary(entries)

    assert summary["total_income"] == 1800
    assert summary["total_expenses"] == 350
    assert summary["net_profit"] == 1450
    assert summary["profit_margin"] == 80.6
    assert summary["expenses_by_category"] == {"fuel": 200, "toll": 100}
    assert [m["month"] for m in summary["monthly_trend"]] == ["Dec 25", "Sep 26", "Oct 26"]
    assert summary["monthly_trend"][2] == {
        "month": "Oct 26",
        "income": 500,
        "expenses": 150,
        "profit": 350,
    }


def test_finance_summary_without_income():
    summary = financeSummary([entry(EntryType.EXPENSE, 80, 10, ExpenseCategory.REPAIR)])
    assert summary["profit_margin"] == 0
    assert summary["net_profit"] == -80
    assert financeSummary([])["monthly_trend"] == []


def test_health_distribution():
    cars = [Car(health_score=score) for score in [100, 70, 69, 40, 39, None]]
    assert healthDistribution(cars) == {"good": 2, "fair": 2, "poor": 2}


def test_dashboard_summary():
    cars = [
        Car(car_type=CarType.ELECTRIC, health_score=90),
        Car(car_type=CarType.ELECTRIC, health_score=45),
        Car(car_type=CarType.GAS, health_score=30),
    ]
    drivers = [
        Driver(status=DriverStatus.AVAILABLE),
        Driver(status=DriverStatus.BUSY),
    ]
    trips = [
        Trip(status=TripStatus.ON_HIGHWAY),
        Trip(status=TripStatus.IDLE),
        Trip(status=TripStatus.COMPLETED),
        Trip(status=TripStatus.REST_STOP),
    ]
    entries = [
        entry(EntryType.INCOME, 700, 10),
        entry(EntryType.EXPENSE, 60, 10, ExpenseCategory.FUEL),
        entry(EntryType.EXPENSE, 40, 10, ExpenseCategory.CHARGING),
        entry(EntryType.EXPENSE, 99, 10, ExpenseCategory.TOLL),
    ]
    summary = dashboardSummary(cars, drivers, trips, entries)

    assert summary["total_revenue"] == 700
    assert summary["fuel_costs"] == 100
    assert summary["active_trips"] == 2
    assert summary["vehicles_needing_service"] == 2
    assert summary["total_cars"] == 3
    assert summary["electric_cars"] == 2
    assert summary["gas_cars"] == 1
    assert summary["total_drivers"] == 2
    assert summary["available_drivers"] == 1
    assert summary["busy_drivers"] == 1
    assert summary["completed_trips"] == 1


def test_trip_history_summary():
    trips = [Trip(total_fare=450), Trip(total_fare=None), Trip(total_fare=50)]
    assert tripHistorySummary(trips) == {"total_trips": 3, "total_revenue": 500}


def test_analytics_endpoints(client, session, driver):
    car = Car(plate_number="KL01EV1", model="Nexon EV", car_type=CarType.ELECTRIC)
    person = Driver(name="Anil", phone=PHONE)
    session.add_all([car, person])
    session.flush()
    session.add_all(
        [
            Trip(
                car_id=car.id,
                driver_id=person.id,
                status=TripStatus.COMPLETED,
                total_fare=500,
                completed_on=datetime(2026, 10, 10, tzinfo=timezone.utc),
            ),
            Trip(car_id=car.id, status=TripStatus.ON_HIGHWAY, total_fare=300),
            Ledger(entry_type=EntryType.INCOME, amount=500, trip_id=None),
        ]
    )
    session.commit()

    dashboard = client.get("/staff/analytics/dashboard", headers=driver)
    assert dashboard.status_code == 200
    assert dashboard.json()["active_trips"] == 1
    assert dashboard.json()["total_revenue"] == 500
    assert len(dashboard.json()["recent_trips"]) == 2

    finance = client.get("/staff/analytics/finance", headers=driver)
    assert finance.json()["total_income"] == 500

    fleet = client.get("/staff/analytics/fleet", headers=driver)
    assert fleet.json() == {"good": 1, "fair": 0, "poor": 0}

    history = client.get(
        "/staff/analytics/trip_history",
        headers=driver,
        params={"driver_id": person.id},
    )
    assert history.json() == {"total_trips": 1, "total_revenue": 500}
