"""
Reporting endpoints of the staff dashboard.

The figures are computed in Python from the rows of the ledger, car, driver
and trip tables by the plain functions below, the endpoints only load rows.
"""

from datetime import datetime
from typing import Dict, Iterable, List
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from fleet.api.bearer import bearer_staff
from fleet.api.trip import TripSchema
from fleet.src.constants import (
    HEALTH_FAIR_THRESHOLD,
    HEALTH_GOOD_THRESHOLD,
    HEALTH_SERVICE_THRESHOLD,
    RECENT_TRIP_COUNT,
)
from fleet.src.db import Car, Driver, Ledger, Trip, sessionMaker
from fleet.src import exceptions, validators
from fleet.src.enums import (
    CarType,
    DriverStatus,
    EntryType,
    ExpenseCategory,
    TripStatus,
)
from fleet.src.functions import makeExceptionResponses, toFloat
from fleet.src.urls import (
    URL_ANALYTICS_DASHBOARD,
    URL_ANALYTICS_FINANCE,
    URL_ANALYTICS_FLEET,
    URL_ANALYTICS_TRIP_HISTORY,
)

route_staff = APIRouter()


## Output Schema
class MonthlyTrendSchema(BaseModel):
    month: str
    income: float
    expenses: float
    profit: float


class FinanceSchema(BaseModel):
    total_income: float
    total_expenses: float
    net_profit: float
    profit_margin: float
    expenses_by_category: Dict[str, float]
    monthly_trend: List[MonthlyTrendSchema]


class HealthDistributionSchema(BaseModel):
    good: int
    fair: int
    poor: int


class DashboardSchema(BaseModel):
    total_revenue: float
    fuel_costs: float
    active_trips: int
    vehicles_needing_service: int
    total_cars: int
    electric_cars: int
    gas_cars: int
    total_drivers: int
    available_drivers: int
    busy_drivers: int
    completed_trips: int
    recent_trips: List[TripSchema]


class TripHistorySchema(BaseModel):
    total_trips: int
    total_revenue: float


## Query Parameters
class TripHistoryParams(BaseModel):
    driver_id: int | None = Field(Query(default=None))
    route_id: int | None = Field(Query(default=None))
    completed_on_ge: datetime | None = Field(Query(default=None))
    completed_on_le: datetime | None = Field(Query(default=None))


## Function
def financeSummary(entries: Iterable[Ledger]) -> dict:
    """
    Income, expenses and profit over the given ledger entries.

    The profit margin is a percentage rounded to one decimal, 0 without income.
    Expenses without a category are left out of the category breakdown.
    The monthly trend is keyed like "Oct 26" and sorted chronologically.
    """
    totalIncome = 0.0
    totalExpenses = 0.0
    byCategory = {}
    months = {}
    for entry in entries:
        amount = toFloat(entry.amount)
        monthKey = (entry.created_on.year, entry.created_on.month)
        month = months.setdefault(
            monthKey,
            {
                "month": entry.created_on.strftime("%b %y"),
                "income": 0.0,
                "expenses": 0.0,
            },
        )
        if entry.entry_type == EntryType.INCOME:
            totalIncome += amount
            month["income"] += amount
        else:
            totalExpenses += amount
            month["expenses"] += amount
            if entry.category is not None:
                name = ExpenseCategory(entry.category).name.lower()
                byCategory[name] = byCategory.get(name, 0.0) + amount

    netProfit = totalIncome - totalExpenses
    profitMargin = round(netProfit / totalIncome * 100, 1) if totalIncome > 0 else 0
    trend = []
    for key in sorted(months):
        month = months[key]
        month["profit"] = month["income"] - month["expenses"]
        trend.append(month)
    return {
        "total_income": totalIncome,
        "total_expenses": totalExpenses,
        "net_profit": netProfit,
        "profit_margin": profitMargin,
        "expenses_by_category": byCategory,
        "monthly_trend": trend,
    }


def healthDistribution(cars: Iterable[Car]) -> dict:
    distribution = {"good": 0, "fair": 0, "poor": 0}
    for car in cars:
        score = car.health_score or 0
        if score >= HEALTH_GOOD_THRESHOLD:
            distribution["good"] += 1
        elif score >= HEALTH_FAIR_THRESHOLD:
            distribution["fair"] += 1
        else:
            distribution["poor"] += 1
    return distribution


def dashboardSummary(
    cars: List[Car], drivers: List[Driver], trips: List[Trip], entries: List[Ledger]
) -> dict:
    fuelCategories = [ExpenseCategory.FUEL, ExpenseCategory.CHARGING]
    return {
        "total_revenue": sum(
            toFloat(e.amount) for e in entries if e.entry_type == EntryType.INCOME
        ),
        "fuel_costs": sum(
            toFloat(e.amount) for e in entries if e.category in fuelCategories
        ),
        "active_trips": len(
            [
                t
                for t in trips
                if t.status not in [TripStatus.COMPLETED, TripStatus.IDLE]
            ]
        ),
        "vehicles_needing_service": len(
            [c for c in cars if (c.health_score or 0) < HEALTH_SERVICE_THRESHOLD]
        ),
        "total_cars": len(cars),
        "electric_cars": len([c for c in cars if c.car_type == CarType.ELECTRIC]),
        "gas_cars": len([c for c in cars if c.car_type == CarType.GAS]),
        "total_drivers": len(drivers),
        "available_drivers": len(
            [d for d in drivers if d.status == DriverStatus.AVAILABLE]
        ),
        "busy_drivers": len([d for d in drivers if d.status == DriverStatus.BUSY]),
        "completed_trips": len([t for t in trips if t.status == TripStatus.COMPLETED]),
    }


def tripHistorySummary(trips: Iterable[Trip]) -> dict:
    trips = list(trips)
    return {
        "total_trips": len(trips),
        "total_revenue": sum(toFloat(t.total_fare) for t in trips),
    }


## API endpoints [Staff]
@route_staff.get(
    URL_ANALYTICS_FINANCE,
    tags=["Analytics"],
    response_model=FinanceSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Financial overview computed from the whole ledger.
    Total income and expenses, net profit, profit margin,
    expenses grouped by category and the monthly income/expense trend.
    """,
)
async def fetch_finance(bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        entries = session.query(Ledger).order_by(Ledger.created_on.asc()).all()
        return financeSummary(entries)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_ANALYTICS_FLEET,
    tags=["Analytics"],
    response_model=HealthDistributionSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fleet health distribution.
    Cars with a health score of 70 or more are good, 40 to 69 fair, below 40 poor.
    """,
)
async def fetch_fleet_health(bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return healthDistribution(session.query(Car).all())
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_ANALYTICS_DASHBOARD,
    tags=["Analytics"],
    response_model=DashboardSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Key figures of the dashboard.
    Revenue, fuel and charging costs, active trips, cars needing service,
    the car and driver counts by type and status, completed trips
    and the five most recently started trips.
    """,
)
async def fetch_dashboard(bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        trips = session.query(Trip).order_by(Trip.started_on.desc(), Trip.id.desc()).all()
        summary = dashboardSummary(
            session.query(Car).all(),
            session.query(Driver).all(),
            trips,
            session.query(Ledger).all(),
        )
        summary["recent_trips"] = trips[:RECENT_TRIP_COUNT]
        return summary
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_ANALYTICS_TRIP_HISTORY,
    tags=["Analytics"],
    response_model=TripHistorySchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Number and revenue of the completed trips.
    Accepts the same driver, route and completion date filters as the trip history.
    """,
)
async def fetch_trip_history(
    qParam: TripHistoryParams = Depends(), bearer=Depends(bearer_staff)
):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        query = session.query(Trip).filter(Trip.status == TripStatus.COMPLETED)
        if qParam.driver_id is not None:
            query = query.filter(Trip.driver_id == qParam.driver_id)
        if qParam.route_id is not None:
            query = query.filter(Trip.route_id == qParam.route_id)
        if qParam.completed_on_ge is not None:
            query = query.filter(Trip.completed_on >= qParam.completed_on_ge)
        if qParam.completed_on_le is not None:
            query = query.filter(Trip.completed_on <= qParam.completed_on_le)
        return tripHistorySummary(query.all())
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
