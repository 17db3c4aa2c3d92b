from datetime import datetime, timezone
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from fleet.api.bearer import bearer_staff
from fleet.src.db import Car, Driver, Ledger, Preorder, Route, Trip, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.enums import DriverStatus, EntryType, PreorderStatus, TripStatus
from fleet.src.loggers import logEvent
from fleet.src.redis import acquireLock, releaseLock
from fleet.src.functions import enumStr, makeExceptionResponses
from fleet.src.urls import URL_TRIP

route_staff = APIRouter()

ACTIVE_TRIP_STATUSES = [
    TripStatus.IDLE,
    TripStatus.HEADING_TO_PICKUP,
    TripStatus.ON_HIGHWAY,
    TripStatus.REST_STOP,
]
TRIP_TRANSITIONS = {
    state: [s for s in TripStatus if s != state] for state in ACTIVE_TRIP_STATUSES
}
TRIP_TRANSITIONS[TripStatus.COMPLETED] = []


## Output Schema
class TripSchema(BaseModel):
    id: int
    car_id: int
    driver_id: Optional[int]
    route_id: Optional[int]
    preorder_id: Optional[int]
    status: int
    started_on: datetime
    completed_on: Optional[datetime]
    total_fare: float
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    preorder_id: int | None = Field(
        Form(default=None, description="Start the trip of an assigned preorder")
    )
    car_id: int | None = Field(Form(default=None))
    driver_id: int | None = Field(Form(default=None))
    route_id: int | None = Field(Form(default=None))
    total_fare: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )


class UpdateForm(BaseModel):
    id: int = Field(Form())
    status: TripStatus = Field(Form(description=enumStr(TripStatus)))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    started_on = 2
    completed_on = 3
    total_fare = 4
    created_on = 5


class QueryParams(BaseModel):
    # filters
    car_id: int | None = Field(Query(default=None))
    driver_id: int | None = Field(Query(default=None))
    route_id: int | None = Field(Query(default=None))
    preorder_id: int | None = Field(Query(default=None))
    status: TripStatus | None = Field(
        Query(default=None, description=enumStr(TripStatus))
    )
    status_list: List[TripStatus] | None = Field(
        Query(default=None, description=enumStr(TripStatus))
    )
    active: bool | None = Field(
        Query(default=None, description="Only trips that are not completed")
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # started_on based
    started_on_ge: datetime | None = Field(Query(default=None))
    started_on_le: datetime | None = Field(Query(default=None))
    # completed_on based
    completed_on_ge: datetime | None = Field(Query(default=None))
    completed_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.started_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def filterTrips(query, qParam: QueryParams):
    if qParam.car_id is not None:
        query = query.filter(Trip.car_id == qParam.car_id)
    if qParam.driver_id is not None:
        query = query.filter(Trip.driver_id == qParam.driver_id)
    if qParam.route_id is not None:
        query = query.filter(Trip.route_id == qParam.route_id)
    if qParam.preorder_id is not None:
        query = query.filter(Trip.preorder_id == qParam.preorder_id)
    if qParam.status is not None:
        query = query.filter(Trip.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Trip.status.in_(qParam.status_list))
    if qParam.active is True:
        query = query.filter(Trip.status != TripStatus.COMPLETED)
    elif qParam.active is False:
        query = query.filter(Trip.status == TripStatus.COMPLETED)
    # id based
    if qParam.id is not None:
        query = query.filter(Trip.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Trip.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Trip.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Trip.id.in_(qParam.id_list))
    # started_on based
    if qParam.started_on_ge is not None:
        query = query.filter(Trip.started_on >= qParam.started_on_ge)
    if qParam.started_on_le is not None:
        query = query.filter(Trip.started_on <= qParam.started_on_le)
    # completed_on based
    if qParam.completed_on_ge is not None:
        query = query.filter(Trip.completed_on >= qParam.completed_on_ge)
    if qParam.completed_on_le is not None:
        query = query.filter(Trip.completed_on <= qParam.completed_on_le)
    return query


def searchTrip(session: Session, qParam: QueryParams) -> List[Trip]:
    query = filterTrips(session.query(Trip), qParam)

    # Ordering
    orderingAttribute = getattr(Trip, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def dispatchTrip(session: Session, trip: Trip) -> None:
    """Put the car and driver of a newly started trip on duty."""
    car = session.query(Car).filter(Car.id == trip.car_id).first()
    if car is not None:
        car.status = trip.status
    if trip.driver_id is not None:
        driver = session.query(Driver).filter(Driver.id == trip.driver_id).first()
        if driver is not None:
            driver.status = DriverStatus.BUSY


def completeTrip(session: Session, trip: Trip) -> Optional[Ledger]:
    """
    Apply the side effects of a completed trip to the session.

    The linked preorder is completed, the fare is booked as income,
    the car becomes IDLE and the driver AVAILABLE again.
    Nothing is committed here, the caller commits the trip together
    with every row touched, so the cascade is applied entirely or not at all.

    Returns:
        Optional[Ledger]: The income entry, None when the trip has no fare.
    """
    trip.completed_on = datetime.now(timezone.utc)

    if trip.preorder_id is not None:
        preorder = session.query(Preorder).filter(Preorder.id == trip.preorder_id).first()
        if preorder is not None:
            preorder.status = PreorderStatus.COMPLETED

    income = None
    if trip.total_fare is not None and trip.total_fare > 0:
        income = Ledger(
            entry_type=EntryType.INCOME,
            category=None,
            amount=trip.total_fare,
            description=f"Trip fare (trip #{trip.id})",
            car_id=trip.car_id,
            driver_id=trip.driver_id,
            trip_id=trip.id,
        )
        session.add(income)

    car = session.query(Car).filter(Car.id == trip.car_id).first()
    if car is not None:
        car.status = TripStatus.IDLE
    if trip.driver_id is not None:
        driver = session.query(Driver).filter(Driver.id == trip.driver_id).first()
        if driver is not None:
            driver.status = DriverStatus.AVAILABLE
    return income


## API endpoints [Staff]
@route_staff.post(
    URL_TRIP,
    tags=["Trip"],
    response_model=TripSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.MissingParameter,
            exceptions.UnknownValue,
            exceptions.InactiveResource,
        ]
    ),
    description="""
    Starts a trip.
    Only administrators can start trips.
    When `preorder_id` is given the preorder must be ASSIGNED, the trip takes its car,
    driver and route, the fare is the base price of the route and the preorder
    becomes IN_PROGRESS.
    Otherwise `car_id` is required and the driver, route and fare are optional,
    a missing fare defaults to the base price of the route.
    The trip starts HEADING_TO_PICKUP, the car takes the same status
    and the driver becomes BUSY, all in one transaction.
    """,
)
async def create_trip(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        if fParam.preorder_id is not None:
            preorder = (
                session.query(Preorder)
                .filter(Preorder.id == fParam.preorder_id)
                .first()
            )
            if preorder is None:
                raise exceptions.UnknownValue(Trip.preorder_id)
            if (
                preorder.status != PreorderStatus.ASSIGNED
                or preorder.assigned_car_id is None
            ):
                raise exceptions.InactiveResource(Preorder)
            carID = preorder.assigned_car_id
            driverID = preorder.assigned_driver_id
            routeID = preorder.route_id
            fare = None
            preorder.status = PreorderStatus.IN_PROGRESS
        else:
            if fParam.car_id is None:
                raise exceptions.MissingParameter(Trip.car_id)
            carID = fParam.car_id
            driverID = fParam.driver_id
            routeID = fParam.route_id
            fare = fParam.total_fare

        car = session.query(Car.id).filter(Car.id == carID).first()
        if car is None:
            raise exceptions.UnknownValue(Trip.car_id)
        if driverID is not None:
            driver = session.query(Driver.id).filter(Driver.id == driverID).first()
            if driver is None:
                raise exceptions.UnknownValue(Trip.driver_id)
        if fare is None:
            fare = 0
            if routeID is not None:
                route = session.query(Route).filter(Route.id == routeID).first()
                if route is None:
                    raise exceptions.UnknownValue(Trip.route_id)
                fare = route.base_price

        trip = Trip(
            car_id=carID,
            driver_id=driverID,
            route_id=routeID,
            preorder_id=fParam.preorder_id,
            status=TripStatus.HEADING_TO_PICKUP,
            total_fare=fare,
        )
        session.add(trip)
        dispatchTrip(session, trip)
        session.commit()
        session.refresh(trip)

        tripData = jsonable_encoder(trip)
        logEvent(token, request_info, tripData)
        return tripData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_TRIP,
    tags=["Trip"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Changes the status of a trip.
    Administrators and drivers can change the trip status.
    Any status other than COMPLETED can move to any other status, COMPLETED is terminal.
    The car status follows the trip status.
    Completing a trip sets `completed_on`, completes the linked preorder,
    books the fare (when above zero) as an INCOME ledger entry,
    sets the car IDLE and the driver AVAILABLE.
    The trip row is locked while the change is applied, and the trip together
    with every dependent row is saved in a single transaction.
    """,
)
async def update_trip(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    tripLock = None
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.staffPermission(role)

        tripLock = acquireLock(Trip.__tablename__, fParam.id)
        trip = session.query(Trip).filter(Trip.id == fParam.id).first()
        if trip is None:
            raise exceptions.InvalidIdentifier()
        if trip.status == fParam.status:
            return jsonable_encoder(trip)

        validators.stateTransition(
            TRIP_TRANSITIONS, trip.status, fParam.status, Trip.status.key
        )
        trip.status = fParam.status
        if fParam.status == TripStatus.COMPLETED:
            completeTrip(session, trip)
        else:
            car = session.query(Car).filter(Car.id == trip.car_id).first()
            if car is not None:
                car.status = fParam.status
        session.commit()
        session.refresh(trip)

        tripData = jsonable_encoder(trip)
        logEvent(token, request_info, tripData)
        return tripData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(tripLock)
        session.close()


@route_staff.delete(
    URL_TRIP,
    tags=["Trip"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a trip and its shared locations.
    Only administrators can delete trips.
    Ledger entries of the trip are kept with the trip reference cleared.
    """,
)
async def delete_trip(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        trip = session.query(Trip).filter(Trip.id == fParam.id).first()
        if trip is not None:
            session.delete(trip)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(trip))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_TRIP,
    tags=["Trip"],
    response_model=List[TripSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the trips, latest started first by default.
    Use `active=true` for the live trips and `status=COMPLETED` together with the
    `completed_on` range, driver and route filters for the trip history.
    Requires a valid staff token.
    """,
)
async def fetch_trips(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return searchTrip(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
