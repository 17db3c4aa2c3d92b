from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from shapely.geometry import Point

from fleet.api.bearer import bearer_staff
from fleet.src.constants import MPS_TO_KMPH
from fleet.src.db import Trip, VehicleLocation, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.enums import TripStatus
from fleet.src.loggers import logEvent
from fleet.src.functions import enumStr, makeExceptionResponses
from fleet.src.urls import URL_TRIP_LOCATION, URL_TRIP_LOCATION_LATEST

route_staff = APIRouter()


## Output Schema
class VehicleLocationSchema(BaseModel):
    id: int
    trip_id: int
    car_id: int
    latitude: float
    longitude: float
    heading: float
    speed: Optional[float]
    accuracy: Optional[float]
    recorded_on: datetime


## Input Forms
class CreateForm(BaseModel):
    trip_id: int = Field(Form())
    location: str = Field(
        Form(
            max_length=128,
            description="Accepts only SRID 4326 (WGS84), as a WKT POINT (longitude latitude)",
        )
    )
    heading: float = Field(Form(ge=0, le=360, default=0))
    speed: float | None = Field(
        Form(ge=0, default=None, description="Speed in meters per second")
    )
    accuracy: float | None = Field(
        Form(ge=0, default=None, description="Accuracy radius in meters")
    )


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    recorded_on = 2


class QueryParams(BaseModel):
    trip_id: int | None = Field(Query(default=None))
    car_id: int | None = Field(Query(default=None))
    # recorded_on based
    recorded_on_ge: datetime | None = Field(Query(default=None))
    recorded_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.recorded_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def latestLocations(session) -> List[VehicleLocation]:
    """Most recent location of every trip that is not completed."""
    locations = (
        session.query(VehicleLocation)
        .join(Trip, Trip.id == VehicleLocation.trip_id)
        .filter(Trip.status != TripStatus.COMPLETED)
        .order_by(VehicleLocation.recorded_on.desc(), VehicleLocation.id.desc())
        .all()
    )
    latest = {}
    for location in locations:
        latest.setdefault(location.trip_id, location)
    return list(latest.values())


## API endpoints [Staff]
@route_staff.post(
    URL_TRIP_LOCATION,
    tags=["Trip Location"],
    response_model=VehicleLocationSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidWKTStringOrType,
            exceptions.InvalidSRID4326,
            exceptions.UnknownValue,
            exceptions.InactiveResource,
        ]
    ),
    description="""
    Shares the current location of the car serving a trip.
    Administrators and drivers can share locations.
    The trip must not be completed.
    The speed is given in meters per second and stored in kilometers per hour.
    """,
)
async def create_location(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.staffPermission(role)

        wktLocation = validators.WKTstring(fParam.location, Point)
        validators.SRID4326(wktLocation)
        trip = session.query(Trip).filter(Trip.id == fParam.trip_id).first()
        if trip is None:
            raise exceptions.UnknownValue(VehicleLocation.trip_id)
        if trip.status == TripStatus.COMPLETED:
            raise exceptions.InactiveResource(Trip)

        speed = None
        if fParam.speed is not None:
            speed = round(fParam.speed * MPS_TO_KMPH, 2)
        location = VehicleLocation(
            trip_id=trip.id,
            car_id=trip.car_id,
            latitude=wktLocation.y,
            longitude=wktLocation.x,
            heading=fParam.heading,
            speed=speed,
            accuracy=fParam.accuracy,
        )
        session.add(location)
        session.commit()
        session.refresh(location)

        locationData = jsonable_encoder(location)
        logEvent(token, request_info, locationData)
        return locationData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_TRIP_LOCATION,
    tags=["Trip Location"],
    response_model=List[VehicleLocationSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the shared locations, newest first by default.
    Requires a valid staff token.
    """,
)
async def fetch_locations(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        query = session.query(VehicleLocation)
        if qParam.trip_id is not None:
            query = query.filter(VehicleLocation.trip_id == qParam.trip_id)
        if qParam.car_id is not None:
            query = query.filter(VehicleLocation.car_id == qParam.car_id)
        if qParam.recorded_on_ge is not None:
            query = query.filter(VehicleLocation.recorded_on >= qParam.recorded_on_ge)
        if qParam.recorded_on_le is not None:
            query = query.filter(VehicleLocation.recorded_on <= qParam.recorded_on_le)

        # Ordering
        orderingAttribute = getattr(VehicleLocation, OrderBy(qParam.order_by).name)
        if qParam.order_in == OrderIn.ASC:
            query = query.order_by(orderingAttribute.asc())
        else:
            query = query.order_by(orderingAttribute.desc())

        # Pagination
        query = query.offset(qParam.offset).limit(qParam.limit)
        return query.all()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_TRIP_LOCATION_LATEST,
    tags=["Trip Location"],
    response_model=List[VehicleLocationSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the most recent location of each active trip, for the live map.
    Requires a valid staff token.
    """,
)
async def fetch_latest_locations(bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return latestLocations(session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
