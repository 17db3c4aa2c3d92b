from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from fleet.api.bearer import bearer_staff
from fleet.src.db import Car, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.loggers import logEvent
from fleet.src.enums import CarType, TripStatus
from fleet.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from fleet.src.urls import URL_CAR

route_staff = APIRouter()


## Output Schema
class CarSchema(BaseModel):
    id: int
    plate_number: str
    model: str
    year: Optional[int]
    car_type: int
    mileage: int
    current_charge_percent: Optional[int]
    battery_health: Optional[int]
    fuel_level: Optional[int]
    health_score: int
    oil_change_mileage: Optional[int]
    last_oil_change_mileage: Optional[int]
    status: int
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    plate_number: str = Field(Form(min_length=1, max_length=16))
    model: str = Field(Form(min_length=1, max_length=64))
    year: int | None = Field(Form(ge=1950, le=2100, default=None))
    car_type: CarType = Field(Form(description=enumStr(CarType)))
    mileage: int = Field(Form(ge=0, default=0))
    health_score: int = Field(Form(ge=0, le=100, default=100))
    oil_change_mileage: int | None = Field(Form(ge=0, default=None))
    last_oil_change_mileage: int | None = Field(Form(ge=0, default=None))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    plate_number: str | None = Field(Form(min_length=1, max_length=16, default=None))
    model: str | None = Field(Form(min_length=1, max_length=64, default=None))
    year: int | None = Field(Form(ge=1950, le=2100, default=None))
    car_type: CarType | None = Field(Form(description=enumStr(CarType), default=None))
    mileage: int | None = Field(Form(ge=0, default=None))
    current_charge_percent: int | None = Field(Form(ge=0, le=100, default=None))
    battery_health: int | None = Field(Form(ge=0, le=100, default=None))
    fuel_level: int | None = Field(Form(ge=0, le=100, default=None))
    health_score: int | None = Field(Form(ge=0, le=100, default=None))
    oil_change_mileage: int | None = Field(Form(ge=0, default=None))
    last_oil_change_mileage: int | None = Field(Form(ge=0, default=None))
    status: TripStatus | None = Field(
        Form(description=enumStr(TripStatus), default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    mileage = 2
    health_score = 3
    updated_on = 4
    created_on = 5


class QueryParams(BaseModel):
    # filters
    plate_number: str | None = Field(Query(default=None))
    model: str | None = Field(Query(default=None))
    car_type: CarType | None = Field(Query(default=None, description=enumStr(CarType)))
    status: TripStatus | None = Field(
        Query(default=None, description=enumStr(TripStatus))
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # health_score based
    health_score_ge: int | None = Field(Query(default=None))
    health_score_le: int | None = Field(Query(default=None))
    # mileage based
    mileage_ge: int | None = Field(Query(default=None))
    mileage_le: int | None = Field(Query(default=None))
    # updated_on based
    updated_on_ge: datetime | None = Field(Query(default=None))
    updated_on_le: datetime | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def energyDefaults(carType: CarType) -> dict:
    """
    Initial energy readings of a car of the given type.

    Electric cars start fully charged with a healthy battery and no fuel level,
    gas cars start with a full tank and no battery readings.
    """
    if carType == CarType.ELECTRIC:
        return {
            Car.current_charge_percent.key: 100,
            Car.battery_health.key: 100,
            Car.fuel_level.key: None,
        }
    return {
        Car.current_charge_percent.key: None,
        Car.battery_health.key: None,
        Car.fuel_level.key: 100,
    }


def updateCar(car: Car, fParam: UpdateForm):
    if fParam.car_type is not None and fParam.car_type != car.car_type:
        car.car_type = fParam.car_type
        for key, value in energyDefaults(fParam.car_type).items():
            setattr(car, key, value)

    fields = [
        Car.plate_number.key,
        Car.model.key,
        Car.year.key,
        Car.mileage.key,
        Car.health_score.key,
        Car.oil_change_mileage.key,
        Car.last_oil_change_mileage.key,
        Car.status.key,
    ]
    if car.car_type == CarType.ELECTRIC:
        fields += [Car.current_charge_percent.key, Car.battery_health.key]
    else:
        fields += [Car.fuel_level.key]
    updateIfChanged(car, fParam, fields)


def searchCar(session: Session, qParam: QueryParams) -> List[Car]:
    query = session.query(Car)

    # Filters
    if qParam.plate_number is not None:
        query = query.filter(Car.plate_number.ilike(f"%{qParam.plate_number}%"))
    if qParam.model is not None:
        query = query.filter(Car.model.ilike(f"%{qParam.model}%"))
    if qParam.car_type is not None:
        query = query.filter(Car.car_type == qParam.car_type)
    if qParam.status is not None:
        query = query.filter(Car.status == qParam.status)
    # id based
    if qParam.id is not None:
        query = query.filter(Car.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Car.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Car.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Car.id.in_(qParam.id_list))
    # health_score based
    if qParam.health_score_ge is not None:
        query = query.filter(Car.health_score >= qParam.health_score_ge)
    if qParam.health_score_le is not None:
        query = query.filter(Car.health_score <= qParam.health_score_le)
    # mileage based
    if qParam.mileage_ge is not None:
        query = query.filter(Car.mileage >= qParam.mileage_ge)
    if qParam.mileage_le is not None:
        query = query.filter(Car.mileage <= qParam.mileage_le)
    # updated_on based
    if qParam.updated_on_ge is not None:
        query = query.filter(Car.updated_on >= qParam.updated_on_ge)
    if qParam.updated_on_le is not None:
        query = query.filter(Car.updated_on <= qParam.updated_on_le)
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Car.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Car.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Car, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Staff]
@route_staff.post(
    URL_CAR,
    tags=["Car"],
    response_model=CarSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.UniqueViolation]
    ),
    description="""
    Adds a new car to the fleet.
    Only administrators can add cars.
    Electric cars start with current_charge_percent and battery_health at 100 and no fuel_level.
    Gas cars start with fuel_level at 100 and no battery readings.
    The car starts in the IDLE status.
    """,
)
async def create_car(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        car = Car(
            plate_number=fParam.plate_number.strip().upper(),
            model=fParam.model,
            year=fParam.year,
            car_type=fParam.car_type,
            mileage=fParam.mileage,
            health_score=fParam.health_score,
            oil_change_mileage=fParam.oil_change_mileage,
            last_oil_change_mileage=fParam.last_oil_change_mileage,
            status=TripStatus.IDLE,
            **energyDefaults(fParam.car_type),
        )
        session.add(car)
        session.commit()
        session.refresh(car)

        carData = jsonable_encoder(car)
        logEvent(token, request_info, carData)
        return carData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_CAR,
    tags=["Car"],
    response_model=CarSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates an existing car.
    Only administrators can update cars.
    Changing the car_type re-initializes the energy readings like a new car of that type.
    Readings that do not belong to the car type are ignored.
    Changes are saved only if the car data has been modified.
    """,
)
async def update_car(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        car = session.query(Car).filter(Car.id == fParam.id).first()
        if car is None:
            raise exceptions.InvalidIdentifier()

        if fParam.plate_number is not None:
            fParam.plate_number = fParam.plate_number.strip().upper()
        updateCar(car, fParam)
        haveUpdates = session.is_modified(car)
        if haveUpdates:
            session.commit()
            session.refresh(car)

        carData = jsonable_encoder(car)
        if haveUpdates:
            logEvent(token, request_info, carData)
        return carData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_CAR,
    tags=["Car"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a car.
    Only administrators can delete cars.
    Trips, energy logs, maintenance logs and shared locations of the car are deleted with it.
    Ledger entries and preorders keep their rows with the car reference cleared.
    """,
)
async def delete_car(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        car = session.query(Car).filter(Car.id == fParam.id).first()
        if car is not None:
            session.delete(car)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(car))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_CAR,
    tags=["Car"],
    response_model=List[CarSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the cars of the fleet.
    Supports filtering by plate number, model, type, status, health score and metadata.
    Requires a valid staff token.
    """,
)
async def fetch_cars(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return searchCar(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
