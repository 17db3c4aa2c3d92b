from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from fleet.api.bearer import bearer_staff
from fleet.src.db import Car, EnergyLog, Ledger, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.enums import EnergyLogType, EntryType, ExpenseCategory
from fleet.src.loggers import logEvent
from fleet.src.functions import enumStr, makeExceptionResponses
from fleet.src.urls import URL_ENERGY_LOG

route_staff = APIRouter()


## Output Schema
class EnergyLogSchema(BaseModel):
    id: int
    car_id: int
    log_type: int
    location: Optional[str]
    amount: float
    cost: float
    kwh: Optional[float]
    price_per_unit: Optional[float]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    car_id: int = Field(Form())
    log_type: EnergyLogType = Field(Form(description=enumStr(EnergyLogType)))
    location: str = Field(Form(min_length=1, max_length=128))
    amount: Decimal = Field(
        Form(gt=0, max_digits=10, decimal_places=2, description="Litres or kWh")
    )
    cost: Decimal = Field(Form(ge=0, max_digits=10, decimal_places=2))
    kwh: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )
    price_per_unit: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    cost = 2
    created_on = 3


class QueryParams(BaseModel):
    car_id: int | None = Field(Query(default=None))
    log_type: EnergyLogType | None = Field(
        Query(default=None, description=enumStr(EnergyLogType))
    )
    location: str | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
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
def energyExpense(energyLog: EnergyLog) -> Ledger:
    if energyLog.log_type == EnergyLogType.CHARGING:
        category = ExpenseCategory.CHARGING
        description = f"Charging at {energyLog.location}"
    else:
        category = ExpenseCategory.FUEL
        description = f"Fuel at {energyLog.location}"
    return Ledger(
        entry_type=EntryType.EXPENSE,
        category=category,
        amount=energyLog.cost,
        description=description,
        car_id=energyLog.car_id,
    )


## API endpoints [Staff]
@route_staff.post(
    URL_ENERGY_LOG,
    tags=["Energy Log"],
    response_model=EnergyLogSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.UnknownValue]
    ),
    description="""
    Records a charging or fueling stop of a car.
    Only administrators can record energy logs.
    `kwh` is kept for CHARGING logs only.
    The cost is booked as a ledger EXPENSE (category CHARGING or FUEL)
    in the same transaction as the log.
    """,
)
async def create_energy_log(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        car = session.query(Car.id).filter(Car.id == fParam.car_id).first()
        if car is None:
            raise exceptions.UnknownValue(EnergyLog.car_id)

        energyLog = EnergyLog(
            car_id=fParam.car_id,
            log_type=fParam.log_type,
            location=fParam.location,
            amount=fParam.amount,
            cost=fParam.cost,
            kwh=fParam.kwh if fParam.log_type == EnergyLogType.CHARGING else None,
            price_per_unit=fParam.price_per_unit,
        )
        session.add(energyLog)
        session.add(energyExpense(energyLog))
        session.commit()
        session.refresh(energyLog)

        energyLogData = jsonable_encoder(energyLog)
        logEvent(token, request_info, energyLogData)
        return energyLogData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_ENERGY_LOG,
    tags=["Energy Log"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes an energy log.
    Only administrators can delete energy logs.
    The ledger expense booked for it is left in place.
    """,
)
async def delete_energy_log(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        energyLog = session.query(EnergyLog).filter(EnergyLog.id == fParam.id).first()
        if energyLog is not None:
            session.delete(energyLog)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(energyLog))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_ENERGY_LOG,
    tags=["Energy Log"],
    response_model=List[EnergyLogSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the energy logs with filtering, sorting and pagination.
    Requires a valid staff token.
    """,
)
async def fetch_energy_logs(
    qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)
):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        query = session.query(EnergyLog)

        # Filters
        if qParam.car_id is not None:
            query = query.filter(EnergyLog.car_id == qParam.car_id)
        if qParam.log_type is not None:
            query = query.filter(EnergyLog.log_type == qParam.log_type)
        if qParam.location is not None:
            query = query.filter(EnergyLog.location.ilike(f"%{qParam.location}%"))
        # id based
        if qParam.id is not None:
            query = query.filter(EnergyLog.id == qParam.id)
        if qParam.id_ge is not None:
            query = query.filter(EnergyLog.id >= qParam.id_ge)
        if qParam.id_le is not None:
            query = query.filter(EnergyLog.id <= qParam.id_le)
        if qParam.id_list is not None:
            query = query.filter(EnergyLog.id.in_(qParam.id_list))
        # created_on based
        if qParam.created_on_ge is not None:
            query = query.filter(EnergyLog.created_on >= qParam.created_on_ge)
        if qParam.created_on_le is not None:
            query = query.filter(EnergyLog.created_on <= qParam.created_on_le)

        # Ordering
        orderingAttribute = getattr(EnergyLog, OrderBy(qParam.order_by).name)
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
