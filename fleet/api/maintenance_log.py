from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from fleet.api.bearer import bearer_staff
from fleet.src.db import Car, MaintenanceLog, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.loggers import logEvent
from fleet.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from fleet.src.urls import URL_MAINTENANCE_LOG

route_staff = APIRouter()


## Output Schema
class MaintenanceLogSchema(BaseModel):
    id: int
    car_id: int
    maintenance_type: str
    cost: float
    description: Optional[str]
    mileage_at_service: Optional[int]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    car_id: int = Field(Form())
    maintenance_type: str = Field(Form(min_length=1, max_length=64))
    cost: Decimal = Field(Form(ge=0, max_digits=10, decimal_places=2, default=0))
    description: str | None = Field(Form(max_length=2048, default=None))
    mileage_at_service: int | None = Field(Form(ge=0, default=None))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    maintenance_type: str | None = Field(
        Form(min_length=1, max_length=64, default=None)
    )
    cost: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )
    description: str | None = Field(Form(max_length=2048, default=None))
    mileage_at_service: int | None = Field(Form(ge=0, default=None))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    cost = 2
    updated_on = 3
    created_on = 4


class QueryParams(BaseModel):
    car_id: int | None = Field(Query(default=None))
    maintenance_type: str | None = Field(Query(default=None))
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


## API endpoints [Staff]
@route_staff.post(
    URL_MAINTENANCE_LOG,
    tags=["Maintenance Log"],
    response_model=MaintenanceLogSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.UnknownValue]
    ),
    description="""
    Records a service performed on a car.
    Only administrators can record maintenance.
    """,
)
async def create_maintenance_log(
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
            raise exceptions.UnknownValue(MaintenanceLog.car_id)

        maintenanceLog = MaintenanceLog(
            car_id=fParam.car_id,
            maintenance_type=fParam.maintenance_type,
            cost=fParam.cost,
            description=fParam.description,
            mileage_at_service=fParam.mileage_at_service,
        )
        session.add(maintenanceLog)
        session.commit()
        session.refresh(maintenanceLog)

        maintenanceLogData = jsonable_encoder(maintenanceLog)
        logEvent(token, request_info, maintenanceLogData)
        return maintenanceLogData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_MAINTENANCE_LOG,
    tags=["Maintenance Log"],
    response_model=MaintenanceLogSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates a maintenance record.
    Only administrators can update maintenance records.
    """,
)
async def update_maintenance_log(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        maintenanceLog = (
            session.query(MaintenanceLog).filter(MaintenanceLog.id == fParam.id).first()
        )
        if maintenanceLog is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            maintenanceLog,
            fParam,
            [
                MaintenanceLog.maintenance_type.key,
                MaintenanceLog.cost.key,
                MaintenanceLog.description.key,
                MaintenanceLog.mileage_at_service.key,
            ],
        )
        haveUpdates = session.is_modified(maintenanceLog)
        if haveUpdates:
            session.commit()
            session.refresh(maintenanceLog)

        maintenanceLogData = jsonable_encoder(maintenanceLog)
        if haveUpdates:
            logEvent(token, request_info, maintenanceLogData)
        return maintenanceLogData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_MAINTENANCE_LOG,
    tags=["Maintenance Log"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a maintenance record.
    Only administrators can delete maintenance records.
    """,
)
async def delete_maintenance_log(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        maintenanceLog = (
            session.query(MaintenanceLog).filter(MaintenanceLog.id == fParam.id).first()
        )
        if maintenanceLog is not None:
            session.delete(maintenanceLog)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(maintenanceLog))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_MAINTENANCE_LOG,
    tags=["Maintenance Log"],
    response_model=List[MaintenanceLogSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the maintenance records with filtering, sorting and pagination.
    Requires a valid staff token.
    """,
)
async def fetch_maintenance_logs(
    qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)
):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        query = session.query(MaintenanceLog)

        # Filters
        if qParam.car_id is not None:
            query = query.filter(MaintenanceLog.car_id == qParam.car_id)
        if qParam.maintenance_type is not None:
            query = query.filter(
                MaintenanceLog.maintenance_type.ilike(f"%{qParam.maintenance_type}%")
            )
        # id based
        if qParam.id is not None:
            query = query.filter(MaintenanceLog.id == qParam.id)
        if qParam.id_ge is not None:
            query = query.filter(MaintenanceLog.id >= qParam.id_ge)
        if qParam.id_le is not None:
            query = query.filter(MaintenanceLog.id <= qParam.id_le)
        if qParam.id_list is not None:
            query = query.filter(MaintenanceLog.id.in_(qParam.id_list))
        # created_on based
        if qParam.created_on_ge is not None:
            query = query.filter(MaintenanceLog.created_on >= qParam.created_on_ge)
        if qParam.created_on_le is not None:
            query = query.filter(MaintenanceLog.created_on <= qParam.created_on_le)

        # Ordering
        orderingAttribute = getattr(MaintenanceLog, OrderBy(qParam.order_by).name)
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
