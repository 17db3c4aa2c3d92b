from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, EmailStr
from pydantic_extra_types.phone_numbers import PhoneNumber

from fleet.api.bearer import bearer_staff
from fleet.src.db import Driver, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.loggers import logEvent
from fleet.src.enums import DriverStatus
from fleet.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from fleet.src.urls import URL_DRIVER

route_staff = APIRouter()


## Output Schema
class DriverSchema(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str]
    hours_driven_today: float
    license_uploaded: bool
    permit_uploaded: bool
    status: int
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=1, max_length=64))
    phone: PhoneNumber = Field(
        Form(max_length=32, description="Phone number in RFC3966 format")
    )
    email: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )
    hours_driven_today: float = Field(Form(ge=0, le=24, default=0))
    license_uploaded: bool = Field(Form(default=False))
    permit_uploaded: bool = Field(Form(default=False))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(min_length=1, max_length=64, default=None))
    phone: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )
    email: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )
    hours_driven_today: float | None = Field(Form(ge=0, le=24, default=None))
    license_uploaded: bool | None = Field(Form(default=None))
    permit_uploaded: bool | None = Field(Form(default=None))
    status: DriverStatus | None = Field(
        Form(description=enumStr(DriverStatus), default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    name = 2
    hours_driven_today = 3
    updated_on = 4
    created_on = 5


class QueryParams(BaseModel):
    # filters
    name: str | None = Field(Query(default=None))
    phone: str | None = Field(Query(default=None))
    email: str | None = Field(Query(default=None))
    status: DriverStatus | None = Field(
        Query(default=None, description=enumStr(DriverStatus))
    )
    license_uploaded: bool | None = Field(Query(default=None))
    permit_uploaded: bool | None = Field(Query(default=None))
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
def searchDriver(session: Session, qParam: QueryParams) -> List[Driver]:
    query = session.query(Driver)

    # Filters
    if qParam.name is not None:
        query = query.filter(Driver.name.ilike(f"%{qParam.name}%"))
    if qParam.phone is not None:
        query = query.filter(Driver.phone.ilike(f"%{qParam.phone}%"))
    if qParam.email is not None:
        query = query.filter(Driver.email.ilike(f"%{qParam.email}%"))
    if qParam.status is not None:
        query = query.filter(Driver.status == qParam.status)
    if qParam.license_uploaded is not None:
        query = query.filter(Driver.license_uploaded == qParam.license_uploaded)
    if qParam.permit_uploaded is not None:
        query = query.filter(Driver.permit_uploaded == qParam.permit_uploaded)
    # id based
    if qParam.id is not None:
        query = query.filter(Driver.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Driver.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Driver.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Driver.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Driver.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Driver.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Driver, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Staff]
@route_staff.post(
    URL_DRIVER,
    tags=["Driver"],
    response_model=DriverSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Adds a new driver.
    Only administrators can add drivers.
    The driver starts in the AVAILABLE status.
    """,
)
async def create_driver(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        driver = Driver(
            name=fParam.name,
            phone=fParam.phone,
            email=fParam.email,
            hours_driven_today=fParam.hours_driven_today,
            license_uploaded=fParam.license_uploaded,
            permit_uploaded=fParam.permit_uploaded,
            status=DriverStatus.AVAILABLE,
        )
        session.add(driver)
        session.commit()
        session.refresh(driver)

        driverData = jsonable_encoder(driver)
        logEvent(token, request_info, driverData)
        return driverData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_DRIVER,
    tags=["Driver"],
    response_model=DriverSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates an existing driver.
    Only administrators can update drivers.
    Changes are saved only if the driver data has been modified.
    """,
)
async def update_driver(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        driver = session.query(Driver).filter(Driver.id == fParam.id).first()
        if driver is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            driver,
            fParam,
            [
                Driver.name.key,
                Driver.phone.key,
                Driver.email.key,
                Driver.hours_driven_today.key,
                Driver.license_uploaded.key,
                Driver.permit_uploaded.key,
                Driver.status.key,
            ],
        )
        haveUpdates = session.is_modified(driver)
        if haveUpdates:
            session.commit()
            session.refresh(driver)

        driverData = jsonable_encoder(driver)
        if haveUpdates:
            logEvent(token, request_info, driverData)
        return driverData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_DRIVER,
    tags=["Driver"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a driver.
    Only administrators can delete drivers.
    Trips, preorders and ledger entries keep their rows with the driver reference cleared.
    """,
)
async def delete_driver(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        driver = session.query(Driver).filter(Driver.id == fParam.id).first()
        if driver is not None:
            session.delete(driver)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(driver))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_DRIVER,
    tags=["Driver"],
    response_model=List[DriverSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the drivers.
    Supports filtering by name, contact details, status and document flags.
    Requires a valid staff token.
    """,
)
async def fetch_drivers(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return searchDriver(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
