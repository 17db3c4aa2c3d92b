from datetime import date, datetime, time
from enum import IntEnum
from io import BytesIO
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from fleet.api.bearer import bearer_staff
from fleet.src.constants import PAYMENT_PROOFS
from fleet.src.db import Car, Driver, PaymentProof, Preorder, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.enums import DriverStatus, PreorderStatus, TripStatus
from fleet.src.loggers import logEvent
from fleet.src.minio import downloadFile
from fleet.src.functions import (
    enumStr,
    makeExceptionResponses,
    resizeImage,
    updateIfChanged,
)
from fleet.src.urls import (
    URL_PREORDER,
    URL_PREORDER_ASSIGNMENT,
    URL_PREORDER_PAYMENT_PROOF,
)

route_staff = APIRouter()

PREORDER_TRANSITIONS = {
    PreorderStatus.PENDING: [PreorderStatus.ASSIGNED, PreorderStatus.CANCELLED],
    PreorderStatus.ASSIGNED: [
        PreorderStatus.IN_PROGRESS,
        PreorderStatus.CANCELLED,
        PreorderStatus.PENDING,
    ],
    PreorderStatus.IN_PROGRESS: [PreorderStatus.COMPLETED, PreorderStatus.CANCELLED],
    PreorderStatus.COMPLETED: [],
    PreorderStatus.CANCELLED: [],
}


## Output Schema
class PreorderSchema(BaseModel):
    id: int
    customer_name: str
    customer_phone: str
    customer_address: Optional[str]
    route_id: Optional[int]
    assigned_car_id: Optional[int]
    assigned_driver_id: Optional[int]
    scheduled_date: date
    scheduled_time: time
    notes: Optional[str]
    status: int
    payment_proof_url: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    customer_name: str = Field(Form(min_length=1, max_length=64))
    customer_phone: str = Field(Form(min_length=1, max_length=32))
    customer_address: str | None = Field(Form(max_length=512, default=None))
    route_id: int | None = Field(Form(default=None))
    scheduled_date: date = Field(Form())
    scheduled_time: time = Field(Form())
    notes: str | None = Field(Form(max_length=2048, default=None))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    customer_name: str | None = Field(Form(min_length=1, max_length=64, default=None))
    customer_phone: str | None = Field(Form(min_length=1, max_length=32, default=None))
    customer_address: str | None = Field(Form(max_length=512, default=None))
    route_id: int | None = Field(Form(default=None))
    scheduled_date: date | None = Field(Form(default=None))
    scheduled_time: time | None = Field(Form(default=None))
    notes: str | None = Field(Form(max_length=2048, default=None))
    status: PreorderStatus | None = Field(
        Form(description=enumStr(PreorderStatus), default=None)
    )


class AssignmentForm(BaseModel):
    id: int = Field(Form())
    car_id: int = Field(Form())
    driver_id: int = Field(Form())


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    scheduled_date = 2
    updated_on = 3
    created_on = 4


class ImageQueryParams(BaseModel):
    id: int
    width: int | None = Field(Query(default=None, ge=16, le=2048))
    height: int | None = Field(Query(default=None, ge=16, le=2048))


class QueryParams(BaseModel):
    # filters
    customer_name: str | None = Field(Query(default=None))
    customer_phone: str | None = Field(Query(default=None))
    route_id: int | None = Field(Query(default=None))
    assigned_car_id: int | None = Field(Query(default=None))
    assigned_driver_id: int | None = Field(Query(default=None))
    status: PreorderStatus | None = Field(
        Query(default=None, description=enumStr(PreorderStatus))
    )
    status_list: List[PreorderStatus] | None = Field(
        Query(default=None, description=enumStr(PreorderStatus))
    )
    # scheduled_date based
    scheduled_date_ge: date | None = Field(Query(default=None))
    scheduled_date_le: date | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.scheduled_date, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.ASC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchPreorder(session: Session, qParam: QueryParams) -> List[Preorder]:
    query = session.query(Preorder)

    # Filters
    if qParam.customer_name is not None:
        query = query.filter(Preorder.customer_name.ilike(f"%{qParam.customer_name}%"))
    if qParam.customer_phone is not None:
        query = query.filter(
            Preorder.customer_phone.ilike(f"%{qParam.customer_phone}%")
        )
    if qParam.route_id is not None:
        query = query.filter(Preorder.route_id == qParam.route_id)
    if qParam.assigned_car_id is not None:
        query = query.filter(Preorder.assigned_car_id == qParam.assigned_car_id)
    if qParam.assigned_driver_id is not None:
        query = query.filter(Preorder.assigned_driver_id == qParam.assigned_driver_id)
    if qParam.status is not None:
        query = query.filter(Preorder.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Preorder.status.in_(qParam.status_list))
    # scheduled_date based
    if qParam.scheduled_date_ge is not None:
        query = query.filter(Preorder.scheduled_date >= qParam.scheduled_date_ge)
    if qParam.scheduled_date_le is not None:
        query = query.filter(Preorder.scheduled_date <= qParam.scheduled_date_le)
    # id based
    if qParam.id is not None:
        query = query.filter(Preorder.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Preorder.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Preorder.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Preorder.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Preorder.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Preorder.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Preorder, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc(), Preorder.scheduled_time.asc())
    else:
        query = query.order_by(
            orderingAttribute.desc(), Preorder.scheduled_time.desc()
        )

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Staff]
@route_staff.post(
    URL_PREORDER,
    tags=["Preorder"],
    response_model=PreorderSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Records a preorder taken by the staff, for example over the phone.
    Only administrators can create preorders.
    The preorder starts in the PENDING status without a car or driver.
    """,
)
async def create_preorder(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        preorder = Preorder(
            customer_name=fParam.customer_name,
            customer_phone=fParam.customer_phone,
            customer_address=fParam.customer_address,
            route_id=fParam.route_id,
            scheduled_date=fParam.scheduled_date,
            scheduled_time=fParam.scheduled_time,
            notes=fParam.notes,
            status=PreorderStatus.PENDING,
        )
        session.add(preorder)
        session.commit()
        session.refresh(preorder)

        preorderData = jsonable_encoder(preorder)
        logEvent(token, request_info, preorderData)
        return preorderData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_PREORDER,
    tags=["Preorder"],
    response_model=PreorderSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition,
        ]
    ),
    description="""
    Updates an existing preorder.
    Only administrators can update preorders.
    Status changes must follow the allowed transitions:
    PENDING -> ASSIGNED | CANCELLED,
    ASSIGNED -> IN_PROGRESS | CANCELLED | PENDING,
    IN_PROGRESS -> COMPLETED | CANCELLED.
    COMPLETED and CANCELLED preorders cannot change status.
    """,
)
async def update_preorder(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        preorder = session.query(Preorder).filter(Preorder.id == fParam.id).first()
        if preorder is None:
            raise exceptions.InvalidIdentifier()

        if fParam.status is not None and fParam.status != preorder.status:
            validators.stateTransition(
                PREORDER_TRANSITIONS,
                preorder.status,
                fParam.status,
                Preorder.status.key,
            )
            preorder.status = fParam.status
        updateIfChanged(
            preorder,
            fParam,
            [
                Preorder.customer_name.key,
                Preorder.customer_phone.key,
                Preorder.customer_address.key,
                Preorder.route_id.key,
                Preorder.scheduled_date.key,
                Preorder.scheduled_time.key,
                Preorder.notes.key,
            ],
        )
        haveUpdates = session.is_modified(preorder)
        if haveUpdates:
            session.commit()
            session.refresh(preorder)

        preorderData = jsonable_encoder(preorder)
        if haveUpdates:
            logEvent(token, request_info, preorderData)
        return preorderData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_PREORDER_ASSIGNMENT,
    tags=["Preorder"],
    response_model=PreorderSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.UnknownValue,
            exceptions.InactiveResource,
            exceptions.InvalidStateTransition,
        ]
    ),
    description="""
    Assigns a car and a driver to a preorder and marks it ASSIGNED.
    Only administrators can assign preorders.
    The car must be IDLE and the driver AVAILABLE.
    A PENDING or an already ASSIGNED preorder can be (re)assigned.
    """,
)
async def assign_preorder(
    fParam: AssignmentForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        preorder = session.query(Preorder).filter(Preorder.id == fParam.id).first()
        if preorder is None:
            raise exceptions.InvalidIdentifier()
        if preorder.status != PreorderStatus.ASSIGNED:
            validators.stateTransition(
                PREORDER_TRANSITIONS,
                preorder.status,
                PreorderStatus.ASSIGNED,
                Preorder.status.key,
            )

        car = session.query(Car).filter(Car.id == fParam.car_id).first()
        if car is None:
            raise exceptions.UnknownValue(Preorder.assigned_car_id)
        if car.status != TripStatus.IDLE:
            raise exceptions.InactiveResource(Car)
        driver = session.query(Driver).filter(Driver.id == fParam.driver_id).first()
        if driver is None:
            raise exceptions.UnknownValue(Preorder.assigned_driver_id)
        if driver.status != DriverStatus.AVAILABLE:
            raise exceptions.InactiveResource(Driver)

        preorder.assigned_car_id = car.id
        preorder.assigned_driver_id = driver.id
        preorder.status = PreorderStatus.ASSIGNED
        haveUpdates = session.is_modified(preorder)
        if haveUpdates:
            session.commit()
            session.refresh(preorder)

        preorderData = jsonable_encoder(preorder)
        if haveUpdates:
            logEvent(token, request_info, preorderData)
        return preorderData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_PREORDER,
    tags=["Preorder"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a preorder.
    Only administrators can delete preorders.
    A trip started from the preorder is kept, its `preorder_id` becomes NULL.
    """,
)
async def delete_preorder(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        preorder = session.query(Preorder).filter(Preorder.id == fParam.id).first()
        if preorder is not None:
            session.delete(preorder)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(preorder))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_PREORDER,
    tags=["Preorder"],
    response_model=List[PreorderSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the preorders, by default ordered by the scheduled date and time.
    Filter by customer, route, assigned car and driver, status and scheduled date range.
    Requires a valid staff token.
    """,
)
async def fetch_preorders(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return searchPreorder(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    f"{URL_PREORDER_PAYMENT_PROOF}" + "/{id}",
    tags=["Preorder"],
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Downloads the payment proof uploaded with a public booking.
    Optionally resized to fit inside `width` x `height`, keeping the aspect ratio.
    Requires a valid staff token.
    """,
)
async def download_payment_proof(
    qParam: ImageQueryParams = Depends(),
    bearer=Depends(bearer_staff),
):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        proof = session.query(PaymentProof).filter(PaymentProof.id == qParam.id).first()
        if proof is None:
            raise exceptions.InvalidIdentifier()

        fileBytes = downloadFile(PAYMENT_PROOFS, str(proof.id))
        if qParam.width is not None or qParam.height is not None:
            fileBytes = resizeImage(
                fileBytes,
                width=qParam.width,
                height=qParam.height,
            )
        return StreamingResponse(
            BytesIO(fileBytes),
            media_type=proof.file_type,
            headers={
                "Content-Disposition": f"file_name={proof.file_name}",
                "Cache-Control": "private, max-age=3600",
            },
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
