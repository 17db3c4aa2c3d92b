from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from fleet.api.bearer import bearer_staff
from fleet.src.db import Ledger, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.enums import EntryType, ExpenseCategory
from fleet.src.loggers import logEvent
from fleet.src.functions import enumStr, makeExceptionResponses
from fleet.src.urls import URL_LEDGER

route_staff = APIRouter()


## Output Schema
class LedgerSchema(BaseModel):
    id: int
    entry_type: int
    category: Optional[int]
    amount: float
    description: Optional[str]
    car_id: Optional[int]
    driver_id: Optional[int]
    trip_id: Optional[int]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    entry_type: EntryType = Field(Form(description=enumStr(EntryType)))
    category: ExpenseCategory | None = Field(
        Form(
            default=None,
            description=f"Expense entries only, {enumStr(ExpenseCategory)}",
        )
    )
    amount: Decimal = Field(Form(gt=0, max_digits=10, decimal_places=2))
    description: str | None = Field(Form(max_length=2048, default=None))
    car_id: int | None = Field(Form(default=None))
    driver_id: int | None = Field(Form(default=None))
    trip_id: int | None = Field(Form(default=None))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    amount = 2
    created_on = 3


class QueryParams(BaseModel):
    entry_type: EntryType | None = Field(
        Query(default=None, description=enumStr(EntryType))
    )
    category: ExpenseCategory | None = Field(
        Query(default=None, description=enumStr(ExpenseCategory))
    )
    car_id: int | None = Field(Query(default=None))
    driver_id: int | None = Field(Query(default=None))
    trip_id: int | None = Field(Query(default=None))
    description: str | None = Field(Query(default=None))
    # amount based
    amount_ge: Decimal | None = Field(Query(default=None))
    amount_le: Decimal | None = Field(Query(default=None))
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
    URL_LEDGER,
    tags=["Ledger"],
    response_model=LedgerSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Adds a manual income or expense entry.
    Only administrators can add ledger entries.
    The category applies to expenses only and is dropped for income entries.
    """,
)
async def create_ledger_entry(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        category = fParam.category
        if fParam.entry_type == EntryType.INCOME:
            category = None
        entry = Ledger(
            entry_type=fParam.entry_type,
            category=category,
            amount=fParam.amount,
            description=fParam.description,
            car_id=fParam.car_id,
            driver_id=fParam.driver_id,
            trip_id=fParam.trip_id,
        )
        session.add(entry)
        session.commit()
        session.refresh(entry)

        entryData = jsonable_encoder(entry)
        logEvent(token, request_info, entryData)
        return entryData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_LEDGER,
    tags=["Ledger"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a ledger entry.
    Only administrators can delete ledger entries.
    """,
)
async def delete_ledger_entry(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        entry = session.query(Ledger).filter(Ledger.id == fParam.id).first()
        if entry is not None:
            session.delete(entry)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(entry))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_LEDGER,
    tags=["Ledger"],
    response_model=List[LedgerSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the ledger entries, newest first by default.
    Filter by entry type, category, the car, driver or trip,
    amount range and creation date range.
    Requires a valid staff token.
    """,
)
async def fetch_ledger(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        query = session.query(Ledger)

        # Filters
        if qParam.entry_type is not None:
            query = query.filter(Ledger.entry_type == qParam.entry_type)
        if qParam.category is not None:
            query = query.filter(Ledger.category == qParam.category)
        if qParam.car_id is not None:
            query = query.filter(Ledger.car_id == qParam.car_id)
        if qParam.driver_id is not None:
            query = query.filter(Ledger.driver_id == qParam.driver_id)
        if qParam.trip_id is not None:
            query = query.filter(Ledger.trip_id == qParam.trip_id)
        if qParam.description is not None:
            query = query.filter(Ledger.description.ilike(f"%{qParam.description}%"))
        # amount based
        if qParam.amount_ge is not None:
            query = query.filter(Ledger.amount >= qParam.amount_ge)
        if qParam.amount_le is not None:
            query = query.filter(Ledger.amount <= qParam.amount_le)
        # id based
        if qParam.id is not None:
            query = query.filter(Ledger.id == qParam.id)
        if qParam.id_ge is not None:
            query = query.filter(Ledger.id >= qParam.id_ge)
        if qParam.id_le is not None:
            query = query.filter(Ledger.id <= qParam.id_le)
        if qParam.id_list is not None:
            query = query.filter(Ledger.id.in_(qParam.id_list))
        # created_on based
        if qParam.created_on_ge is not None:
            query = query.filter(Ledger.created_on >= qParam.created_on_ge)
        if qParam.created_on_le is not None:
            query = query.filter(Ledger.created_on <= qParam.created_on_le)

        # Ordering
        orderingAttribute = getattr(Ledger, OrderBy(qParam.order_by).name)
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
