from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from fleet.api.bearer import bearer_staff
from fleet.src.db import Route, sessionMaker
from fleet.src import exceptions, validators, getters
from fleet.src.loggers import logEvent
from fleet.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from fleet.src.urls import URL_ROUTE, URL_PUBLIC_ROUTE

route_staff = APIRouter()
route_public = APIRouter()


## Output Schema
class RouteSchema(BaseModel):
    id: int
    name: str
    origin: str
    destination: str
    distance_km: float
    base_price: float
    estimated_tolls: float
    updated_on: Optional[datetime]
    created_on: datetime


class PublicRouteSchema(BaseModel):
    id: int
    name: str
    origin: str
    destination: str
    distance_km: float
    base_price: float


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=1, max_length=128))
    origin: str = Field(Form(min_length=1, max_length=128))
    destination: str = Field(Form(min_length=1, max_length=128))
    distance_km: Decimal = Field(Form(gt=0, max_digits=8, decimal_places=2))
    base_price: Decimal = Field(Form(ge=0, max_digits=10, decimal_places=2))
    estimated_tolls: Decimal = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=0)
    )


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(min_length=1, max_length=128, default=None))
    origin: str | None = Field(Form(min_length=1, max_length=128, default=None))
    destination: str | None = Field(Form(min_length=1, max_length=128, default=None))
    distance_km: Decimal | None = Field(
        Form(gt=0, max_digits=8, decimal_places=2, default=None)
    )
    base_price: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )
    estimated_tolls: Decimal | None = Field(
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
    name = 2
    distance_km = 3
    base_price = 4
    updated_on = 5
    created_on = 6


class QueryParams(BaseModel):
    # filters
    name: str | None = Field(Query(default=None))
    origin: str | None = Field(Query(default=None))
    destination: str | None = Field(Query(default=None))
    # base_price based
    base_price_ge: Decimal | None = Field(Query(default=None))
    base_price_le: Decimal | None = Field(Query(default=None))
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
def searchRoute(session: Session, qParam: QueryParams) -> List[Route]:
    query = session.query(Route)

    # Filters
    if qParam.name is not None:
        query = query.filter(Route.name.ilike(f"%{qParam.name}%"))
    if qParam.origin is not None:
        query = query.filter(Route.origin.ilike(f"%{qParam.origin}%"))
    if qParam.destination is not None:
        query = query.filter(Route.destination.ilike(f"%{qParam.destination}%"))
    if qParam.base_price_ge is not None:
        query = query.filter(Route.base_price >= qParam.base_price_ge)
    if qParam.base_price_le is not None:
        query = query.filter(Route.base_price <= qParam.base_price_le)
    # id based
    if qParam.id is not None:
        query = query.filter(Route.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Route.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Route.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Route.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Route.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Route.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Route, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Staff]
@route_staff.post(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Creates a new highway route with its base fare and estimated tolls.
    Only administrators can create routes.
    """,
)
async def create_route(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        route = Route(
            name=fParam.name,
            origin=fParam.origin,
            destination=fParam.destination,
            distance_km=fParam.distance_km,
            base_price=fParam.base_price,
            estimated_tolls=fParam.estimated_tolls,
        )
        session.add(route)
        session.commit()
        session.refresh(route)

        routeData = jsonable_encoder(route)
        logEvent(token, request_info, routeData)
        return routeData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.patch(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates an existing route.
    Only administrators can update routes.
    The fare of trips already started from the route is left unchanged.
    """,
)
async def update_route(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        route = session.query(Route).filter(Route.id == fParam.id).first()
        if route is None:
            raise exceptions.InvalidIdentifier()

        updateIfChanged(
            route,
            fParam,
            [
                Route.name.key,
                Route.origin.key,
                Route.destination.key,
                Route.distance_km.key,
                Route.base_price.key,
                Route.estimated_tolls.key,
            ],
        )
        haveUpdates = session.is_modified(route)
        if haveUpdates:
            session.commit()
            session.refresh(route)

        routeData = jsonable_encoder(route)
        if haveUpdates:
            logEvent(token, request_info, routeData)
        return routeData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_ROUTE,
    tags=["Route"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Deletes a route.
    Only administrators can delete routes.
    Trips and preorders of the route are kept, their `route_id` becomes NULL.
    """,
)
async def delete_route(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        route = session.query(Route).filter(Route.id == fParam.id).first()
        if route is not None:
            session.delete(route)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(route))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_ROUTE,
    tags=["Route"],
    response_model=List[RouteSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the routes with filtering, sorting and pagination.
    Requires a valid staff token.
    """,
)
async def fetch_routes(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        return searchRoute(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Public]
@route_public.get(
    URL_PUBLIC_ROUTE,
    tags=["Route"],
    response_model=List[PublicRouteSchema],
    description="""
    Lists the routes customers can book on the public booking page.
    No authentication is required.
    """,
)
async def fetch_public_routes(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchRoute(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
