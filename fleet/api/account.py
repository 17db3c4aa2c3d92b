from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from email_validator import validate_email, EmailNotValidError

from fleet.api.bearer import bearer_staff
from fleet.src.constants import MIN_PASSWORD_LENGTH
from fleet.src.db import Account, UserRole, sessionMaker
from fleet.src import argon2, exceptions, validators, getters
from fleet.src.enums import Role
from fleet.src.loggers import logEvent
from fleet.src.functions import enumStr, makeExceptionResponses
from fleet.src.urls import URL_ACCOUNT

route_staff = APIRouter()


## Output Schema
class UserRoleSchema(BaseModel):
    id: int
    user_id: int
    role: int
    email: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class AccountSchema(BaseModel):
    id: int
    email: str
    status: int
    role: Optional[int]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    email: str | None = Field(Form(max_length=256, default=None))
    password: str | None = Field(Form(max_length=128, default=None))
    role: int | None = Field(Form(description=enumStr(Role), default=None))


## Query Parameters
class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class OrderBy(IntEnum):
    id = 1
    created_on = 2


class QueryParams(BaseModel):
    email: str | None = Field(Query(default=None))
    role: Role | None = Field(Query(default=None, description=enumStr(Role)))
    user_id: int | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def validateCredentials(email: str | None, password: str | None) -> str:
    """
    Check the email and password of a new account.

    Returns:
        str: The normalized email.
    """
    if not email or not password:
        raise exceptions.MissingField("email", "password")
    email = email.strip().lower()
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise exceptions.InvalidEmail()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise exceptions.ShortPassword(MIN_PASSWORD_LENGTH)
    return email


def createAccount(
    session, email: str, password: str, role: Role
) -> tuple[Account, UserRole]:
    """
    Add an account and its role row to the session, the caller commits.

    Raises:
        exceptions.EmailInUse: If an account with the email exists.
    """
    if session.query(Account.id).filter(Account.email == email).first() is not None:
        raise exceptions.EmailInUse()

    account = Account(email=email, password=argon2.makePassword(password))
    session.add(account)
    session.flush()
    userRole = UserRole(user_id=account.id, role=role, email=email)
    session.add(userRole)
    session.flush()
    return account, userRole


def accountData(account: Account, userRole: UserRole) -> dict:
    data = jsonable_encoder(account, exclude={"password"})
    data["role"] = userRole.role if userRole is not None else None
    return data


## API endpoints [Staff]
@route_staff.post(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=AccountSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.MissingField,
            exceptions.InvalidEmail,
            exceptions.ShortPassword,
            exceptions.InvalidRole,
            exceptions.EmailInUse,
        ]
    ),
    description="""
    Creates a new staff account together with its role row.
    Only administrators can create accounts.
    The email, password and role are required, the password needs at least 6 characters.
    The account and role row are written in one transaction.
    """,
)
async def create_account(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        if fParam.role is None:
            raise exceptions.MissingField("email", "password", "role")
        email = validateCredentials(fParam.email, fParam.password)
        if fParam.role not in [r.value for r in Role]:
            raise exceptions.InvalidRole()

        account, userRole = createAccount(
            session, email, fParam.password, Role(fParam.role)
        )
        session.commit()
        session.refresh(account)
        session.refresh(userRole)

        data = accountData(account, userRole)
        logEvent(token, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.get(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=List[UserRoleSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Lists the role rows of all accounts.
    Only administrators can list accounts.
    """,
)
async def fetch_accounts(qParam: QueryParams = Depends(), bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        query = session.query(UserRole)
        if qParam.email is not None:
            query = query.filter(UserRole.email.ilike(f"%{qParam.email}%"))
        if qParam.role is not None:
            query = query.filter(UserRole.role == qParam.role)
        if qParam.user_id is not None:
            query = query.filter(UserRole.user_id == qParam.user_id)

        # Ordering
        orderingAttribute = getattr(UserRole, OrderBy(qParam.order_by).name)
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
