from fastapi import APIRouter, Depends, Request, status, Form
from pydantic import BaseModel, Field

from fleet.api.account import AccountSchema, accountData, createAccount, validateCredentials
from fleet.src.constants import BOOTSTRAP_RATE_LIMIT, BOOTSTRAP_RATE_WINDOW
from fleet.src.db import UserRole, sessionMaker
from fleet.src import exceptions, getters
from fleet.src.enums import Role
from fleet.src.loggers import logEvent
from fleet.src.functions import makeExceptionResponses
from fleet.src.redis import acquireLock, releaseLock, rateLimit
from fleet.src.urls import URL_BOOTSTRAP

route_public = APIRouter()


## Output Schema
class BootstrapSchema(BaseModel):
    success: bool
    message: str
    account: AccountSchema


## Input Forms
class CreateForm(BaseModel):
    email: str | None = Field(Form(max_length=256, default=None))
    password: str | None = Field(Form(max_length=128, default=None))


## Function
def hasRoles(session) -> bool:
    return session.query(UserRole.id).first() is not None


## API endpoints [Public]
@route_public.post(
    URL_BOOTSTRAP,
    tags=["Account"],
    response_model=BootstrapSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.TooManyRequests,
            exceptions.AdminExists,
            exceptions.MissingField,
            exceptions.InvalidEmail,
            exceptions.ShortPassword,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Creates the first administrator account of a fresh installation.
    Allowed only while no role row exists, afterwards every call is refused with 403.
    Rate limited to BOOTSTRAP_RATE_LIMIT calls per BOOTSTRAP_RATE_WINDOW seconds per caller IP.
    The email and password are required, the password needs at least 6 characters.
    Concurrent calls are serialized with a lock on the `user_role` table, so only one can succeed.
    """,
)
async def bootstrap_admin(
    request: Request,
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    roleLock = None
    try:
        session = sessionMaker()
        rateLimit(
            "bootstrap",
            getters.clientIP(request),
            BOOTSTRAP_RATE_LIMIT,
            BOOTSTRAP_RATE_WINDOW,
        )
        if hasRoles(session):
            raise exceptions.AdminExists()
        email = validateCredentials(fParam.email, fParam.password)

        roleLock = acquireLock(UserRole.__tablename__)
        if hasRoles(session):
            raise exceptions.AdminExists()

        account, userRole = createAccount(session, email, fParam.password, Role.ADMIN)
        session.commit()
        session.refresh(account)
        session.refresh(userRole)

        data = accountData(account, userRole)
        logEvent(None, request_info, data)
        return {
            "success": True,
            "message": "First admin created successfully! You can now log in.",
            "account": data,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(roleLock)
        session.close()
