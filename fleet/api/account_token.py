from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from fleet.api.bearer import bearer_staff
from fleet.src.constants import MAX_ACCOUNT_TOKENS, MAX_TOKEN_VALIDITY
from fleet.src.db import Account, AccessToken, sessionMaker
from fleet.src import argon2, exceptions, validators, getters
from fleet.src.enums import AccountStatus, PlatformType
from fleet.src.loggers import logEvent
from fleet.src.functions import enumStr, makeExceptionResponses
from fleet.src.urls import URL_ACCOUNT_TOKEN

route_staff = APIRouter()


## Output Schema
class AccessTokenSchema(BaseModel):
    id: int
    account_id: int
    access_token: str
    token_type: Optional[str] = "bearer"
    expires_in: int
    expires_at: datetime
    platform_type: int
    client_details: Optional[str]
    created_on: datetime


## Input Forms
class LoginForm(BaseModel):
    email: str = Field(Form(max_length=256))
    password: str = Field(Form(max_length=128))
    platform_type: PlatformType = Field(
        Form(description=enumStr(PlatformType), default=PlatformType.OTHER)
    )
    client_details: str | None = Field(Form(max_length=1024, default=None))


class RevokeForm(BaseModel):
    id: int | None = Field(
        Form(default=None, description="Token to revoke, the current one if omitted")
    )


## Function
def authenticate(session: Session, email: str, password: str) -> Account:
    """
    Find the ACTIVE account matching the credentials.

    Unknown emails and wrong passwords give the same `InvalidCredentials`.
    """
    account = (
        session.query(Account).filter(Account.email == email.strip().lower()).first()
    )
    if account is None or not argon2.checkPassword(password, account.password):
        raise exceptions.InvalidCredentials()
    if account.status != AccountStatus.ACTIVE:
        raise exceptions.InactiveAccount()
    return account


def makeRoomForToken(session: Session, accountID: int) -> int:
    """
    Delete the oldest tokens of an account so one more fits under
    `MAX_ACCOUNT_TOKENS`. Returns the number of tokens deleted.
    """
    newestFirst = (
        session.query(AccessToken)
        .filter(AccessToken.account_id == accountID)
        .order_by(AccessToken.created_on.desc(), AccessToken.id.desc())
        .all()
    )
    expired = newestFirst[MAX_ACCOUNT_TOKENS - 1 :]
    for token in expired:
        session.delete(token)
    session.flush()
    return len(expired)


## API endpoints [Staff]
@route_staff.post(
    URL_ACCOUNT_TOKEN,
    tags=["Token"],
    response_model=AccessTokenSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InactiveAccount, exceptions.InvalidCredentials]
    ),
    description="""
    Signs a staff member in with email and password and returns a bearer token.
    An account keeps at most MAX_ACCOUNT_TOKENS tokens, signing in again
    drops the oldest one. Tokens are valid for MAX_TOKEN_VALIDITY seconds.
    """,
)
async def create_token(
    fParam: LoginForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        account = authenticate(session, fParam.email, fParam.password)
        makeRoomForToken(session, account.id)

        token = AccessToken(
            account_id=account.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=datetime.now(timezone.utc)
            + timedelta(seconds=MAX_TOKEN_VALIDITY),
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)

        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return jsonable_encoder(token)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_staff.delete(
    URL_ACCOUNT_TOKEN,
    tags=["Token"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission]),
    description="""
    Signs out by revoking a token of the caller.
    Without an id the token used for this request is revoked.
    Tokens of other accounts cannot be revoked, unknown ids are ignored.
    """,
)
async def delete_token(
    fParam: RevokeForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)

        revoked = token
        if fParam.id is not None:
            revoked = session.get(AccessToken, fParam.id)
            if revoked is None:
                return Response(status_code=status.HTTP_204_NO_CONTENT)
            if revoked.account_id != token.account_id:
                raise exceptions.NoPermission()

        revokedData = jsonable_encoder(revoked, exclude={"access_token"})
        session.delete(revoked)
        session.commit()
        logEvent(token, request_info, revokedData)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
