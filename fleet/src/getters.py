from fastapi import Request
from sqlalchemy.orm.session import Session

from fleet.src import schemas
from fleet.src.db import AccessToken, UserRole


def requestInfo(request: Request) -> schemas.RequestInfo:
    """Method, path and sub-app id of the request, as attached to audit events."""
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def clientIP(request: Request) -> str:
    """
    Resolve the caller IP address.

    The first entry of `X-Forwarded-For` wins when the service runs behind a
    proxy, otherwise the socket peer address is used.
    """
    forwardedFor = request.headers.get("x-forwarded-for")
    if forwardedFor:
        return forwardedFor.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def userRole(token: AccessToken, session: Session) -> UserRole | None:
    """Fetch the role row associated with an access token."""
    return session.query(UserRole).filter(UserRole.user_id == token.account_id).first()
