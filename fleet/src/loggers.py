from fleet.src.db import AccessToken
from fleet.src import openobserve
from fleet.src.schemas import RequestInfo


def logEvent(token: AccessToken | None, requestInfo: RequestInfo, data: dict) -> None:
    """
    Record an audit event tagged with the request method, path, app and account.

    Args:
        token (AccessToken | None): Authenticated account token, None for
            public requests such as bookings or the first-admin bootstrap.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }
    if isinstance(token, AccessToken):
        logDetails["_account_id"] = token.account_id

    logDetails.update(data)
    openobserve.logEvent(logDetails)
