"""
Guards shared by the Fleet endpoints.

Each check either returns quietly or raises the matching `APIException`,
so endpoints can call them inline and let `exceptions.handle()` turn the
failure into a response.
"""

import struct
from datetime import datetime, timezone
from typing import Type, Any, List
from sqlalchemy.orm.session import Session
from shapely.geometry.base import BaseGeometry
from PIL import Image

from fleet.src.db import AccessToken, UserRole
from fleet.src.enums import Role
from fleet.src import exceptions
from fleet.src.constants import IMAGE_TYPES
from fleet.src.functions import imageMIME, isSRID4326, isValidTransition, toWKTgeometry


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def staffToken(access_token: str, session: Session) -> AccessToken:
    """
    Look up an unexpired access token, raising `InvalidToken` otherwise.
    """
    current_time = datetime.now(timezone.utc)

    token = (
        session.query(AccessToken)
        .filter(
            AccessToken.access_token == access_token,
            AccessToken.expires_at > current_time,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------
def rolePermission(role: UserRole | None, allowed: List[Role]) -> bool:
    """
    Validate that the account holds one of the allowed roles.

    Args:
        role (UserRole | None): Role row of the account, None if it has none.
        allowed (List[Role]): Roles permitted to perform the action.

    Returns:
        bool: True if the role is permitted.

    Raises:
        exceptions.NoPermission: If the account has no role or another role.
    """
    if role and role.role in allowed:
        return True
    raise exceptions.NoPermission()


def adminPermission(role: UserRole | None) -> bool:
    """Validate that the account is an administrator."""
    return rolePermission(role, [Role.ADMIN])


def staffPermission(role: UserRole | None) -> bool:
    """Validate that the account is an administrator or a driver."""
    return rolePermission(role, [Role.ADMIN, Role.DRIVER])


# ---------------------------------------------------------------------------
# Geometry validation
# ---------------------------------------------------------------------------
def WKTstring(wktString: str, expected_type: Type[BaseGeometry]) -> BaseGeometry:
    """
    Parse `wktString`, requiring a geometry of `expected_type`.

    Raises:
        exceptions.InvalidWKTStringOrType: If parsing fails or type mismatches.
    """
    wktGeometry = toWKTgeometry(wktString, expected_type)
    if wktGeometry is None:
        raise exceptions.InvalidWKTStringOrType()
    return wktGeometry


def SRID4326(wktGeometry: BaseGeometry) -> bool:
    """
    Require longitude/latitude coordinates within WGS84 bounds.

    Raises:
        exceptions.InvalidSRID4326: If geometry has invalid latitude/longitude.
    """
    if not isSRID4326(wktGeometry):
        raise exceptions.InvalidSRID4326()
    return True


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: str
) -> bool:
    """
    Reject a move that `transitions` does not list. `state` is the column
    name reported in the error.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True


def imageFile(fileBytes: bytes, maxSize: int) -> str:
    """
    Validate an uploaded image by decoding it, ignoring the client supplied
    `Content-Type`. Returns the detected MIME type, which is what gets stored.

    Raises:
        exceptions.InvalidImageFile: If the file is empty, cannot be decoded or
            is not one of `IMAGE_TYPES`.
        exceptions.FileTooLarge: If the file is larger than `maxSize` bytes.
    """
    if len(fileBytes) == 0:
        raise exceptions.InvalidImageFile()
    if len(fileBytes) > maxSize:
        raise exceptions.FileTooLarge(maxSize)
    try:
        mimeType = imageMIME(fileBytes)
    except (OSError, SyntaxError, ValueError, struct.error, Image.DecompressionBombError):
        raise exceptions.InvalidImageFile()
    if mimeType not in IMAGE_TYPES:
        raise exceptions.InvalidImageFile()
    return mimeType
