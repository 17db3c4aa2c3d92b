from decimal import Decimal
from typing import List, Type, Dict, Optional, Any
from shapely import wkt, errors
from shapely.geometry.base import BaseGeometry
from PIL import Image
from io import BytesIO

from fleet.src import schemas
from fleet.src.exceptions import APIException
from fleet.src.urls import URL_PREORDER_PAYMENT_PROOF


def makeExceptionResponses(exceptions: List[Type[APIException]]) -> Dict[int, dict]:
    """
    Build the `responses` argument of a route from the errors it can raise.

    Errors sharing a status code are listed as separate examples of that code.
    Errors whose message depends on a column name are shown by class name.

    Example:
        >>> makeExceptionResponses([exceptions.InvalidToken, exceptions.NoPermission])
        {401: {...}, 403: {...}}
    """
    responses = {}
    for exception in exceptions:
        example = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail or exception.__name__},
        }
        response = responses.setdefault(
            exception.status_code,
            {
                "model": schemas.ErrorResponse,
                "content": {"application/json": {"examples": {}}},
            },
        )
        response["content"]["application/json"]["examples"][
            exception.__name__
        ] = example
    return responses


def enumStr(enumClass) -> str:
    """
    Members of an enum as `NAME: value` pairs, for OpenAPI descriptions.

    Example:
        >>> enumStr(CarType)
        'ELECTRIC: 1, GAS: 2'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def toWKTgeometry(wktString: str, type: Type[BaseGeometry]) -> Optional[BaseGeometry]:
    """
    Parse a WKT string, None unless it is valid and of the given geometry type.

    Example:
        >>> toWKTgeometry("POINT (76.68 8.76)", Point)
        <POINT (76.68 8.76)>
        >>> toWKTgeometry("LINESTRING (0 0, 1 1)", Point) is None
        True
    """
    try:
        geometry = wkt.loads(wktString)
    except errors.ShapelyError:
        return None
    if not isinstance(geometry, type):
        return None
    return geometry


def isSRID4326(wktGeom: BaseGeometry) -> bool:
    """
    True when every coordinate is a WGS84 longitude/latitude pair.
    Polygons are checked on their exterior ring, multi geometries part by part.
    """
    if hasattr(wktGeom, "geoms"):
        return all(isSRID4326(part) for part in wktGeom.geoms)

    coords = wktGeom.exterior.coords if hasattr(wktGeom, "exterior") else wktGeom.coords
    for longitude, latitude in coords:
        if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
            return False
    return True


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Whether `transitions` allows moving from `old_state` to `new_state`.
    States missing from the mapping allow no move at all.
    """
    return new_state in transitions.get(old_state, [])


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Copy the given fields from a form onto an ORM object.

    Fields left out of the form (None) and unchanged values are skipped, so
    `session.is_modified()` reports only real changes.

    Example:
        >>> updateIfChanged(route, fParam, [Route.name.key, Route.base_price.key])
    """
    for field in fields:
        value = getattr(sourceObj, field, None)
        if value is not None and getattr(targetObj, field) != value:
            setattr(targetObj, field, value)


def toFloat(value: Optional[Decimal]) -> float:
    """Convert a nullable numeric column value into a float, NULL counts as 0."""
    if value is None:
        return 0.0
    return float(value)


def resizeImage(imageBytes: bytes, height: int = None, width: int = None) -> bytes:
    """
    Shrink an image to fit inside `width` x `height`, keeping its aspect ratio.

    A missing dimension is not constrained. The result is re-encoded as RGB in
    the format Pillow detected, so the stored MIME type still applies.
    """
    with Image.open(BytesIO(imageBytes)) as image:
        format = image.format
        box = (width or image.width, height or image.height)
        image.thumbnail(box)
        if image.mode != "RGB":
            image = image.convert("RGB")
        with BytesIO() as outputBuffer:
            image.save(outputBuffer, format)
            return outputBuffer.getvalue()


def imageMIME(imageBytes: bytes) -> str:
    """
    MIME type of an image, detected from its content.

    The whole file is checked, so undecodable or truncated data raises.
    """
    with Image.open(BytesIO(imageBytes)) as image:
        image.verify()
        return Image.MIME.get(image.format, "application/octet-stream")


def paymentProofURL(proofID: int) -> str:
    """Staff download path of a payment proof."""
    return f"/staff{URL_PREORDER_PAYMENT_PROOF}/{proofID}"
