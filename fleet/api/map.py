from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fleet.api.bearer import bearer_staff
from fleet.src.constants import MAPBOX_TOKEN
from fleet.src.db import sessionMaker
from fleet.src import exceptions, validators
from fleet.src.functions import makeExceptionResponses
from fleet.src.urls import URL_MAP_TOKEN

route_staff = APIRouter()


## Output Schema
class MapTokenSchema(BaseModel):
    token: str


## API endpoints [Staff]
@route_staff.get(
    URL_MAP_TOKEN,
    tags=["Map"],
    response_model=MapTokenSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.MapTokenNotConfigured]
    ),
    description="""
    Returns the public access token of the map provider used by the live map.
    Requires a valid staff token.
    """,
)
async def fetch_map_token(bearer=Depends(bearer_staff)):
    try:
        session = sessionMaker()
        validators.staffToken(bearer.credentials, session)

        if not MAPBOX_TOKEN:
            raise exceptions.MapTokenNotConfigured()
        return {"token": MAPBOX_TOKEN}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
