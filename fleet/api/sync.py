from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Form
from pydantic import BaseModel, Field

from fleet.api.bearer import bearer_staff
from fleet.src.db import sessionMaker
from fleet.src import exceptions, external, validators, getters
from fleet.src.loggers import logEvent
from fleet.src.functions import makeExceptionResponses
from fleet.src.urls import URL_SYNC

route_staff = APIRouter()


## Output Schema
class TableSyncSchema(BaseModel):
    synced: int
    error: Optional[str] = None


class SyncSchema(BaseModel):
    success: bool
    message: str
    results: Dict[str, TableSyncSchema]


## Input Forms
class SyncForm(BaseModel):
    tables: List[str] | None = Field(
        Form(
            default=None,
            description=f"Tables to mirror, defaults to {', '.join(external.SYNC_TABLES)}",
        )
    )


## API endpoints [Staff]
@route_staff.post(
    URL_SYNC,
    tags=["Sync"],
    response_model=SyncSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.ExternalDBNotConfigured,
        ]
    ),
    description="""
    Mirrors the fleet tables into the external database.
    Only administrators can start a sync.
    Every row of each requested table is upserted on `id`.
    The result of each table is reported separately, an unknown or failing
    table does not stop the others.
    """,
)
async def sync_to_external(
    fParam: SyncForm = Depends(),
    bearer=Depends(bearer_staff),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.staffToken(bearer.credentials, session)
        role = getters.userRole(token, session)
        validators.adminPermission(role)

        engine = external.getEngine()
        if engine is None:
            raise exceptions.ExternalDBNotConfigured()

        tableNames = fParam.tables or list(external.SYNC_TABLES)
        results = external.syncTables(session, engine, tableNames)

        syncData = {"success": True, "message": "Sync completed", "results": results}
        logEvent(token, request_info, syncData)
        return syncData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
